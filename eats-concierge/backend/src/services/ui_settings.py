"""Process-wide presentation settings (theme). The search core never reads these."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from loguru import logger
from pydantic import BaseModel, ValidationError

Theme = Literal["dark", "light"]


class UISettings(BaseModel):
    theme: Theme = "dark"


_settings: UISettings = UISettings()
_path: Optional[Path] = None


def init_settings(path: Optional[str] = None) -> UISettings:
    """Load saved settings from ``path`` if it exists; later writes persist there."""
    global _settings, _path
    _path = Path(path) if path else None
    _settings = UISettings()
    if _path is not None and _path.exists():
        try:
            _settings = UISettings.model_validate_json(_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("ignoring unreadable settings file {}: {}", _path, exc)
    return _settings


def get_settings() -> UISettings:
    return _settings


def set_theme(theme: Theme) -> UISettings:
    global _settings
    _settings = _settings.model_copy(update={"theme": UISettings(theme=theme).theme})
    _save()
    return _settings


def toggle_theme() -> UISettings:
    return set_theme("light" if _settings.theme == "dark" else "dark")


def _save() -> None:
    if _path is None:
        return
    _path.parent.mkdir(parents=True, exist_ok=True)
    _path.write_text(_settings.model_dump_json(), encoding="utf-8")
