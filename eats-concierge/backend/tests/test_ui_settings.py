from __future__ import annotations

import json

from services import ui_settings


def test_defaults_to_dark_without_file(tmp_path) -> None:
    settings = ui_settings.init_settings(str(tmp_path / "missing.json"))
    assert settings.theme == "dark"


def test_toggle_persists(tmp_path) -> None:
    path = tmp_path / "ui" / "settings.json"
    ui_settings.init_settings(str(path))
    assert ui_settings.toggle_theme().theme == "light"
    assert json.loads(path.read_text())["theme"] == "light"

    assert ui_settings.init_settings(str(path)).theme == "light"
    assert ui_settings.set_theme("dark").theme == "dark"
    assert ui_settings.get_settings().theme == "dark"


def test_corrupt_file_falls_back(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    assert ui_settings.init_settings(str(path)).theme == "dark"


def test_in_memory_only_without_path() -> None:
    ui_settings.init_settings(None)
    assert ui_settings.toggle_theme().theme == "light"
    ui_settings.init_settings(None)
    assert ui_settings.get_settings().theme == "dark"
