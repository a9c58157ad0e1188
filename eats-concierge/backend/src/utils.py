"""Utility helpers for the eats concierge."""

from __future__ import annotations

import re
from typing import Optional

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.I)


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "unset"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def strip_thinking_tokens(text: str) -> str:
    """Remove <think>...</think> blocks if present."""
    if not text:
        return text
    while True:
        start = text.find("<think>")
        if start == -1:
            break
        end = text.find("</think>", start)
        if end == -1:
            break
        text = text[:start] + text[end + len("</think>") :]
    return text


def strip_code_fences(text: str) -> str:
    """Drop ```json and ``` markers wherever they appear."""
    if not text:
        return text
    return _FENCE_PATTERN.sub("", text)


def parse_bool(value: object) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}
