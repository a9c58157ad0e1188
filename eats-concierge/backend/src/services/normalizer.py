from __future__ import annotations

import json
from typing import Any, List, Optional

from loguru import logger
from pydantic import ValidationError

from errors import MalformedResponseError
from models import RecommendationEntity
from utils import strip_code_fences, strip_thinking_tokens


def isolate_array(text: str) -> str:
    """Slice from the first '[' to the last ']' so leading/trailing prose is dropped."""
    start, end = text.find("["), text.rfind("]")
    if start != -1 and end != -1 and end > start:
        return text[start : end + 1]
    return text


def clean_reply(raw: str) -> str:
    text = strip_thinking_tokens(raw)
    text = strip_code_fences(text).strip()
    return isolate_array(text)


def parse_array(raw: Optional[str]) -> List[Any]:
    """Recover the JSON array from a reply that is only supposed to be JSON."""
    if not raw or not raw.strip():
        return []
    text = clean_reply(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"reply is not valid JSON: {exc}", raw=raw) from exc
    if not isinstance(data, list):
        raise MalformedResponseError(f"expected a JSON array, got {type(data).__name__}", raw=raw)
    return data


def normalize_response(raw: Optional[str]) -> List[RecommendationEntity]:
    items = parse_array(raw)
    entities: list[RecommendationEntity] = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning("dropping element {}: not an object ({})", idx, type(item).__name__)
            continue
        try:
            entities.append(RecommendationEntity.model_validate(item))
        except ValidationError as exc:
            logger.warning("dropping element {}: {} validation errors", idx, exc.error_count())
    if items and not entities:
        raise MalformedResponseError(f"none of {len(items)} elements had a usable name and rating", raw=raw or "")
    if len(entities) < len(items):
        logger.debug("normalized {}/{} elements", len(entities), len(items))
    return entities
