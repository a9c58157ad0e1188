from __future__ import annotations

import json

import pytest

from errors import MalformedResponseError
from services.normalizer import isolate_array, normalize_response, parse_array

ITEMS = [
    {"name": "Al Mashowa", "rating": 4.4, "reviewCount": 900, "priceLevel": "$$", "cuisine": "Mandi",
     "address": "Al Qusais, Dubai", "aiSummary": "Smoky lamb mandi worth the drive.", "likelyAggregators": ["Talabat"]},
]
BARE = json.dumps(ITEMS)


def test_fenced_reply_matches_bare_array() -> None:
    fenced = f"```json\n{BARE}\n```"
    assert parse_array(fenced) == json.loads(BARE)
    assert normalize_response(fenced) == normalize_response(BARE)


def test_surrounding_prose_is_discarded() -> None:
    raw = f"Sure! Here you go: {BARE} Hope that helps!"
    entities = normalize_response(raw)
    assert [e.name for e in entities] == ["Al Mashowa"]


def test_thinking_block_is_dropped() -> None:
    raw = f"<think>they want [mandi]</think>\n{BARE}"
    assert parse_array(raw) == ITEMS


def test_not_json_raises() -> None:
    with pytest.raises(MalformedResponseError):
        normalize_response("not json at all")


def test_truncated_array_raises() -> None:
    with pytest.raises(MalformedResponseError) as info:
        normalize_response('[{"name": "Cut off", "rating": 4.')
    assert info.value.raw.startswith("[")


def test_object_instead_of_array_raises() -> None:
    with pytest.raises(MalformedResponseError):
        normalize_response('{"name": "Solo", "rating": 4.5}')


@pytest.mark.parametrize("raw", [None, "", "   \n"])
def test_empty_reply_is_empty_list(raw) -> None:
    assert normalize_response(raw) == []


def test_empty_array_is_valid() -> None:
    assert normalize_response("[]") == []


def test_elements_missing_name_or_rating_are_dropped() -> None:
    raw = json.dumps([{"rating": 4.1}, {"name": "  ", "rating": 4.0}, "junk", {"name": "Kept", "rating": "4.2"}])
    entities = normalize_response(raw)
    assert [e.name for e in entities] == ["Kept"]
    assert entities[0].rating == 4.2


def test_all_elements_unusable_raises() -> None:
    with pytest.raises(MalformedResponseError):
        normalize_response('[{"cuisine": "Turkish"}, 3]')


def test_absent_optional_fields_are_accepted() -> None:
    entity = normalize_response('[{"name": "Bare Minimum", "rating": 4.0}]')[0]
    assert entity.review_count == 0
    assert entity.coordinates is None
    assert entity.phone_number is None
    assert entity.delivery_platforms == ()


def test_isolate_array_ignores_reversed_brackets() -> None:
    assert isolate_array("] nothing [") == "] nothing ["


def test_non_finite_ratings_are_dropped() -> None:
    raw = '[{"name": "X", "rating": NaN}, {"name": "Y", "rating": -Infinity}, {"name": "Z", "rating": 4.7}]'
    entities = normalize_response(raw)
    assert [e.name for e in entities] == ["Z"]
    assert entities[0].rating == 4.7


def test_single_nan_rating_is_not_promoted() -> None:
    with pytest.raises(MalformedResponseError):
        normalize_response('[{"name": "X", "rating": NaN}]')
