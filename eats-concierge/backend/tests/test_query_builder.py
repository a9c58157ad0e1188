from __future__ import annotations

from models import City, LocationDescriptor, SearchCriteria
from services.query_builder import (
    CATEGORY_BROADENING,
    TRENDING_SUBJECT,
    build_request,
    derive_subject,
)

LIVE = LocationDescriptor(latitude=25.0772, longitude=55.1390, is_live=True)


def test_free_text_wins_over_category() -> None:
    for category in ("Trending", "Chinese", "Sushi", ""):
        criteria = SearchCriteria(category=category, free_text="  Matcha Latte  ")
        assert derive_subject(criteria) == "Matcha Latte"


def test_blank_free_text_falls_back_to_category() -> None:
    criteria = SearchCriteria(category="Burgers", free_text="   ")
    assert derive_subject(criteria) == "Burgers restaurants"


def test_trending_and_empty_category_use_trending_subject() -> None:
    assert derive_subject(SearchCriteria(category="Trending")) == TRENDING_SUBJECT
    assert derive_subject(SearchCriteria(category="")) == TRENDING_SUBJECT


def test_chinese_is_broadened_from_table() -> None:
    subject = derive_subject(SearchCriteria(category="Chinese"))
    assert subject == CATEGORY_BROADENING["Chinese"]
    for district in ("Motor City", "Sports City", "Dubai Production City"):
        assert district in subject
    assert "Indo-Chinese" in subject


def test_other_categories_are_plain() -> None:
    assert derive_subject(SearchCriteria(category="Mandi")) == "Mandi restaurants"


def test_city_mode_names_city_without_grounding() -> None:
    spec = build_request(SearchCriteria(city=City.SHARJAH, category="Indian"))
    assert spec.grounding is None
    assert spec.radius_km is None
    assert spec.city == "Sharjah"
    assert 'matching "Indian restaurants" in Sharjah, UAE.' in spec.prompt


def test_live_mode_uses_exact_coordinates_and_no_city() -> None:
    spec = build_request(SearchCriteria(city=City.ABU_DHABI, category="Sushi", location=LIVE))
    assert spec.grounding is not None
    assert (spec.grounding.latitude, spec.grounding.longitude) == (25.0772, 55.1390)
    assert spec.city is None
    assert "Abu Dhabi" not in spec.prompt
    assert "within a 8km radius" in spec.prompt
    assert "lat: 25.0772, lng: 55.139" in spec.prompt
    assert spec.radius_km == 8.0


def test_stale_coordinates_are_ignored_when_not_live() -> None:
    stale = LocationDescriptor(latitude=11.111, longitude=22.222, is_live=False)
    spec = build_request(SearchCriteria(city=City.DUBAI, location=stale))
    assert spec.grounding is None
    assert "11.111" not in spec.prompt
    assert "in Dubai, UAE." in spec.prompt


def test_prompt_carries_output_contract() -> None:
    spec = build_request(SearchCriteria())
    assert "Find 30 distinct places" in spec.prompt
    assert "rating of 4.0 or higher" in spec.prompt
    assert "phone number" in spec.prompt
    assert "latitude and longitude" in spec.prompt
    assert "valid JSON array" in spec.prompt
    for field in ("reviewCount", "priceLevel", "aiSummary", "likelyAggregators", "phoneNumber"):
        assert f'"{field}"' in spec.prompt
    assert "food concierge" in spec.system_instruction


def test_build_is_deterministic() -> None:
    criteria = SearchCriteria(city=City.DUBAI, category="Chinese", free_text="", location=LIVE)
    assert build_request(criteria) == build_request(criteria)
