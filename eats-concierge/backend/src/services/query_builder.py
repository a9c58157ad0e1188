from __future__ import annotations

from typing import Dict, Optional

from config import Configuration
from models import GroundingHint, RequestSpec, SearchCriteria

TRENDING_CATEGORY = "Trending"
TRENDING_SUBJECT = "popular trending restaurants"

# Categories whose subject is widened beyond "<category> restaurants".
CATEGORY_BROADENING: Dict[str, str] = {
    "Chinese": (
        "Chinese restaurants, including options in Motor City, Sports City, and Dubai Production City. "
        "Also include popular Fusion Chinese (Indo-Chinese) spots."
    ),
}

SYSTEM_INSTRUCTION = (
    "You are a high-end UAE food concierge. You know the vibe, the price, the phone numbers, "
    "the exact location, and the delivery scene."
)

DELIVERY_APPS = "Talabat, Deliveroo, Noon, Careem, Smash"

JSON_INSTRUCTION = """
Output strictly a valid JSON array. Do not include any markdown formatting, code fences or commentary.
Every element must use exactly these fields:
[
  {
    "name": "Name",
    "rating": 4.5,
    "reviewCount": 120,
    "priceLevel": "$$",
    "cuisine": "Cuisine",
    "address": "Full address here",
    "lat": 25.1234,
    "lng": 55.1234,
    "phoneNumber": "+971 4 123 4567",
    "aiSummary": "10 words max on why it's good.",
    "likelyAggregators": ["Talabat", "Deliveroo"]
  }
]
"""


def derive_subject(criteria: SearchCriteria) -> str:
    """What to search for: free text wins, then the category table, then "<category> restaurants"."""
    free_text = (criteria.free_text or "").strip()
    if free_text:
        return free_text
    category = (criteria.category or "").strip()
    if not category or category == TRENDING_CATEGORY:
        return TRENDING_SUBJECT
    if category in CATEGORY_BROADENING:
        return CATEGORY_BROADENING[category]
    return f"{category} restaurants"


def _shape_lines(cfg: Configuration, live: bool) -> str:
    delivery = (
        f"Analyze reviews to infer availability on delivery apps ({DELIVERY_APPS})."
        if live
        else "Analyze reviews to infer availability on delivery apps."
    )
    return "\n".join(
        [
            f"Only include places with a rating of {cfg.min_rating:.1f} or higher.",
            delivery,
            "Find the official phone number for reservations.",
            "Get the full address.",
            "Get the precise latitude and longitude for the map.",
            'Provide a very short, punchy "Concierge Verdict" (about 10 words) on why I should eat here.',
            JSON_INSTRUCTION,
        ]
    )


def build_request(criteria: SearchCriteria, cfg: Optional[Configuration] = None) -> RequestSpec:
    """Turn search criteria into the prompt and grounding hint for one generation call.

    Pure: the same criteria (and configuration) always yield an equal spec.
    """
    cfg = cfg or Configuration()
    subject = derive_subject(criteria)
    loc = criteria.location

    if loc.is_live:
        prompt = (
            f'Find {cfg.result_count} distinct places matching "{subject}" within a '
            f"{cfg.search_radius_km:g}km radius of my current location "
            f"(lat: {loc.latitude}, lng: {loc.longitude}).\n" + _shape_lines(cfg, live=True)
        )
        return RequestSpec(
            prompt=prompt,
            system_instruction=SYSTEM_INSTRUCTION,
            subject=subject,
            grounding=GroundingHint(latitude=loc.latitude, longitude=loc.longitude),
            radius_km=cfg.search_radius_km,
        )

    city = criteria.city.value
    prompt = (
        f'Find {cfg.result_count} distinct places matching "{subject}" in {city}, UAE.\n'
        + _shape_lines(cfg, live=False)
    )
    return RequestSpec(
        prompt=prompt,
        system_instruction=SYSTEM_INSTRUCTION,
        subject=subject,
        city=city,
    )
