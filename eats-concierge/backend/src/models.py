"""Data models for the eats concierge."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class City(str, Enum):
    DUBAI = "Dubai"
    ABU_DHABI = "Abu Dhabi"
    SHARJAH = "Sharjah"


CATEGORIES: tuple[str, ...] = (
    "Trending",
    "Turkish",
    "Shawarma",
    "Mandi",
    "Chinese",
    "Burgers",
    "Sushi",
    "Italian",
    "Indian",
    "Coffee",
    "Healthy",
    "Dessert",
)

DEFAULT_DELIVERY_PLATFORMS: tuple[str, ...] = ("Talabat", "Deliveroo", "Noon", "Careem")
DEFAULT_PRICE_TIER = "$$"

PROGRESS_STAGES: tuple[str, ...] = (
    "Triangulating your location...",
    "Scanning Google Maps...",
    "Analyzing customer reviews...",
    "Checking delivery availability...",
    "Finalizing top recommendations...",
)


@dataclass(frozen=True)
class LocationDescriptor:
    latitude: float = 0.0
    longitude: float = 0.0
    is_live: bool = False  # False: coordinates are stale, search by city name


@dataclass(frozen=True)
class SearchCriteria:
    city: City = City.DUBAI
    category: str = "Trending"
    free_text: str = ""
    location: LocationDescriptor = field(default_factory=LocationDescriptor)

    def with_city(self, city: City | str) -> "SearchCriteria":
        return replace(self, city=City(city), location=replace(self.location, is_live=False))

    def with_category(self, category: str) -> "SearchCriteria":
        return replace(self, category=category, free_text="")

    def with_free_text(self, text: str) -> "SearchCriteria":
        return replace(self, free_text=text)

    def with_location(self, location: LocationDescriptor) -> "SearchCriteria":
        return replace(self, location=location)


@dataclass(frozen=True)
class GroundingHint:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class RequestSpec:
    prompt: str
    system_instruction: str
    subject: str
    grounding: Optional[GroundingHint] = None
    radius_km: Optional[float] = None
    city: Optional[str] = None


class Coordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class RecommendationEntity(BaseModel):
    """One place as returned by the generation service.

    Field aliases are the wire names the prompt asks for. Only ``name`` and
    ``rating`` are required; everything else degrades to an empty value.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    rating: float
    review_count: int = Field(default=0, alias="reviewCount")
    price_tier: str = Field(default=DEFAULT_PRICE_TIER, alias="priceLevel")
    cuisine: str = ""
    address: str = ""
    coordinates: Optional[Coordinates] = None
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    summary: str = Field(default="", alias="aiSummary")
    delivery_platforms: tuple[str, ...] = Field(default=(), alias="likelyAggregators")

    @model_validator(mode="before")
    @classmethod
    def _lift_coordinates(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("coordinates") is not None:
            return data
        data = dict(data)
        try:
            lat = float(data.pop("lat"))
            lng = float(data.pop("lng"))
        except (KeyError, TypeError, ValueError):
            data.pop("lat", None)
            data.pop("lng", None)
            return data
        data["coordinates"] = {"lat": lat, "lng": lng}
        return data

    @field_validator("name", mode="before")
    @classmethod
    def _require_name(cls, value: Any) -> str:
        text = str(value).strip() if isinstance(value, (str, int, float)) else ""
        if not text:
            raise ValueError("name must be a non-empty string")
        return text

    @field_validator("rating", mode="after")
    @classmethod
    def _clamp_rating(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("rating must be a finite number")
        return max(0.0, min(5.0, value))

    @field_validator("review_count", mode="before")
    @classmethod
    def _coerce_review_count(cls, value: Any) -> int:
        try:
            count = int(float(str(value).replace(",", "").strip()))
        except (TypeError, ValueError):
            return 0
        return max(count, 0)

    @field_validator("price_tier", mode="before")
    @classmethod
    def _coerce_price_tier(cls, value: Any) -> str:
        dollars = str(value or "").count("$")
        if not dollars:
            return DEFAULT_PRICE_TIER
        return "$" * min(dollars, 3)

    @field_validator("cuisine", "address", "summary", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("phone_number", mode="before")
    @classmethod
    def _coerce_phone(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("delivery_platforms", mode="before")
    @classmethod
    def _coerce_platforms(cls, value: Any) -> tuple[str, ...]:
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            return ()
        return tuple(str(v).strip() for v in value if str(v).strip())

    @property
    def price_level(self) -> int:
        return len(self.price_tier)

    def display_platforms(self) -> list[str]:
        """Platforms to show; falls back to the canonical list when none were inferred."""
        if self.delivery_platforms:
            return list(self.delivery_platforms)
        return list(DEFAULT_DELIVERY_PLATFORMS)

    def to_wire(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "priceLevel": self.price_tier,
            "cuisine": self.cuisine,
            "address": self.address,
            "lat": self.coordinates.lat if self.coordinates else None,
            "lng": self.coordinates.lng if self.coordinates else None,
            "phoneNumber": self.phone_number,
            "aiSummary": self.summary,
            "likelyAggregators": list(self.delivery_platforms),
            "displayPlatforms": self.display_platforms(),
        }


class SearchPhase(str, Enum):
    IDLE = "idle"
    LOCATING = "locating"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


WAITING_PHASES = frozenset({SearchPhase.LOCATING, SearchPhase.LOADING})


@dataclass(frozen=True)
class SearchState:
    phase: SearchPhase = SearchPhase.IDLE
    results: tuple[RecommendationEntity, ...] = ()
    error_message: Optional[str] = None
    notice: Optional[str] = None  # advisory shown with an empty success
    error_kind: Optional[str] = None  # diagnostics only, never shown
    progress_tick: int = 0
    sequence: int = 0

    @property
    def is_waiting(self) -> bool:
        return self.phase in WAITING_PHASES

    @property
    def progress_label(self) -> Optional[str]:
        if not self.is_waiting:
            return None
        return PROGRESS_STAGES[self.progress_tick % len(PROGRESS_STAGES)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "results": [r.to_wire() for r in self.results],
            "errorMessage": self.error_message,
            "notice": self.notice,
            "progressTick": self.progress_tick,
            "progressLabel": self.progress_label,
            "sequence": self.sequence,
        }
