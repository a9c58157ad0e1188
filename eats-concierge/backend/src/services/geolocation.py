from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

from loguru import logger

from errors import LocationUnavailable
from services.geoapify import GeoapifyClient, GeoapifyError


@dataclass(frozen=True)
class PositionOptions:
    high_accuracy: bool = True
    timeout_sec: float = 10.0
    maximum_age_sec: float = 0.0  # 0 = never reuse a cached fix


@dataclass(frozen=True)
class GeoPosition:
    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None


class GeolocationProvider(Protocol):
    async def request_position(self, options: PositionOptions) -> GeoPosition: ...


class ReportedPositionProvider:
    """Position (or its refusal) reported by the user's device along with the request."""

    def __init__(self, position: Optional[GeoPosition] = None, denied_reason: Optional[str] = None) -> None:
        self.position = position
        self.denied_reason = denied_reason

    async def request_position(self, options: PositionOptions) -> GeoPosition:
        if self.position is None:
            raise LocationUnavailable(self.denied_reason or "device did not report a position")
        return self.position


class GeoapifyIPProvider:
    """Coarse position from the caller's IP address. Accuracy is city level at best."""

    def __init__(self, client: GeoapifyClient, ip: Optional[str] = None) -> None:
        self.client = client
        self.ip = ip
        self._cached: Optional[Tuple[float, GeoPosition]] = None

    async def request_position(self, options: PositionOptions) -> GeoPosition:
        if self._cached and options.maximum_age_sec > 0:
            ts, position = self._cached
            if time.time() - ts <= options.maximum_age_sec:
                return position
        if options.high_accuracy:
            logger.debug("high accuracy requested; IP lookup only resolves to city level")
        try:
            found = await asyncio.to_thread(self.client.ipinfo, self.ip)
        except GeoapifyError as exc:
            raise LocationUnavailable(f"ip lookup failed: {exc}") from exc
        position = GeoPosition(latitude=found.lat, longitude=found.lon)
        self._cached = (time.time(), position)
        return position
