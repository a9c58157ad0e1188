"""Error taxonomy for the concierge search pipeline."""

from __future__ import annotations


class ConciergeError(RuntimeError):
    """Base class for failures the orchestrator collapses into the error phase."""

    kind = "unknown"


class LocationUnavailable(ConciergeError):
    """Geolocation is missing, denied or timed out."""

    kind = "location_unavailable"


class UpstreamError(ConciergeError):
    """The generation service could not be reached or returned a failure."""

    kind = "upstream"


class MalformedResponseError(ConciergeError):
    """The reply could not be coerced into a JSON array of places."""

    kind = "malformed_response"

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw
