from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

import requests

from config import Configuration


class GeoapifyError(RuntimeError):
    pass


@dataclass
class _RetryPolicy:
    retries: int = 2
    base_delay: float = 0.5


@dataclass(frozen=True)
class IPLocation:
    lat: float
    lon: float
    city: Optional[str] = None
    country: Optional[str] = None


class GeoapifyClient:
    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.base = cfg.geoapify_base_url.rstrip("/")
        self.session = session or requests.Session()

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        params = {**params, "apiKey": self.cfg.geoapify_api_key}
        policy = _RetryPolicy()
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.geoapify_timeout)
            except requests.RequestException as exc:  # network error
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise GeoapifyError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                snippet = resp.text[:300]
                raise GeoapifyError(f"upstream {resp.status_code}: {snippet}")

            if not resp.ok:
                snippet = resp.text[:300]
                raise GeoapifyError(f"upstream {resp.status_code}: {snippet}")

            try:
                return resp.json()
            except ValueError:
                raise GeoapifyError("invalid json response")

    def ipinfo(self, ip: Optional[str] = None) -> IPLocation:
        """Approximate position of ``ip`` (or of the caller when omitted)."""
        params = {"ip": ip} if ip else {}
        payload = self._get("/v1/ipinfo", params)
        location = payload.get("location") or {}
        lat = location.get("latitude")
        lon = location.get("longitude")
        if lat is None or lon is None:
            raise GeoapifyError("ipinfo response has no location")
        city = (payload.get("city") or {}).get("name")
        country = (payload.get("country") or {}).get("name")
        return IPLocation(lat=float(lat), lon=float(lon), city=city, country=country)
