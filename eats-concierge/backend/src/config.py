from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field

from utils import mask_secret, parse_bool

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"


class Configuration(BaseModel):
    # LLM (google = Gemini with maps grounding; anything else goes through hello_agents)
    llm_provider: Optional[str] = Field(default=None)
    llm_api_key: Optional[str] = Field(default=None)
    llm_model_id: Optional[str] = Field(default=None)
    llm_base_url: Optional[str] = Field(default=None)
    local_llm: Optional[str] = Field(default=None)
    # native ollama base (without /v1)
    ollama_base_url: str = Field(default="http://localhost:11434")
    llm_timeout_sec: float = Field(default=45.0)
    llm_retries: int = Field(default=1)

    # Geoapify (IP based position lookup)
    geoapify_api_key: Optional[str] = Field(default=None)
    geoapify_base_url: str = Field(default="https://api.geoapify.com")
    geoapify_timeout: int = Field(default=10)

    # Search shape
    search_radius_km: float = Field(default=8.0)
    result_count: int = Field(default=30)
    min_rating: float = Field(default=4.0)
    default_city: str = Field(default="Dubai")
    default_category: str = Field(default="Trending")

    # Orchestrator
    geolocation_timeout_sec: float = Field(default=10.0)
    progress_interval_sec: float = Field(default=1.5)
    cancel_superseded: bool = Field(default=True)

    # Sessions / settings
    session_ttl_sec: int = Field(default=3600)
    session_max: int = Field(default=500)
    settings_path: Optional[str] = Field(default=None)

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "llm_provider": os.getenv("LLM_PROVIDER"),
            "llm_api_key": os.getenv("LLM_API_KEY"),
            "llm_model_id": os.getenv("LLM_MODEL_ID"),
            "llm_base_url": os.getenv("LLM_BASE_URL"),
            "local_llm": os.getenv("LOCAL_LLM"),
            "ollama_base_url": os.getenv("OLLAMA_BASE_URL"),
            "llm_timeout_sec": os.getenv("LLM_TIMEOUT_SEC"),
            "llm_retries": os.getenv("LLM_RETRIES"),
            "geoapify_api_key": os.getenv("GEOAPIFY_API_KEY"),
            "geoapify_base_url": os.getenv("GEOAPIFY_BASE_URL"),
            "geoapify_timeout": os.getenv("GEOAPIFY_TIMEOUT"),
            "search_radius_km": os.getenv("SEARCH_RADIUS_KM"),
            "result_count": os.getenv("RESULT_COUNT"),
            "min_rating": os.getenv("MIN_RATING"),
            "default_city": os.getenv("DEFAULT_CITY"),
            "default_category": os.getenv("DEFAULT_CATEGORY"),
            "geolocation_timeout_sec": os.getenv("GEOLOCATION_TIMEOUT_SEC"),
            "progress_interval_sec": os.getenv("PROGRESS_INTERVAL_SEC"),
            "cancel_superseded": os.getenv("CANCEL_SUPERSEDED"),
            "session_ttl_sec": os.getenv("SESSION_TTL_SEC"),
            "session_max": os.getenv("SESSION_MAX"),
            "settings_path": os.getenv("SETTINGS_PATH"),
        }

        bool_fields = {"cancel_superseded"}

        for k, v in env_map.items():
            if v is None:
                continue
            if k in bool_fields:
                raw[k] = parse_bool(v)
            else:
                raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    @property
    def uses_gemini(self) -> bool:
        return (self.llm_provider or "").lower() == "google"

    def require_llm(self) -> None:
        if self.uses_gemini and not self.llm_api_key:
            raise ValueError("LLM_API_KEY is required for the google provider")
        if not (self.llm_provider or self.llm_base_url or self.local_llm):
            raise ValueError("LLM_PROVIDER (or LLM_BASE_URL / LOCAL_LLM) is required")

    def log_summary(self) -> str:
        return (
            "provider=%s model=%s timeout=%s retries=%s api_key=%s geoapify=%s radius_km=%s results=%s"
            % (
                self.llm_provider or "unset",
                self.llm_model_id or "default",
                self.llm_timeout_sec,
                self.llm_retries,
                mask_secret(self.llm_api_key),
                bool(self.geoapify_api_key),
                self.search_radius_km,
                self.result_count,
            )
        )

    def sanitized_ollama_url(self) -> str:
        base = (self.ollama_base_url or "http://localhost:11434").rstrip("/")
        if not base.endswith("/v1"):
            base = f"{base}/v1"
        return base
