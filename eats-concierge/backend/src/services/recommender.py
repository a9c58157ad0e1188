from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Protocol

from google import genai
from google.genai import types
from hello_agents import HelloAgentsLLM, ToolAwareSimpleAgent
from loguru import logger

from config import DEFAULT_GEMINI_MODEL, Configuration
from errors import UpstreamError
from models import RecommendationEntity, RequestSpec
from services.normalizer import normalize_response


class GenerationBackend(Protocol):
    name: str

    async def generate(self, spec: RequestSpec) -> Optional[str]: ...


class GeminiBackend:
    """Gemini with the Google Maps tool; the grounding hint becomes the retrieval lat/lng."""

    name = "gemini"

    def __init__(self, cfg: Configuration, client: Optional[genai.Client] = None) -> None:
        self.model_id = cfg.llm_model_id or DEFAULT_GEMINI_MODEL
        self.client = client or genai.Client(api_key=cfg.llm_api_key)

    def build_config(self, spec: RequestSpec) -> types.GenerateContentConfig:
        tool_config = None
        if spec.grounding is not None:
            tool_config = types.ToolConfig(
                retrieval_config=types.RetrievalConfig(
                    lat_lng=types.LatLng(
                        latitude=spec.grounding.latitude,
                        longitude=spec.grounding.longitude,
                    )
                )
            )
        return types.GenerateContentConfig(
            system_instruction=spec.system_instruction,
            tools=[types.Tool(google_maps=types.GoogleMaps())],
            tool_config=tool_config,
        )

    async def generate(self, spec: RequestSpec) -> Optional[str]:
        response = await self.client.aio.models.generate_content(
            model=self.model_id,
            contents=spec.prompt,
            config=self.build_config(spec),
        )
        return response.text


class AgentBackend:
    """OpenAI-compatible / Ollama models via hello_agents. No maps tool, so grounding rides in the prompt."""

    name = "agent"

    def __init__(self, cfg: Configuration) -> None:
        kw: Dict[str, Any] = {"temperature": 0.2}
        if cfg.local_llm or cfg.llm_model_id:
            kw["model"] = cfg.local_llm or cfg.llm_model_id
        if cfg.llm_provider:
            kw["provider"] = cfg.llm_provider
        if cfg.llm_base_url:
            kw["base_url"] = cfg.llm_base_url
        elif (cfg.llm_provider or "").lower() == "ollama":
            kw["base_url"] = cfg.sanitized_ollama_url()
        if cfg.llm_api_key:
            kw["api_key"] = cfg.llm_api_key
        self.llm = HelloAgentsLLM(**kw)

    def _run(self, spec: RequestSpec) -> str:
        agent = ToolAwareSimpleAgent(
            name="Concierge",
            llm=self.llm,
            system_prompt=spec.system_instruction,
            enable_tool_calling=False,
        )
        try:
            return agent.run(spec.prompt)
        finally:
            agent.clear_history()

    async def generate(self, spec: RequestSpec) -> Optional[str]:
        return await asyncio.to_thread(self._run, spec)


def init_backend(cfg: Configuration) -> GenerationBackend:
    """Gemini when the provider is google, hello_agents for everything else."""
    cfg.require_llm()
    if cfg.uses_gemini:
        logger.debug("Recommender using Gemini model: {}", cfg.llm_model_id or DEFAULT_GEMINI_MODEL)
        return GeminiBackend(cfg)
    logger.debug("Recommender using agent backend provider={}", cfg.llm_provider or "default")
    return AgentBackend(cfg)


class RecommendationClient:
    def __init__(
        self,
        cfg: Configuration,
        backend: Optional[GenerationBackend] = None,
        retry_delay: float = 0.5,
    ) -> None:
        self.cfg = cfg
        self._backend = backend
        self.retry_delay = retry_delay

    @property
    def backend(self) -> GenerationBackend:
        """Resolved on first use; a missing LLM configuration surfaces on the first fetch."""
        if self._backend is None:
            self._backend = init_backend(self.cfg)
        return self._backend

    async def fetch(self, spec: RequestSpec) -> List[RecommendationEntity]:
        """One generation call, then normalization. An empty array is a valid answer."""
        backend = self.backend
        try:
            raw = await backend.generate(spec)
        except Exception as exc:
            raise UpstreamError(f"{backend.name} generation failed: {exc}") from exc
        entities = normalize_response(raw)
        logger.debug(
            "backend={} subject={!r} grounded={} entities={}",
            backend.name,
            spec.subject,
            spec.grounding is not None,
            len(entities),
        )
        return entities

    async def fetch_with_policy(self, spec: RequestSpec) -> List[RecommendationEntity]:
        """``fetch`` bounded by LLM_TIMEOUT_SEC, retried LLM_RETRIES times on upstream failures only."""
        retries = max(0, self.cfg.llm_retries)
        attempt = 0
        while True:
            attempt += 1
            try:
                return await asyncio.wait_for(self.fetch(spec), timeout=self.cfg.llm_timeout_sec)
            except asyncio.TimeoutError as exc:
                error = UpstreamError(f"generation timed out after {self.cfg.llm_timeout_sec}s")
                error.__cause__ = exc
            except UpstreamError as exc:
                error = exc
            if attempt > retries:
                raise error
            logger.warning("upstream attempt {} failed: {}; retrying", attempt, error)
            await asyncio.sleep(self.retry_delay * attempt)
