from __future__ import annotations

import asyncio
import ipaddress
import json
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import requests
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from loguru import logger
from pydantic import BaseModel, Field

from config import DEFAULT_GEMINI_MODEL, Configuration
from models import CATEGORIES, PROGRESS_STAGES, City, SearchCriteria, SearchState
from services import ui_settings
from services.geoapify import GeoapifyClient, GeoapifyError
from services.geolocation import GeoapifyIPProvider, GeolocationProvider, GeoPosition, ReportedPositionProvider
from services.orchestrator import SearchOrchestrator
from services.recommender import RecommendationClient
from services.session import session_manager

_shared: Dict[str, Any] = {}

SERVICE_UNAVAILABLE = "Search is temporarily unavailable. Please try again later."


def _client(cfg: Configuration) -> RecommendationClient:
    """One recommendation client for all sessions; its backend is built on first search."""
    if "client" not in _shared:
        _shared["client"] = RecommendationClient(cfg)
    return _shared["client"]


def _new_orchestrator(cfg: Configuration) -> SearchOrchestrator:
    return SearchOrchestrator(cfg, _client(cfg))


@asynccontextmanager
async def lifespan(_: FastAPI):
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    ui_settings.init_settings(cfg.settings_path)
    session_manager.configure(
        factory=lambda: _new_orchestrator(cfg),
        max_sessions=cfg.session_max,
        ttl_sec=cfg.session_ttl_sec,
    )
    yield
    _shared.clear()


app = FastAPI(title="Eats Concierge", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class CriteriaPatch(BaseModel):
    city: Optional[City] = Field(None, description="Dubai, Abu Dhabi or Sharjah; resets GPS mode")
    category: Optional[str] = Field(None, description="Category label; clears free text")
    free_text: Optional[str] = Field(None, description="Dish or restaurant; overrides category when non-empty")


class PositionReport(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy_m: Optional[float] = None


class GPSSearchRequest(CriteriaPatch):
    position: Optional[PositionReport] = Field(None, description="Position reported by the device")
    denied_reason: Optional[str] = Field(None, description="Set when the device refused or failed to locate")


class ThemeRequest(BaseModel):
    theme: ui_settings.Theme


def _criteria_payload(criteria: SearchCriteria) -> Dict[str, Any]:
    return {
        "city": criteria.city.value,
        "category": criteria.category,
        "free_text": criteria.free_text,
        "location": {
            "lat": criteria.location.latitude,
            "lng": criteria.location.longitude,
            "is_live": criteria.location.is_live,
        },
    }


def _session_payload(orchestrator: SearchOrchestrator) -> Dict[str, Any]:
    return {"state": orchestrator.state.to_dict(), "criteria": _criteria_payload(orchestrator.criteria)}


def _orchestrator(session_id: str) -> SearchOrchestrator:
    if not session_id.strip():
        raise HTTPException(status_code=400, detail="session_id is required")
    try:
        return session_manager.get(session_id)
    except (ValueError, RuntimeError) as exc:
        logger.exception("session {} unavailable: {}", session_id, exc)
        raise HTTPException(status_code=503, detail=SERVICE_UNAVAILABLE)


def _apply_patch(orchestrator: SearchOrchestrator, patch: CriteriaPatch) -> None:
    orchestrator.update_criteria(city=patch.city, category=patch.category, free_text=patch.free_text)


def _public_ip(host: Optional[str]) -> Optional[str]:
    if not host:
        return None
    try:
        return host if ipaddress.ip_address(host).is_global else None
    except ValueError:
        return None


def _gps_provider(cfg: Configuration, req: GPSSearchRequest, request: Request) -> Optional[GeolocationProvider]:
    if req.position is not None:
        pos = req.position
        return ReportedPositionProvider(GeoPosition(latitude=pos.lat, longitude=pos.lng, accuracy_m=pos.accuracy_m))
    if req.denied_reason:
        return ReportedPositionProvider(denied_reason=req.denied_reason)
    if cfg.geoapify_api_key:
        if "geoapify" not in _shared:
            _shared["geoapify"] = GeoapifyClient(cfg)
        host = request.client.host if request.client else None
        return GeoapifyIPProvider(_shared["geoapify"], ip=_public_ip(host))
    return None


@app.get("/healthz")
def healthz() -> dict:
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    return {"status": "ok", "sessions": len(session_manager)}


@app.get("/health/llm")
def health_llm() -> dict:
    cfg = Configuration.from_env()
    provider = (cfg.llm_provider or "").lower()
    ok = False
    detail = None
    try:
        if provider == "google":
            ok = bool(cfg.llm_api_key)
            detail = cfg.llm_model_id or DEFAULT_GEMINI_MODEL
        elif provider == "ollama":
            base = cfg.ollama_base_url.rstrip("/")
            r = requests.get(f"{base}/api/tags", timeout=5)
            ok = r.ok
            if r.ok:
                detail = r.json().get("models", [])
        elif cfg.llm_base_url:
            # OpenAI-compatible
            r = requests.get(f"{cfg.llm_base_url.rstrip('/')}/models", timeout=5)
            ok = r.ok
    except requests.RequestException as exc:
        ok = False
        detail = str(exc)
    return {"ok": ok, "provider": provider or "unset", "detail": detail}


@app.get("/health/geo")
def health_geo() -> dict:
    cfg = Configuration.from_env()
    if not cfg.geoapify_api_key:
        return {"ok": False, "detail": "GEOAPIFY_API_KEY unset"}
    try:
        found = GeoapifyClient(cfg).ipinfo()
    except GeoapifyError as exc:
        return {"ok": False, "detail": str(exc)}
    return {"ok": True, "detail": found.city}


@app.get("/options")
def options() -> dict:
    return {
        "cities": [c.value for c in City],
        "categories": list(CATEGORIES),
        "progress_stages": list(PROGRESS_STAGES),
    }


@app.get("/sessions/{session_id}/state")
async def session_state(session_id: str) -> dict:
    return _session_payload(_orchestrator(session_id))


@app.patch("/sessions/{session_id}/criteria")
async def update_criteria(session_id: str, patch: CriteriaPatch) -> dict:
    orchestrator = _orchestrator(session_id)
    _apply_patch(orchestrator, patch)
    return _session_payload(orchestrator)


@app.post("/sessions/{session_id}/search/city")
async def search_city(session_id: str, patch: CriteriaPatch, wait: bool = False) -> dict:
    orchestrator = _orchestrator(session_id)
    _apply_patch(orchestrator, patch)
    orchestrator.start_city_search()
    if wait:
        await orchestrator.wait()
    return _session_payload(orchestrator)


@app.post("/sessions/{session_id}/search/gps")
async def search_gps(session_id: str, req: GPSSearchRequest, request: Request, wait: bool = False) -> dict:
    cfg = Configuration.from_env()
    orchestrator = _orchestrator(session_id)
    _apply_patch(orchestrator, req)
    orchestrator.start_gps_search(provider=_gps_provider(cfg, req, request))
    if wait:
        await orchestrator.wait()
    return _session_payload(orchestrator)


@app.get("/sessions/{session_id}/events")
async def session_events(session_id: str, request: Request, until_settled: bool = True):
    """Server-sent events carrying every state change of the session."""
    orchestrator = _orchestrator(session_id)
    queue: asyncio.Queue[SearchState] = asyncio.Queue()
    unsubscribe = orchestrator.subscribe(queue.put_nowait)

    async def event_generator():
        try:
            state = orchestrator.state
            yield f"data: {json.dumps(state.to_dict(), ensure_ascii=False)}\n\n"
            while not (until_settled and not state.is_waiting):
                if await request.is_disconnected():
                    break
                try:
                    state = await asyncio.wait_for(queue.get(), timeout=15.0)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield f"data: {json.dumps(state.to_dict(), ensure_ascii=False)}\n\n"
        finally:
            unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str) -> dict:
    session_manager.reset(session_id)
    return {"deleted": session_id}


@app.get("/settings")
def get_settings() -> dict:
    return ui_settings.get_settings().model_dump()


@app.put("/settings/theme")
def put_theme(req: ThemeRequest) -> dict:
    return ui_settings.set_theme(req.theme).model_dump()


@app.post("/settings/theme/toggle")
def toggle_theme() -> dict:
    return ui_settings.toggle_theme().model_dump()


if __name__ == "__main__":
    import uvicorn
    from dotenv import load_dotenv

    load_dotenv()
    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
