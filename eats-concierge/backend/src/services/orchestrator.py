"""Search lifecycle: locate (optional) -> load -> success / error.

Every search gets a sequence number. Completions from an older sequence are
dropped, so a slow earlier request can never overwrite a newer search. All
methods must be called from the event loop that runs the searches.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Callable, Coroutine, List, Optional

from loguru import logger

from config import Configuration
from errors import LocationUnavailable
from models import (
    PROGRESS_STAGES,
    City,
    LocationDescriptor,
    RecommendationEntity,
    SearchCriteria,
    SearchPhase,
    SearchState,
)
from services.geolocation import GeolocationProvider, PositionOptions
from services.query_builder import build_request
from services.recommender import RecommendationClient

BUSY_MESSAGE = "AI is busy analyzing tasty food. Please try again."
NO_RESULTS_NOTICE = "No restaurants found. Try a different area or cuisine."
LOCATION_DENIED_MESSAGE = "Could not access location. Please check permissions."
GEOLOCATION_UNSUPPORTED_MESSAGE = "Geolocation is not supported on this device."

Listener = Callable[[SearchState], None]


class SearchOrchestrator:
    def __init__(
        self,
        cfg: Configuration,
        client: RecommendationClient,
        geolocation: Optional[GeolocationProvider] = None,
        criteria: Optional[SearchCriteria] = None,
    ) -> None:
        self.cfg = cfg
        self.client = client
        self.geolocation = geolocation
        self._criteria = criteria or SearchCriteria(
            city=City(cfg.default_city), category=cfg.default_category
        )
        self._state = SearchState()
        self._sequence = 0
        self._task: Optional[asyncio.Task] = None
        self._ticker: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def criteria(self) -> SearchCriteria:
        return self._criteria

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every new state. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -- commands ---------------------------------------------------------

    def update_criteria(
        self,
        *,
        city: Optional[City | str] = None,
        category: Optional[str] = None,
        free_text: Optional[str] = None,
        location: Optional[LocationDescriptor] = None,
    ) -> SearchCriteria:
        """Apply a partial update. Picking a category clears free text; changing city drops GPS mode."""
        criteria = self._criteria
        if city is not None:
            criteria = criteria.with_city(city)
        if category is not None:
            criteria = criteria.with_category(category)
        if free_text is not None:
            criteria = criteria.with_free_text(free_text)
        if location is not None:
            criteria = criteria.with_location(location)
        self._criteria = criteria
        return criteria

    def start_city_search(self, criteria: Optional[SearchCriteria] = None) -> asyncio.Task:
        if criteria is not None:
            self._criteria = criteria
        seq = self._begin(SearchPhase.LOADING)
        return self._launch(self._run_fetch(seq, self._criteria))

    def start_gps_search(
        self,
        criteria: Optional[SearchCriteria] = None,
        provider: Optional[GeolocationProvider] = None,
    ) -> Optional[asyncio.Task]:
        """Acquire a position, then search around it.

        Returns None when no geolocation provider is available; the state is
        then already in the error phase.
        """
        if criteria is not None:
            self._criteria = criteria
        provider = provider or self.geolocation
        if provider is None:
            seq = self._supersede()
            logger.warning("search #{} has no geolocation provider", seq)
            self._set(
                SearchState(
                    phase=SearchPhase.ERROR,
                    error_message=GEOLOCATION_UNSUPPORTED_MESSAGE,
                    error_kind=LocationUnavailable.kind,
                    sequence=seq,
                )
            )
            return None
        seq = self._begin(SearchPhase.LOCATING)
        return self._launch(self._run_gps(seq, self._criteria, provider))

    async def wait(self) -> SearchState:
        """Wait until the active search (including any that replace it meanwhile) settles."""
        task = self._task
        while task is not None and not task.done():
            await asyncio.wait({task})
            task = self._task
        return self._state

    def close(self) -> None:
        for task in (self._task, self._ticker):
            if task is not None and not task.done():
                task.cancel()

    # -- lifecycle --------------------------------------------------------

    def _supersede(self) -> int:
        self._sequence += 1
        if self.cfg.cancel_superseded and self._task is not None and not self._task.done():
            self._task.cancel()
        self._stop_ticker()
        return self._sequence

    def _begin(self, phase: SearchPhase) -> int:
        seq = self._supersede()
        self._set(SearchState(phase=phase, sequence=seq))
        self._ticker = asyncio.get_running_loop().create_task(self._tick(seq))
        logger.info("search #{} started phase={} criteria={}", seq, phase.value, self._criteria)
        return seq

    def _launch(self, coro: Coroutine) -> asyncio.Task:
        self._task = asyncio.get_running_loop().create_task(coro)
        return self._task

    def _stop_ticker(self) -> None:
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()
        self._ticker = None

    async def _tick(self, seq: int) -> None:
        while True:
            await asyncio.sleep(self.cfg.progress_interval_sec)
            if seq != self._sequence or not self._state.is_waiting:
                return
            tick = (self._state.progress_tick + 1) % len(PROGRESS_STAGES)
            self._set(replace(self._state, progress_tick=tick))

    def _is_current(self, seq: int, what: str) -> bool:
        if seq != self._sequence:
            logger.warning("discarding stale {} from search #{} (active #{})", what, seq, self._sequence)
            return False
        return True

    def _set(self, state: SearchState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("state listener failed")

    def _succeed(self, seq: int, entities: List[RecommendationEntity]) -> None:
        if not self._is_current(seq, "result"):
            return
        self._stop_ticker()
        logger.info("search #{} succeeded with {} places", seq, len(entities))
        self._set(
            SearchState(
                phase=SearchPhase.SUCCESS,
                results=tuple(entities),
                notice=None if entities else NO_RESULTS_NOTICE,
                sequence=seq,
            )
        )

    def _fail(self, seq: int, exc: BaseException, message: str) -> None:
        if not self._is_current(seq, "failure"):
            return
        self._stop_ticker()
        self._set(
            SearchState(
                phase=SearchPhase.ERROR,
                error_message=message,
                error_kind=getattr(exc, "kind", "unexpected"),
                sequence=seq,
            )
        )

    async def _run_fetch(self, seq: int, criteria: SearchCriteria) -> None:
        spec = build_request(criteria, self.cfg)
        try:
            entities = await self.client.fetch_with_policy(spec)
        except Exception as exc:
            logger.exception("search #{} failed: {}", seq, exc)
            self._fail(seq, exc, BUSY_MESSAGE)
            return
        self._succeed(seq, entities)

    async def _run_gps(self, seq: int, criteria: SearchCriteria, provider: GeolocationProvider) -> None:
        options = PositionOptions(
            high_accuracy=True,
            timeout_sec=self.cfg.geolocation_timeout_sec,
            maximum_age_sec=0.0,
        )
        try:
            position = await asyncio.wait_for(provider.request_position(options), timeout=options.timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("search #{} geolocation timed out after {}s", seq, options.timeout_sec)
            self._fail(seq, LocationUnavailable("timed out"), LOCATION_DENIED_MESSAGE)
            return
        except LocationUnavailable as exc:
            logger.warning("search #{} geolocation unavailable: {}", seq, exc)
            self._fail(seq, exc, LOCATION_DENIED_MESSAGE)
            return
        except Exception as exc:
            logger.exception("search #{} geolocation provider failed: {}", seq, exc)
            self._fail(seq, LocationUnavailable(str(exc)), LOCATION_DENIED_MESSAGE)
            return

        if not self._is_current(seq, "position"):
            return
        live = LocationDescriptor(latitude=position.latitude, longitude=position.longitude, is_live=True)
        criteria = criteria.with_location(live)
        self._criteria = self._criteria.with_location(live)
        self._set(replace(self._state, phase=SearchPhase.LOADING))
        await self._run_fetch(seq, criteria)
