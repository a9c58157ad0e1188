from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Optional

from loguru import logger

from services.orchestrator import SearchOrchestrator

OrchestratorFactory = Callable[[], SearchOrchestrator]


class SessionManager:
    """Simple in-memory registry: one search orchestrator per session."""

    def __init__(
        self,
        factory: Optional[OrchestratorFactory] = None,
        max_sessions: int = 500,
        ttl_sec: int = 3600,
    ) -> None:
        self._sessions: "OrderedDict[str, SearchOrchestrator]" = OrderedDict()
        self._last_access: dict[str, float] = {}
        self.factory = factory
        self.max_sessions = max(1, max_sessions)
        self.ttl_sec = ttl_sec

    def configure(self, factory: OrchestratorFactory, max_sessions: int, ttl_sec: int) -> None:
        self.factory = factory
        self.max_sessions = max(1, max_sessions)
        self.ttl_sec = ttl_sec

    def get(self, session_id: str) -> SearchOrchestrator:
        """Return the session's orchestrator, creating it on first use."""
        if not session_id:
            raise ValueError("session_id is required")
        self._cleanup()
        orchestrator = self._sessions.get(session_id)
        if orchestrator is None:
            if self.factory is None:
                raise RuntimeError("SessionManager has no orchestrator factory configured")
            orchestrator = self.factory()
            self._sessions[session_id] = orchestrator
            self._evict_overflow()
        self._sessions.move_to_end(session_id)
        self._last_access[session_id] = time.time()
        return orchestrator

    def peek(self, session_id: str) -> Optional[SearchOrchestrator]:
        self._cleanup()
        return self._sessions.get(session_id)

    def reset(self, session_id: str) -> None:
        """Drop a session and cancel anything it still has in flight."""
        if not session_id:
            return
        orchestrator = self._sessions.pop(session_id, None)
        self._last_access.pop(session_id, None)
        if orchestrator is not None:
            orchestrator.close()

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict_overflow(self) -> None:
        while len(self._sessions) > self.max_sessions:
            sid, _ = next(iter(self._sessions.items()))
            logger.debug("evicting session {} (max_sessions={})", sid, self.max_sessions)
            self.reset(sid)

    def _cleanup(self) -> None:
        """Remove expired sessions."""
        now = time.time()
        expired = [
            sid for sid, last in self._last_access.items()
            if now - last > self.ttl_sec
        ]
        for sid in expired:
            self.reset(sid)

# Global singleton
session_manager = SessionManager()
