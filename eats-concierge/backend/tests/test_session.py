from __future__ import annotations

import time
from unittest.mock import MagicMock

import pytest

from services.session import SessionManager


def _manager(**kwargs) -> SessionManager:
    return SessionManager(factory=MagicMock(side_effect=lambda: MagicMock()), **kwargs)


def test_get_creates_once_per_session() -> None:
    mgr = _manager()
    first = mgr.get("sess-1")
    assert mgr.get("sess-1") is first
    assert mgr.get("sess-2") is not first
    assert len(mgr) == 2


def test_reset_closes_orchestrator() -> None:
    mgr = _manager()
    orch = mgr.get("sess-2")
    mgr.reset("sess-2")
    orch.close.assert_called_once()
    assert mgr.peek("sess-2") is None


def test_overflow_evicts_least_recent() -> None:
    mgr = _manager(max_sessions=2)
    oldest = mgr.get("a")
    mgr.get("b")
    mgr.get("a")  # touch
    mgr.get("c")
    assert mgr.peek("b") is None
    assert mgr.peek("a") is oldest
    assert len(mgr) == 2


def test_cleanup_by_ttl() -> None:
    mgr = _manager(ttl_sec=1)
    orch = mgr.get("sess-ttl")
    assert "sess-ttl" in mgr._sessions  # type: ignore[attr-defined]

    # force timestamp to be stale
    mgr._last_access["sess-ttl"] = time.time() - 10  # type: ignore[attr-defined]
    assert mgr.peek("sess-ttl") is None
    assert "sess-ttl" not in mgr._sessions  # type: ignore[attr-defined]
    orch.close.assert_called_once()


def test_requires_factory_and_id() -> None:
    with pytest.raises(RuntimeError):
        SessionManager().get("x")
    with pytest.raises(ValueError):
        _manager().get("")


def test_zero_max_sessions_keeps_the_current_one() -> None:
    mgr = _manager(max_sessions=0)
    first = mgr.get("a")
    assert mgr.get("a") is first
    mgr.get("b")
    assert mgr.peek("a") is None
    assert len(mgr) == 1
    first.close.assert_called_once()

    mgr.configure(factory=mgr.factory, max_sessions=-3, ttl_sec=60)
    assert mgr.max_sessions == 1
