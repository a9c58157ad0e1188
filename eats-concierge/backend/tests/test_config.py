from __future__ import annotations

import pytest

from config import Configuration


def test_from_env_reads_and_coerces(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "google")
    monkeypatch.setenv("LLM_API_KEY", "abcdefgh12345678")
    monkeypatch.setenv("LLM_TIMEOUT_SEC", "12.5")
    monkeypatch.setenv("CANCEL_SUPERSEDED", "no")
    monkeypatch.setenv("SEARCH_RADIUS_KM", "5")
    cfg = Configuration.from_env()
    assert cfg.uses_gemini
    assert cfg.llm_timeout_sec == 12.5
    assert cfg.cancel_superseded is False
    assert cfg.search_radius_km == 5.0
    assert cfg.geolocation_timeout_sec == 10.0
    assert cfg.progress_interval_sec == 1.5


def test_overrides_win_and_none_is_ignored(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RESULT_COUNT", "30")
    cfg = Configuration.from_env({"result_count": 12, "min_rating": None})
    assert cfg.result_count == 12
    assert cfg.min_rating == 4.0


def test_require_llm() -> None:
    with pytest.raises(ValueError):
        Configuration().require_llm()
    with pytest.raises(ValueError):
        Configuration(llm_provider="google").require_llm()
    Configuration(llm_provider="ollama", local_llm="qwen2.5").require_llm()


def test_log_summary_masks_key() -> None:
    cfg = Configuration(llm_provider="google", llm_api_key="abcdefgh12345678")
    summary = cfg.log_summary()
    assert "abcdefgh12345678" not in summary
    assert "abcd...5678" in summary


def test_sanitized_ollama_url() -> None:
    assert Configuration(ollama_base_url="http://box:11434/").sanitized_ollama_url() == "http://box:11434/v1"
