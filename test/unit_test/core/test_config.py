from __future__ import annotations

import pytest

from homesearch_ai.core.config import DEFAULT_RECOGNIZED_AMENITIES, Settings


def test_settings_defaults() -> None:
    s = Settings()

    assert s.min_query_length == 10
    assert s.places_radius_meters == 20000
    assert s.polish_response is False
    assert "hospital" in s.recognized_amenities


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOMESEARCH_MIN_QUERY_LENGTH", "4")
    monkeypatch.setenv("HOMESEARCH_POLISH_RESPONSE", "true")
    monkeypatch.setenv("HOMESEARCH_RECOGNIZED_AMENITIES", '["park", "gym"]')

    s = Settings()

    assert s.min_query_length == 4
    assert s.polish_response is True
    assert s.recognized_amenities == ["park", "gym"]


def test_grouped_configs_follow_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOMESEARCH_LLM_MODEL", "test")
    monkeypatch.setenv("HOMESEARCH_LLM_TEMPERATURE", "0.7")
    monkeypatch.setenv("HOMESEARCH_PLACES_RADIUS_METERS", "5000")

    s = Settings()

    assert s.llm.model == "test"
    assert s.llm.temperature == 0.7
    assert s.search.places_radius_meters == 5000
    assert s.search.recognized_amenities == DEFAULT_RECOGNIZED_AMENITIES
