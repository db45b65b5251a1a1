# tests/test_configuration.py
"""
Tests for the configuration package.

These tests verify:
1. Defaults carry the story constants the engine is built around.
2. Environment variables override settings fields.
3. The validation helper reports cross-field problems.
"""

from __future__ import annotations

import config
from config.settings import LoomSettings
from config.validator import validate_all


def _settings(**overrides) -> LoomSettings:
    return LoomSettings(GEMINI_API_KEY="test-key", **overrides)


def test_story_constants_defaults():
    s = LoomSettings()

    assert (s.COVER_PAGE, s.MAX_STORY_PAGES, s.BACK_COVER_PAGE, s.TOTAL_PAGES) == (0, 12, 13, 13)
    assert s.DECISION_PAGES == [3, 6, 9]
    assert (s.INITIAL_PAGES, s.READ_AHEAD_PAGES, s.BATCH_SIZE) == (2, 3, 6)
    assert s.CONSISTENCY_RESET_INTERVAL == 5
    assert (s.INITIAL_HOPE, s.INITIAL_TRAUMA, s.INITIAL_INTEGRITY) == (50, 10, 90)


def test_module_constants_mirror_settings():
    assert config.TOTAL_PAGES == config.settings.TOTAL_PAGES


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("BATCH_SIZE", "4")
    monkeypatch.setenv("DECISION_PAGES", "[2, 5]")
    monkeypatch.setenv("SPREAD_MODE", "true")

    s = LoomSettings()

    assert s.BATCH_SIZE == 4
    assert s.DECISION_PAGES == [2, 5]
    assert s.SPREAD_MODE is True


def test_validation_report_is_healthy():
    report = validate_all(_settings())

    assert report["overall_health"] == "healthy"
    assert not report["issues"]["errors"]
    assert not report["issues"]["warnings"]


def test_missing_api_key_is_a_warning():
    report = validate_all(LoomSettings(GEMINI_API_KEY=""))

    assert report["overall_health"] == "warning"
    assert any(i["field"] == "GEMINI_API_KEY" for i in report["issues"]["warnings"])


def test_decision_page_outside_story_is_an_error():
    report = validate_all(_settings(DECISION_PAGES=[3, 13]))

    assert report["overall_health"] == "error"
    assert [i["field"] for i in report["issues"]["errors"]] == ["DECISION_PAGES"]


def test_back_cover_must_be_last_page():
    report = validate_all(_settings(TOTAL_PAGES=14))

    fields = {i["field"] for i in report["issues"]["errors"]}
    assert "BACK_COVER_PAGE" in fields


def test_non_positive_batch_sizes_are_errors():
    report = validate_all(_settings(BATCH_SIZE=0, READ_AHEAD_PAGES=0))

    fields = {i["field"] for i in report["issues"]["errors"]}
    assert {"BATCH_SIZE", "READ_AHEAD_PAGES"} <= fields


def test_graph_settings_checks():
    report = validate_all(_settings(GRAPH_DAMPING_FACTOR=1.0, GRAPH_RANK_ITERATIONS=5))

    assert any(i["field"] == "GRAPH_DAMPING_FACTOR" for i in report["issues"]["errors"])
    assert any(i["field"] == "GRAPH_RANK_ITERATIONS" for i in report["issues"]["warnings"])
