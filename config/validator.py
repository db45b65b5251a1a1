# config/validator.py
"""
Configuration validation utilities for the Loom engine.

This module provides a single public function `validate_all()` that performs
cross-field sanity checks that cannot be expressed purely with Pydantic field
validators (story layout, sampling ranges, resilience knobs) and returns a
structured health report.

The report layout:

{
    "overall_health": "healthy" | "warning" | "error",
    "issues": {
        "errors":   [{ "field": "<field>", "message": "<msg>" }, ...],
        "warnings": [{ "field": "<field>", "message": "<msg>" }, ...],
        "info":     [{ "field": "<field>", "message": "<msg>" }, ...],
    }
}
"""

from __future__ import annotations

from .settings import LoomSettings
from .settings import settings as current_settings


def _add_issue(
    issues: dict[str, list[dict[str, str]]],
    severity: str,
    field: str,
    message: str,
) -> None:
    """Utility to append an issue entry to the report."""
    issues.setdefault(severity, []).append({"field": field, "message": message})


def validate_all(candidate: LoomSettings | None = None) -> dict:
    """
    Validate a settings object (the active one by default).

    Returns a health-report dict with overall status and detailed issue lists.
    """
    issues: dict[str, list[dict[str, str]]] = {"errors": [], "warnings": [], "info": []}
    s = candidate if candidate is not None else current_settings

    if s is None:
        _add_issue(issues, "errors", "settings", "Configuration object not initialized.")
        return {"overall_health": "error", "issues": issues}

    # Story layout
    if s.BACK_COVER_PAGE != s.TOTAL_PAGES:
        _add_issue(
            issues,
            "errors",
            "BACK_COVER_PAGE",
            f"BACK_COVER_PAGE ({s.BACK_COVER_PAGE}) must equal TOTAL_PAGES ({s.TOTAL_PAGES}).",
        )
    if s.MAX_STORY_PAGES >= s.BACK_COVER_PAGE:
        _add_issue(
            issues,
            "errors",
            "MAX_STORY_PAGES",
            f"MAX_STORY_PAGES ({s.MAX_STORY_PAGES}) must be below BACK_COVER_PAGE ({s.BACK_COVER_PAGE}).",
        )
    for page in s.DECISION_PAGES:
        if not (1 <= page <= s.MAX_STORY_PAGES):
            _add_issue(
                issues,
                "errors",
                "DECISION_PAGES",
                f"Decision page {page} is outside the story range 1..{s.MAX_STORY_PAGES}.",
            )

    for name in ("INITIAL_PAGES", "BATCH_SIZE", "READ_AHEAD_PAGES", "CONSISTENCY_RESET_INTERVAL"):
        value = getattr(s, name)
        if value < 1:
            _add_issue(issues, "errors", name, f"{name} must be >= 1; got {value}.")

    # Ledger bounds
    for name in ("INITIAL_HOPE", "INITIAL_TRAUMA", "INITIAL_INTEGRITY"):
        value = getattr(s, name)
        if not (0 <= value <= 100):
            _add_issue(issues, "errors", name, f"{name} must be within 0..100; got {value}.")

    # Graph analysis
    if not (0.0 < s.GRAPH_DAMPING_FACTOR < 1.0):
        _add_issue(
            issues,
            "errors",
            "GRAPH_DAMPING_FACTOR",
            f"GRAPH_DAMPING_FACTOR must be in (0, 1); got {s.GRAPH_DAMPING_FACTOR}.",
        )
    if s.GRAPH_RANK_ITERATIONS < 15:
        _add_issue(
            issues,
            "warnings",
            "GRAPH_RANK_ITERATIONS",
            f"GRAPH_RANK_ITERATIONS ({s.GRAPH_RANK_ITERATIONS}) may be too few to converge.",
        )

    # Temperature ranges: all temperatures should be within [0.0, 2.0]
    for name in ("TEMPERATURE_ANALYST", "TEMPERATURE_DIRECTOR", "IMAGE_TEMPERATURE"):
        value = getattr(s, name)
        if not (0.0 <= value <= 2.0):
            _add_issue(
                issues,
                "warnings",
                name,
                f"{name} = {value} is outside the recommended range 0.0-2.0.",
            )

    # Resilience
    if s.GENERATION_TIMEOUT_SECONDS <= 0:
        _add_issue(issues, "errors", "GENERATION_TIMEOUT_SECONDS", "Timeout must be positive.")
    elif s.GENERATION_TIMEOUT_SECONDS > s.HTTPX_TIMEOUT:
        _add_issue(
            issues,
            "info",
            "GENERATION_TIMEOUT_SECONDS",
            "Stage timeout exceeds HTTPX_TIMEOUT; the HTTP timeout will fire first.",
        )

    if not s.GEMINI_API_KEY:
        _add_issue(
            issues,
            "warnings",
            "GEMINI_API_KEY",
            "GEMINI_API_KEY is empty; Gemini adapters will be rejected by the service.",
        )

    overall = "healthy"
    if issues["errors"]:
        overall = "error"
    elif issues["warnings"]:
        overall = "warning"

    return {
        "overall_health": overall,
        "issues": issues,
    }
