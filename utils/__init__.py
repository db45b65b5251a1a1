# utils/__init__.py
"""General utility functions for the Loom engine."""

from __future__ import annotations

from .common import (
    extract_json_candidates_from_response,
    load_yaml_file,
    parse_model_from_response,
    truncate_for_log,
    try_load_json_from_response,
)

__all__ = [
    "extract_json_candidates_from_response",
    "load_yaml_file",
    "parse_model_from_response",
    "truncate_for_log",
    "try_load_json_from_response",
]
