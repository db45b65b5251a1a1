# config/settings.py
"""
Configuration settings for the Loom narrative engine.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import logging as stdlib_logging
import os
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()

DATA_DIR = Path(__file__).parent / "data"


class LoomSettings(BaseSettings):
    """Full configuration for the Loom engine."""

    # Generative service endpoints (Gemini REST API)
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_API_KEY: str = ""

    TEXT_MODEL: str = "gemini-2.5-flash"
    IMAGE_MODEL: str = "gemini-2.5-flash-image"
    SPEECH_MODEL: str = "gemini-2.5-flash-preview-tts"

    # Temperature Settings
    TEMPERATURE_ANALYST: float = 0.4
    TEMPERATURE_DIRECTOR: float = 0.8

    # Image sampling, biased toward low variance for identity consistency
    IMAGE_TEMPERATURE: float = 0.4
    IMAGE_TOP_P: float = 0.8
    IMAGE_TOP_K: int = 32

    # LLM Call Settings & Fallbacks
    LLM_RETRY_ATTEMPTS: int = 3
    LLM_RETRY_DELAY_SECONDS: float = 2.0
    HTTPX_TIMEOUT: float = 120.0
    GENERATION_TIMEOUT_SECONDS: float = 45.0

    # Concurrency and Rate Limiting
    MAX_CONCURRENT_LLM_CALLS: int = 4
    PRELOAD_CONCURRENCY: int = 3

    # Story layout
    COVER_PAGE: int = 0
    MAX_STORY_PAGES: int = 12
    BACK_COVER_PAGE: int = 13
    TOTAL_PAGES: int = 13
    INITIAL_PAGES: int = 2
    READ_AHEAD_PAGES: int = 3
    BATCH_SIZE: int = 6
    DECISION_PAGES: list[int] = Field(default_factory=lambda: [3, 6, 9])
    CONSISTENCY_RESET_INTERVAL: int = 5
    SPREAD_MODE: bool = False

    # Initial ledger
    INITIAL_HOPE: int = 50
    INITIAL_TRAUMA: int = 10
    INITIAL_INTEGRITY: int = 90

    # Knowledge graph analysis
    GRAPH_RANK_ITERATIONS: int = 20
    GRAPH_DAMPING_FACTOR: float = 0.85
    GRAPH_KEY_RELATIONSHIP_THRESHOLD: int = 60
    GRAPH_KEY_RELATIONSHIP_LIMIT: int = 5

    # Data-driven lore tables
    ARCHETYPES_FILE: str = str(DATA_DIR / "archetypes.yaml")
    LOCATIONS_FILE: str = str(DATA_DIR / "locations.yaml")
    TIMELINE_FILE: str = str(DATA_DIR / "timeline.yaml")

    # Export
    EXPORT_PAGE_WIDTH: int = 480
    EXPORT_PAGE_HEIGHT: int = 720
    EXPORT_FILE_NAME: str = "the-forges-loom.pdf"

    # Output
    BASE_OUTPUT_DIR: str = "output"

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="LOG_LEVEL")
    LOG_FILE: str | None = "loom_run.log"
    ENABLE_RICH_PROGRESS: bool = True
    # Minimal logging mode for single-user setups: console only, no rotation/Rich
    SIMPLE_LOGGING_MODE: bool = False

    @model_validator(mode="after")
    def set_dynamic_defaults(self) -> LoomSettings:
        # Optional FAST profile for local experiments: fewer retries, shorter waits.
        # Activate with FAST_PROFILE=true (case-insensitive).
        fast = os.getenv("FAST_PROFILE", "false").lower() in {"1", "true", "yes", "on"}
        if fast:
            object.__setattr__(self, "LLM_RETRY_ATTEMPTS", min(self.LLM_RETRY_ATTEMPTS, 1))
            object.__setattr__(
                self,
                "GENERATION_TIMEOUT_SECONDS",
                min(self.GENERATION_TIMEOUT_SECONDS, 20.0),
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", extra="ignore", populate_by_name=True
    )


settings = LoomSettings()


# Mirror every settings field as a module-level constant
for _field in LoomSettings.model_fields:
    globals()[_field] = getattr(settings, _field)


# Configure structlog to integrate with standard logging and output human-readable messages
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="%m/%d/%Y, %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


# Filter internal structlog fields
def filter_internal_keys(
    logger: Any, name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Remove internal structlog fields from event dict."""
    keys_to_remove = [k for k in event_dict.keys() if k.startswith("_")]
    for key in keys_to_remove:
        event_dict.pop(key, None)
    return event_dict


def _format_context(event_dict: MutableMapping[str, Any], markup: bool) -> str:
    context_parts = []
    for key, value in event_dict.items():
        if key.startswith("_"):
            continue
        if isinstance(value, str) and len(value) > 50:
            value_str = f"{value[:47]}..."
        else:
            value_str = str(value)
        context_parts.append(f"[dim]{key}[/dim]={value_str}" if markup else f"{key}={value_str}")
    return f"({', '.join(context_parts)})" if context_parts else ""


_LEVEL_STYLES = {"ERROR": "red", "CRITICAL": "red", "WARNING": "yellow", "INFO": "green"}


def _render_line(event_dict: MutableMapping[str, Any], markup: bool) -> str:
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)

    level = str(event_dict.pop("level", "INFO")).upper()
    timestamp = event_dict.pop("timestamp", "")
    logger_name = event_dict.pop("logger", "")
    event = event_dict.pop("event", "")

    parts = [timestamp] if timestamp else []
    if logger_name:
        short_name = logger_name.rsplit(".", 1)[-1]
        parts.append(f"[cyan]{short_name}[/cyan]" if markup else f"[{short_name}]")

    style = _LEVEL_STYLES.get(level)
    parts.append(f"[{style}]{level}[/{style}]" if markup and style else level)
    if event:
        parts.append(f"[bold]{event}[/bold]" if markup else str(event))

    context = _format_context(event_dict, markup=markup)
    if context:
        parts.append(context)
    return " ".join(parts)


def simple_log_format_rich(
    logger: Any, name: str, event_dict: MutableMapping[str, Any]
) -> str:
    """Console line with Rich markup."""
    return _render_line(event_dict, markup=True)


def simple_log_format_plain(
    logger: Any, name: str, event_dict: MutableMapping[str, Any]
) -> str:
    """File line without markup."""
    return _render_line(event_dict, markup=False)


_foreign_pre_chain = [
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="%m/%d/%Y, %H:%M:%S"),
    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
]

# Formatter for file output (plain text, no Rich markup)
simple_formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=_foreign_pre_chain,
    processors=[
        filter_internal_keys,
        simple_log_format_plain,
    ],
)

# Formatter for Rich console output (with color markup)
rich_formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=_foreign_pre_chain,
    processors=[
        filter_internal_keys,
        simple_log_format_rich,
    ],
)

stdlib_logging.getLogger().setLevel(settings.LOG_LEVEL_STR)
