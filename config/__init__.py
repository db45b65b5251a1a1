# config/__init__.py
"""Expose Loom configuration as stable module-level constants.

This package provides a facade over the underlying Pydantic settings model
defined in [`config.settings`](config/settings.py:1). The primary API is the
`settings` singleton plus a set of module-level constants mirroring its fields.

Configuration precedence:
- Values come from the process environment and may be sourced from a `.env`
  file (loaded on import of [`config.settings`](config/settings.py:1)).
- Field defaults apply otherwise.

Notes:
    Call sites read constants at call time (`config.BATCH_SIZE`) so tests can
    monkeypatch them on this module.
"""

from .settings import (
    DATA_DIR as DATA_DIR,
)
from .settings import (
    LoomSettings as LoomSettings,
)
from .settings import (
    rich_formatter as rich_formatter,
)
from .settings import (
    settings as settings,
)
from .settings import (
    simple_formatter as simple_formatter,
)

GEMINI_API_BASE = settings.GEMINI_API_BASE
GEMINI_API_KEY = settings.GEMINI_API_KEY
TEXT_MODEL = settings.TEXT_MODEL
IMAGE_MODEL = settings.IMAGE_MODEL
SPEECH_MODEL = settings.SPEECH_MODEL
TEMPERATURE_ANALYST = settings.TEMPERATURE_ANALYST
TEMPERATURE_DIRECTOR = settings.TEMPERATURE_DIRECTOR
IMAGE_TEMPERATURE = settings.IMAGE_TEMPERATURE
IMAGE_TOP_P = settings.IMAGE_TOP_P
IMAGE_TOP_K = settings.IMAGE_TOP_K
LLM_RETRY_ATTEMPTS = settings.LLM_RETRY_ATTEMPTS
LLM_RETRY_DELAY_SECONDS = settings.LLM_RETRY_DELAY_SECONDS
HTTPX_TIMEOUT = settings.HTTPX_TIMEOUT
GENERATION_TIMEOUT_SECONDS = settings.GENERATION_TIMEOUT_SECONDS
MAX_CONCURRENT_LLM_CALLS = settings.MAX_CONCURRENT_LLM_CALLS
PRELOAD_CONCURRENCY = settings.PRELOAD_CONCURRENCY
COVER_PAGE = settings.COVER_PAGE
MAX_STORY_PAGES = settings.MAX_STORY_PAGES
BACK_COVER_PAGE = settings.BACK_COVER_PAGE
TOTAL_PAGES = settings.TOTAL_PAGES
INITIAL_PAGES = settings.INITIAL_PAGES
READ_AHEAD_PAGES = settings.READ_AHEAD_PAGES
BATCH_SIZE = settings.BATCH_SIZE
DECISION_PAGES = settings.DECISION_PAGES
CONSISTENCY_RESET_INTERVAL = settings.CONSISTENCY_RESET_INTERVAL
SPREAD_MODE = settings.SPREAD_MODE
INITIAL_HOPE = settings.INITIAL_HOPE
INITIAL_TRAUMA = settings.INITIAL_TRAUMA
INITIAL_INTEGRITY = settings.INITIAL_INTEGRITY
GRAPH_RANK_ITERATIONS = settings.GRAPH_RANK_ITERATIONS
GRAPH_DAMPING_FACTOR = settings.GRAPH_DAMPING_FACTOR
GRAPH_KEY_RELATIONSHIP_THRESHOLD = settings.GRAPH_KEY_RELATIONSHIP_THRESHOLD
GRAPH_KEY_RELATIONSHIP_LIMIT = settings.GRAPH_KEY_RELATIONSHIP_LIMIT
ARCHETYPES_FILE = settings.ARCHETYPES_FILE
LOCATIONS_FILE = settings.LOCATIONS_FILE
TIMELINE_FILE = settings.TIMELINE_FILE
EXPORT_PAGE_WIDTH = settings.EXPORT_PAGE_WIDTH
EXPORT_PAGE_HEIGHT = settings.EXPORT_PAGE_HEIGHT
EXPORT_FILE_NAME = settings.EXPORT_FILE_NAME
BASE_OUTPUT_DIR = settings.BASE_OUTPUT_DIR
LOG_LEVEL_STR = settings.LOG_LEVEL_STR
LOG_FILE = settings.LOG_FILE
ENABLE_RICH_PROGRESS = settings.ENABLE_RICH_PROGRESS
SIMPLE_LOGGING_MODE = settings.SIMPLE_LOGGING_MODE

