# core/logging_config.py
"""Install the root logging handlers for a Loom run.

`setup_loom_logging()` is called once from `main.py`. It always leaves exactly
one console sink (Rich or plain) on the root logger and adds a rotating file
under `BASE_OUTPUT_DIR` unless simple mode is on. Formatting is done by the
structlog `ProcessorFormatter`s defined in `config.settings`.
"""

import logging as stdlib_logging
import logging.handlers
import os

import structlog
from rich.logging import RichHandler

import config
from config import rich_formatter, simple_formatter

QUIET_LIBRARIES = ("httpx", "httpcore", "PIL")
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _console_handler(use_rich: bool) -> stdlib_logging.Handler:
    if use_rich:
        handler: stdlib_logging.Handler = RichHandler(
            rich_tracebacks=True,
            show_path=False,
            markup=True,
            show_time=False,
            show_level=False,
        )
        handler.setFormatter(rich_formatter)
    else:
        handler = stdlib_logging.StreamHandler()
        handler.setFormatter(simple_formatter)
    handler.setLevel(config.LOG_LEVEL_STR)
    return handler


def _file_handler(log_path: str) -> stdlib_logging.Handler:
    os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(config.LOG_LEVEL_STR)
    handler.setFormatter(simple_formatter)
    return handler


def setup_loom_logging() -> None:
    """Replace the root logger's handlers with Loom's console and file sinks.

    Simple mode installs a plain console handler only. Otherwise the console
    uses Rich when `ENABLE_RICH_PROGRESS` is set, and `LOG_FILE` (if any) is
    written under `BASE_OUTPUT_DIR`. A file that cannot be opened is reported
    on the console and skipped.
    """
    root_logger = stdlib_logging.getLogger()
    root_logger.setLevel(config.LOG_LEVEL_STR)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    simple = config.SIMPLE_LOGGING_MODE
    root_logger.addHandler(_console_handler(use_rich=config.ENABLE_RICH_PROGRESS and not simple))

    log_path = None
    if config.LOG_FILE and not simple:
        log_path = os.path.join(config.BASE_OUTPUT_DIR, config.LOG_FILE)
        try:
            root_logger.addHandler(_file_handler(log_path))
        except OSError as e:
            root_logger.error(f"Failed to open log file {log_path}: {e}. Logging to console only.")
            log_path = None

    for name in QUIET_LIBRARIES:
        stdlib_logging.getLogger(name).setLevel(stdlib_logging.WARNING)

    structlog.get_logger(__name__).info(
        "Loom logging ready",
        level=stdlib_logging.getLevelName(root_logger.level),
        simple=simple,
        log_file=log_path,
    )
