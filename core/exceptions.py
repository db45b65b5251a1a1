# core/exceptions.py
"""Define standardized exception types for the Loom core.

This module provides a small exception hierarchy and helpers used across the
engine to propagate actionable error details without losing the original
exception.
"""

from typing import Any


class LoomCoreError(Exception):
    """Base exception for all Loom engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(LoomCoreError):
    """Raised when settings or lore tables are missing or inconsistent."""


class NarrativeStateError(LoomCoreError):
    """Raised when an operation is invalid for the current story state.

    Example: starting a story before a hero persona has been set.
    """


class GenerativeServiceError(LoomCoreError):
    """Errors raised by text, image, or speech generation adapters."""


class SchemaValidationError(GenerativeServiceError):
    """A generative response did not satisfy the required output schema."""


class StageFailure(LoomCoreError):
    """A pipeline stage (analyst or director) failed for one page."""


class AssetFailure(LoomCoreError):
    """Image or audio synthesis failed for one page."""


class PageFailure(LoomCoreError):
    """A page could not be produced; carries the page number in details."""


def create_error_context(**kwargs: Any) -> dict[str, Any]:
    """Build a context dictionary for structured errors.

    Args:
        **kwargs: Key-value pairs to include.

    Returns:
        A dictionary containing only keys whose values are not `None`.
    """
    return {k: v for k, v in kwargs.items() if v is not None}


def handle_service_error(operation: str, original_error: Exception, **context: Any) -> GenerativeServiceError:
    """Convert an exception from an adapter into a standardized service error.

    Args:
        operation: Name of the generative operation that failed.
        original_error: The caught exception.
        **context: Additional structured context to attach.

    Returns:
        A `GenerativeServiceError` (or `SchemaValidationError` when the text of
        the original error points at malformed output).
    """
    error_details = create_error_context(
        operation=operation,
        original_error=str(original_error),
        error_type=type(original_error).__name__,
        **context,
    )

    lowered = str(original_error).lower()
    if "schema" in lowered or "json" in lowered or "validation" in lowered:
        return SchemaValidationError(f"Malformed response during {operation}", details=error_details)
    return GenerativeServiceError(f"Generative service error during {operation}", details=error_details)
