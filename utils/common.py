# utils/common.py
"""Shared helpers for the Loom engine.

JSON salvage for chatty model responses, strict schema parsing on top of it,
and YAML loading for the lore tables.
"""

from __future__ import annotations

import json
import re
from typing import Any, TypeVar

import structlog
import yaml
from pydantic import BaseModel, ValidationError

from core.exceptions import SchemaValidationError, create_error_context

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_JSON_FENCE_PATTERN = re.compile(
    r"```(?:json)?\s*\n?(.*?)\n?```",
    flags=re.DOTALL | re.IGNORECASE,
)


# --- json helpers ---
def _extract_balanced_json_substring(text: str) -> str | None:
    if not isinstance(text, str) or not text:
        return None

    start_chars = ["{", "["]
    end_chars = {"{": "}", "[": "]"}
    start_pos = min([i for i in (text.find("{"), text.find("[")) if i != -1] or [len(text)])
    if start_pos == len(text):
        return None

    stack: list[str] = []
    end_pos: int | None = None
    in_string = False
    escaped = False
    for idx, ch in enumerate(text[start_pos:], start=start_pos):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
            continue

        if ch in start_chars:
            stack.append(ch)
            continue

        if ch in ("}", "]"):
            if not stack:
                return None
            opening = stack.pop()
            if end_chars[opening] != ch:
                return None
            if not stack:
                end_pos = idx
                break

    if end_pos is None:
        return None

    candidate = text[start_pos : end_pos + 1]
    return candidate if candidate.strip() else None


def extract_json_candidates_from_response(response: str) -> list[tuple[str, str]]:
    """
    Extract candidate JSON strings from a possibly-chatty model response.

    Supports:
    - Pure JSON (object or list)
    - JSON in markdown fences ```json ... ```
    - Embedded valid JSON preceded/followed by commentary (via JSONDecoder.raw_decode)
    - Balanced-bracket substring salvage

    Returns a list of (source, json_string) candidates, ordered from most likely
    to least likely, de-duplicated while preserving order.
    """
    text = (response or "").strip()
    if not text:
        return []

    candidates: list[tuple[str, str]] = [("raw", text)]

    for i, match in enumerate(_JSON_FENCE_PATTERN.finditer(response or ""), start=1):
        block = (match.group(1) or "").strip()
        if block:
            candidates.append((f"fence[{i}]", block))

    decoder = json.JSONDecoder()
    for match in re.finditer(r"[\{\[]", response or ""):
        index = match.start()
        try:
            _obj, end = decoder.raw_decode(response or "", index)
        except json.JSONDecodeError:
            continue
        snippet = (response or "")[index:end].strip()
        if snippet:
            candidates.append((f"raw_decode@{index}", snippet))

    balanced = _extract_balanced_json_substring(response or "")
    if balanced:
        candidates.append(("balanced_substring", balanced))

    seen: set[str] = set()
    unique: list[tuple[str, str]] = []
    for source, candidate in candidates:
        if candidate in seen:
            continue
        seen.add(candidate)
        unique.append((source, candidate))

    return unique


def try_load_json_from_response(
    response: str,
    *,
    expected_root: type | tuple[type, ...] | None = None,
) -> tuple[Any | None, list[tuple[str, str]], list[str]]:
    """
    Try to parse JSON from a model response using multiple extraction strategies.

    Returns:
        (parsed_or_none, candidates_tried, parse_errors)
    """
    candidates = extract_json_candidates_from_response(response)
    if not candidates:
        return None, [], ["empty response"]

    parse_errors: list[str] = []
    for source, candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as error:
            parse_errors.append(f"{source}: JSONDecodeError at pos {error.pos}: {error.msg}")
            continue

        if expected_root is not None and not isinstance(parsed, expected_root):
            parse_errors.append(f"{source}: wrong root type {type(parsed).__name__} (expected {expected_root})")
            continue

        return parsed, candidates, parse_errors

    return None, candidates, parse_errors


def parse_model_from_response(response: str, model_cls: type[ModelT], *, context: str) -> ModelT:
    """Parse a model response into `model_cls`, salvaging embedded JSON.

    Args:
        response: Raw text returned by the text generation service.
        model_cls: Pydantic model describing the required output schema.
        context: Short label used in errors and logs (for example "analyst").

    Returns:
        A validated instance of `model_cls`.

    Raises:
        SchemaValidationError: When no JSON object can be recovered or the
            recovered object does not satisfy the schema.
    """
    parsed, candidates, parse_errors = try_load_json_from_response(response, expected_root=dict)
    if parsed is None:
        raise SchemaValidationError(
            f"{context} response contained no JSON object",
            details=create_error_context(
                candidates=len(candidates),
                parse_errors=parse_errors[:3],
                preview=truncate_for_log(response or "", 120),
            ),
        )
    try:
        return model_cls.model_validate(parsed)
    except ValidationError as error:
        raise SchemaValidationError(
            f"{context} response failed schema validation",
            details=create_error_context(errors=error.errors(include_url=False)[:5]),
        ) from error


def truncate_for_log(s: str, limit: int = 300) -> str:
    """Return a truncated string for logging purposes."""
    if not isinstance(s, str):
        return ""
    return s if len(s) <= limit else s[:limit] + "..."


# --- yaml ---
def load_yaml_file(filepath: str) -> dict[str, Any] | None:
    """Load a YAML mapping from disk.

    Returns `None` (after logging) when the file is missing, unparsable or not a
    mapping; callers decide whether that is fatal.
    """
    if not str(filepath).endswith((".yaml", ".yml")):
        logger.error("File specified is not a YAML file", path=str(filepath))
        return None
    try:
        with open(filepath, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        logger.error("YAML file not found", path=str(filepath))
        return None
    except yaml.YAMLError as e:
        logger.error("Error parsing YAML file", path=str(filepath), error=str(e), exc_info=True)
        return None

    if not isinstance(content, dict):
        logger.error("YAML file must have a mapping as its root element", path=str(filepath))
        return None
    return content
