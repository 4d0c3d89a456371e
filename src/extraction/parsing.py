"""Recover JSON from free-form LLM responses and validate it against a schema."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)
_decoder = json.JSONDecoder()

EXTRACT_FAILED = "Failed to extract JSON from response"
VALIDATION_FAILED = "JSON validation failed"


@dataclass
class ParseResult(Generic[T]):
    """Outcome of extract-then-validate.

    ``success`` False with an ``error`` starting with ``EXTRACT_FAILED`` means
    the model returned no JSON at all; ``VALIDATION_FAILED`` means it returned
    JSON that broke the contract.
    """

    success: bool
    data: T | None = None
    error: str | None = None


def _loads(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (ValueError, RecursionError):
        return False, None


def _first_balanced_value(text: str) -> tuple[bool, Any]:
    """Decode the first object or array literal embedded in *text*."""
    for match in re.finditer(r"[\[{]", text):
        try:
            value, _ = _decoder.raw_decode(text, match.start())
        except (ValueError, RecursionError):
            continue
        return True, value
    return False, None


def extract_json(text: str | None) -> Any | None:
    """Extract a JSON value from LLM response text.

    Preference order: a fenced code block (optionally labelled ``json``), the
    whole text, then the first balanced object/array found in the text.
    Returns None when nothing parses; never raises for malformed input.
    """
    if not text:
        return None

    for block in _FENCE_RE.finditer(text):
        ok, value = _loads(block.group(1).strip())
        if ok:
            return value

    ok, value = _loads(text.strip())
    if ok:
        return value

    ok, value = _first_balanced_value(text)
    if ok:
        return value

    return None


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def extract_and_validate_json(text: str | None, schema: Any) -> ParseResult[Any]:
    """Extract JSON from *text* and validate it against *schema*.

    Args:
        text: Raw LLM response text.
        schema: A pydantic model class or any type ``TypeAdapter`` accepts
            (e.g. ``list[int]``, a ``TypedDict``).

    Returns:
        ParseResult with the validated data on success, otherwise the error.
    """
    parsed = extract_json(text)
    if parsed is None:
        return ParseResult(success=False, error=EXTRACT_FAILED)

    adapter = schema if isinstance(schema, TypeAdapter) else TypeAdapter(schema)
    try:
        data = adapter.validate_python(parsed)
    except ValidationError as exc:
        return ParseResult(
            success=False,
            error=f"{VALIDATION_FAILED}: {_format_validation_error(exc)}",
        )
    return ParseResult(success=True, data=data)
