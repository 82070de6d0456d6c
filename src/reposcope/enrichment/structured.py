"""JSON extraction from free-form provider text."""

from __future__ import annotations

import json
import re
from typing import Any

from reposcope.exceptions import StructuredOutputError

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_CLOSERS = {"{": "}", "[": "]"}


def _balanced_span(text: str) -> str | None:
    """Return the first balanced ``{...}`` or ``[...]`` span in ``text``.

    Brackets inside JSON string literals are ignored.
    """
    start = next((i for i, ch in enumerate(text) if ch in _CLOSERS), None)
    if start is None:
        return None

    stack: list[str] = []
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        ch = text[index]
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
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif stack and ch == stack[-1]:
            stack.pop()
            if not stack:
                return text[start : index + 1]
    return None


def extract_json(text: str) -> Any:
    """Parse the JSON object or array embedded in provider output.

    Strips a wrapping markdown code fence, isolates the outermost balanced
    object or array, and parses it. When that fails, trailing commas before
    a closing bracket are removed and parsing is attempted once more.

    Args:
        text: Raw provider response.

    Returns:
        The parsed ``dict`` or ``list``.

    Raises:
        StructuredOutputError: If no JSON value can be recovered.
    """
    candidate = text.strip()
    fence_match = _JSON_FENCE_RE.search(candidate)
    if fence_match:
        candidate = fence_match.group(1).strip()

    span = _balanced_span(candidate)
    if span is None:
        raise StructuredOutputError(
            f"No JSON object or array in response: {text[:200]!r}"
        )

    try:
        return json.loads(span)
    except json.JSONDecodeError:
        pass

    repaired = _TRAILING_COMMA_RE.sub(r"\1", span)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as exc:
        raise StructuredOutputError(
            f"Malformed JSON in response: {exc.msg} at position {exc.pos}"
        ) from exc
