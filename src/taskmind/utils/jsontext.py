"""Lenient JSON extraction from model output.

Language models are asked for bare JSON but regularly wrap it in Markdown fences, prepend a
greeting, append an explanation, or stop mid-document. The helpers here recover the JSON value
where that is possible and return ``None`` otherwise; they never raise.
"""

from __future__ import annotations

import json
import re
from typing import Any

from taskmind.logging import get_logger

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)
_CLOSERS = {"{": "}", "[": "]"}

# Cap on how many truncation points are tried when repairing a cut-off document.
_MAX_REPAIR_ATTEMPTS = 64


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced code block, or ``text`` stripped."""

    cleaned = text.strip()
    m = _FENCE_RE.search(cleaned)
    if m:
        return m.group(1).strip()
    return cleaned


def _try_load(candidate: str) -> Any | None:
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None


def _scan(text: str, start: int) -> tuple[list[int], list[tuple[int, str]]]:
    """Walk ``text`` from ``start`` tracking bracket depth outside of strings.

    Returns:
        Positions where the outermost bracket is closed, and for every closing ``}`` at
        depth > 0 the position together with the brackets still open after it.
    """

    balanced_ends: list[int] = []
    partial_ends: list[tuple[int, str]] = []
    stack: list[str] = []
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
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
            stack.append(ch)
        elif ch in ("}", "]"):
            if not stack or _CLOSERS[stack[-1]] != ch:
                # Mismatched bracket: nothing after this point is trustworthy.
                break
            stack.pop()
            if not stack:
                balanced_ends.append(i)
            elif ch == "}":
                partial_ends.append((i, "".join(stack)))

    return balanced_ends, partial_ends


def extract_json_value(text: str, *, opener: str = "{", repair: bool = False) -> Any | None:
    """Extract the JSON value that starts at the first ``opener`` in ``text``.

    Strategy, from strict to lenient:
        1. The fenced or stripped text parses as a whole.
        2. Truncate to the last ``}`` / ``]`` in the text (trailing prose is dropped).
        3. Truncate to the last point where the outermost bracket is balanced.
        4. With ``repair``, cut a truncated document back to its last complete object and
           close the brackets still open there.

    Args:
        text: Raw model output.
        opener: ``"{"`` for an object, ``"["`` for an array.
        repair: Whether to attempt step 4.

    Returns:
        The parsed value, or ``None`` if nothing could be recovered.
    """

    if not text:
        return None

    cleaned = strip_code_fence(text)
    value = _try_load(cleaned)
    if value is not None:
        return value

    start = cleaned.find(opener)
    if start < 0:
        return None

    closer = _CLOSERS[opener]
    last = cleaned.rfind(closer)
    if last > start:
        value = _try_load(cleaned[start : last + 1])
        if value is not None:
            logger.debug("extract_json_value: recovered by truncating to last %s", closer)
            return value

    balanced_ends, partial_ends = _scan(cleaned, start)
    for end in reversed(balanced_ends):
        value = _try_load(cleaned[start : end + 1])
        if value is not None:
            logger.debug("extract_json_value: recovered at balanced offset %d", end)
            return value

    if not repair:
        return None

    for end, still_open in list(reversed(partial_ends))[:_MAX_REPAIR_ATTEMPTS]:
        suffix = "".join(_CLOSERS[ch] for ch in reversed(still_open))
        value = _try_load(cleaned[start : end + 1] + suffix)
        if value is not None:
            logger.warning("extract_json_value: repaired truncated JSON at offset %d", end)
            return value

    return None


def extract_json_object(text: str, *, repair: bool = False) -> dict[str, Any] | None:
    """Extract a JSON object from ``text``; ``None`` if there is none."""

    value = extract_json_value(text, opener="{", repair=repair)
    return value if isinstance(value, dict) else None


def extract_json_array(text: str) -> list[Any] | None:
    """Extract a JSON array from ``text``; ``None`` if there is none."""

    value = extract_json_value(text, opener="[")
    return value if isinstance(value, list) else None
