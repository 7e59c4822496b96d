"""Extraction of JSON arrays from free-form completion text.

Completion services wrap JSON in prose or markdown fences, and long responses
are sometimes cut off mid-object. extract_json_array() finds the first array
that parses, and for a truncated array keeps every complete element.
"""

import json
from typing import Any, List, Optional
from logger import get_logger

logger = get_logger()

_CLOSERS = {"[": "]", "{": "}"}


class ResponseParseError(ValueError):
    """No JSON array could be recovered from a completion response."""


def _scan(text: str, start: int):
    """Walk a JSON value starting at text[start] ('[').

    Returns:
        Tuple of (end, last_element_end, stack, in_string): end is the index
        of the closing bracket or None if the text ran out; last_element_end
        is the index just after the last complete top-level element.
    """
    stack: List[str] = []
    in_string = False
    escaped = False
    last_element_end = None

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
                if len(stack) == 1:
                    last_element_end = i + 1
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(ch)
        elif ch in ("]", "}"):
            if not stack or _CLOSERS[stack[-1]] != ch:
                return None, None, [], False
            stack.pop()
            if not stack:
                return i, last_element_end, stack, False
            if len(stack) == 1:
                last_element_end = i + 1

    return None, last_element_end, stack, in_string


def _loads_list(candidate: str) -> Optional[list]:
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, list) else None


def _parse_from(text: str, start: int) -> Optional[list]:
    end, last_element_end, stack, in_string = _scan(text, start)

    if end is not None:
        return _loads_list(text[start : end + 1])

    if not stack:
        return None

    # Truncated: keep the complete elements and close the array
    if last_element_end is not None:
        repaired = _loads_list(text[start:last_element_end].rstrip().rstrip(",") + "]")
        if repaired is not None:
            logger.warning(
                f"Completion response was truncated; recovered {len(repaired)} item(s)"
            )
            return repaired

    # Nothing complete: close whatever is still open
    tail = text[start:]
    if in_string:
        tail += '"'
    tail = tail.rstrip().rstrip(",").rstrip(":")
    repaired = _loads_list(tail + "".join(_CLOSERS[opener] for opener in reversed(stack)))
    if repaired is not None:
        logger.warning("Completion response was truncated; closed open structures")
    return repaired


def extract_json_array(text: str) -> List[Any]:
    """Find and parse the first JSON array in a completion response.

    Args:
        text: Raw completion text; may contain prose or code fences.

    Returns:
        The parsed list. Elements are returned as-is and may be any JSON type.

    Raises:
        ResponseParseError: If no array can be recovered.
    """
    if not text:
        raise ResponseParseError("Empty completion response")

    start = text.find("[")
    while start != -1:
        parsed = _parse_from(text, start)
        if parsed is not None:
            return parsed
        start = text.find("[", start + 1)

    raise ResponseParseError("No JSON array found in completion response")
