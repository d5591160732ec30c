"""
Small parsing helpers shared by the locator, the analyzer and the format
decoder. Upstream JSON is loosely typed (numbers often arrive as strings),
so every accessor here returns None instead of raising.
"""

import json
import re
from typing import Any


def traverse_obj(obj: Any, *paths: tuple, expected_type: type | None = None, default: Any = None) -> Any:
    """
    Return the value at the first path that resolves.

    Each path is a tuple of dict keys and list indices. With
    ``expected_type`` a value of another type counts as missing.

    >>> traverse_obj({"streamingData": {"formats": [{"itag": 18}]}}, ("streamingData", "formats", 0, "itag"))
    18
    """
    for path in paths:
        value = obj
        for key in path:
            if isinstance(value, dict):
                value = value.get(key)
            elif isinstance(value, list) and isinstance(key, int) and -len(value) <= key < len(value):
                value = value[key]
            else:
                value = None
            if value is None:
                break
        if value is None or (expected_type is not None and not isinstance(value, expected_type)):
            continue
        return value
    return default


def int_or_none(v: Any) -> int | None:
    """``"1080"`` -> 1080; booleans, blanks and garbage -> None."""
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v.strip() if isinstance(v, str) else v)
    except (ValueError, TypeError):
        return None


def float_or_none(v: Any) -> float | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (ValueError, TypeError):
        return None


def str_or_none(v: Any) -> str | None:
    if v is None:
        return None
    return str(v).strip() or None


def find_matching_bracket(text: str, start: int) -> int:
    """
    Return the index of the bracket closing the one at ``start``.

    Quoted strings (single, double and backtick) are skipped. Returns -1 when
    the text ends before the bracket is closed.
    """
    opening = text[start]
    closing = {"{": "}", "[": "]", "(": ")"}[opening]
    depth = 0
    in_string = None
    escape = False

    for i in range(start, len(text)):
        c = text[i]
        if escape:
            escape = False
            continue
        if in_string:
            if c == "\\":
                escape = True
            elif c == in_string:
                in_string = None
            continue
        if c in ('"', "'", "`"):
            in_string = c
        elif c == opening:
            depth += 1
        elif c == closing:
            depth -= 1
            if depth == 0:
                return i

    return -1


def search_json(start_pattern: str, text: str, default: Any = None) -> Any:
    """
    Decode the JSON object or array assigned right after ``start_pattern``.

    e.g. ``var ytInitialPlayerResponse = {...};``
    """
    match = re.search(rf"{start_pattern}\s*[=:]\s*", text)
    if not match or match.end() >= len(text) or text[match.end()] not in "{[":
        return default

    end = find_matching_bracket(text, match.end())
    if end < 0:
        return default

    try:
        return json.loads(text[match.end() : end + 1])
    except json.JSONDecodeError:
        return default
