"""Helpers for reading semi-structured JSON payloads.

Payloads written by different clients spell the same field differently
(``referenceRange`` vs ``reference_range``). Lookups take an ordered tuple of
accepted aliases and return the first one that is present and not null.
"""

import json
from typing import Any


def read_first(payload: dict[str, Any], aliases: tuple[str, ...]) -> Any:
    """Return the value of the first alias present in payload with a non-null value.

    Args:
        payload: Decoded JSON object.
        aliases: Accepted key spellings, in priority order.

    Returns:
        The value, or None when no alias matches.
    """
    for key in aliases:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def decode_json_text(value: Any) -> Any:
    """Decode a JSON object or array stored as text; other values pass through.

    Scalars stored as text (e.g. "Negative") are returned unchanged even when
    they happen to be valid JSON, so "7" stays the string "7".
    """
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text.startswith(("{", "[")):
        return value
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return value
