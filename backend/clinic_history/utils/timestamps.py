"""Lenient timestamp parsing.

Source rows come from stores that do not agree on a timestamp format: some
columns are real ``timestamptz``, legacy rows hold ISO strings, and a few hold
free text. Everything that is not a recognisable date becomes ``None`` so a
single bad row can never abort sorting or aggregation.
"""

from datetime import date, datetime, time, timezone
from typing import Any

from clinic_history.constants import EPOCH



def parse_timestamp(value: Any) -> datetime | None:
    """Coerce a raw timestamp to an aware UTC datetime.

    Accepts datetimes (naive values are assumed UTC), dates, and ISO-8601
    strings including a trailing 'Z'. Anything else yields None.

    Examples:
        >>> parse_timestamp("2024-06-15T10:00:00Z")
        datetime.datetime(2024, 6, 15, 10, 0, tzinfo=datetime.timezone.utc)
        >>> parse_timestamp("not-a-date") is None
        True
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def first_timestamp(*values: Any) -> datetime | None:
    """Return the first value in the chain that parses to a timestamp."""
    for value in values:
        parsed = parse_timestamp(value)
        if parsed is not None:
            return parsed
    return None


def update_last(current: datetime | None, candidate: datetime | None) -> datetime | None:
    """Rolling-max update: keep the later of two optional timestamps."""
    if candidate is None:
        return current
    if current is None or candidate > current:
        return candidate
    return current


def parse_clock_time(value: Any) -> time | None:
    """Parse an 'HH:MM' or 'HH:MM:SS' string; None when unparseable."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return time.fromisoformat(value.strip())
    except ValueError:
        return None


def recency_key(value: Any) -> tuple[bool, datetime]:
    """Sort key that puts unparseable or missing timestamps first in ascending order.

    Use with ``reverse=True`` for most-recent-first with nulls last.
    """
    parsed = parse_timestamp(value)
    return (parsed is not None, parsed or EPOCH)
