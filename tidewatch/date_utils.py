"""Shared timestamp parsing, relative-time and duration helpers."""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any

_DURATION_RE = re.compile(r"^(\d+)(m|h|d|w|mo|y)$")
_HOURS_PER_UNIT: dict[str, float] = {
    "m": 1 / 60,
    "h": 1,
    "d": 24,
    "w": 24 * 7,
    "mo": 24 * 30,
    "y": 24 * 365,
}
_EPOCH_MILLIS_FLOOR = 1e11


class DurationFormatError(ValueError):
    """Raised when a duration string does not match ``<integer><unit>``."""


def _format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_datetime_token(token: str) -> datetime | None:
    cleaned = token.strip()
    if not cleaned:
        return None
    try:
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in ("%Y/%m/%d", "%m/%d/%Y", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(cleaned, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def utc_now_iso() -> str:
    return _format_datetime_utc(datetime.now(timezone.utc))


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO strings or epoch numbers (seconds or milliseconds) as aware UTC."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) >= _EPOCH_MILLIS_FLOOR else value
        try:
            return datetime.fromtimestamp(float(seconds), timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        parsed = _parse_datetime_token(value)
        if parsed is None:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def normalize_timestamp(value: Any) -> str:
    """Return a record timestamp as a string, or ``""`` when it carries none.

    Strings are kept verbatim; epoch numbers are rendered as ISO-8601 UTC.
    """
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = parse_timestamp(value)
        return _format_datetime_utc(parsed) if parsed else ""
    return ""


def hours_since(value: Any, now: datetime | None = None) -> float | None:
    """Age of *value* in hours, or ``None`` when it cannot be parsed."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    current = now or datetime.now(timezone.utc)
    return (current - parsed).total_seconds() / 3600


def format_relative_time(timestamp: Any, now: datetime | None = None) -> str:
    """Humanise *timestamp*, e.g. ``"just now"``, ``"5m ago"``, ``"3d ago"``."""
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return "unknown"
    current = now or datetime.now(timezone.utc)

    seconds = math.floor((current - parsed).total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    weeks = days // 7
    months = days // 30
    years = days // 365

    if seconds < 60:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    if weeks < 4:
        return f"{weeks}w ago"
    if months < 12:
        return f"{months}mo ago"
    return f"{years}y ago"


def parse_duration_hours(value: str) -> float:
    """Convert ``4d``/``2w``/``1mo``/``1y`` style strings into hours.

    Months are 30 days and years 365 days.
    """
    match = _DURATION_RE.match((value or "").strip())
    if not match:
        raise DurationFormatError(
            f"Invalid time format: {value!r}. Use <integer><unit> with unit one of "
            "m, h, d, w, mo, y (for example: 30m, 4d, 2w, 1mo, 1y)"
        )
    amount = int(match.group(1))
    return amount * _HOURS_PER_UNIT[match.group(2)]
