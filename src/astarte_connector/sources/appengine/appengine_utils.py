"""Utility types and helpers for the AppEngine connector.

This module contains the datastream value types, timestamp parsing and
formatting for RFC3339 with nanosecond precision, and option parsing used
across the connector.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional


DEFAULT_PAGE_SIZE = 10000
"""Largest page the AppEngine datastream endpoint is asked for."""

ZERO_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)
"""Zero-value instant, used when a reception timestamp cannot be parsed."""

_RFC3339_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})[Tt ](?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<tz>[Zz]|[+-]\d{2}:\d{2})$"
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NS_PER_SECOND = 1_000_000_000


class ResultOrder(Enum):
    """Temporal order of the samples within and across datastream pages."""

    ASCENDING = "ascending"
    DESCENDING = "descending"


@dataclass(frozen=True)
class DatastreamValue:
    """One observed datastream sample.

    timestamp_ns keeps the sample time in nanoseconds since the epoch, the
    precision the server works at; `timestamp` holds it truncated to
    microseconds.
    """

    value: Any
    timestamp: datetime
    reception_timestamp: datetime
    timestamp_ns: Optional[int] = field(default=None, compare=False, repr=False)


@dataclass
class DatastreamAggregateValue:
    """One aggregate datastream record, passed through as received."""

    raw: dict = field(default_factory=dict)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_ts(value: str) -> datetime:
    """Parse an RFC3339 timestamp into a timezone-aware datetime.

    Fractional seconds may carry up to nanosecond precision; digits beyond
    microseconds are truncated.

    Raises:
        ValueError: If the string is not a valid RFC3339 timestamp.
    """
    whole_seconds, fraction = _split_rfc3339(value)
    return whole_seconds.replace(microsecond=int(fraction[:6]))


def parse_ts_ns(value: str) -> int:
    """Parse an RFC3339 timestamp into integer nanoseconds since the epoch.

    Raises:
        ValueError: If the string is not a valid RFC3339 timestamp.
    """
    whole_seconds, fraction = _split_rfc3339(value)
    return (whole_seconds - _EPOCH) // timedelta(seconds=1) * _NS_PER_SECOND + int(fraction)


def _split_rfc3339(value: str) -> tuple[datetime, str]:
    """Return the whole-second datetime and the fraction padded to 9 digits."""
    if not isinstance(value, str):
        raise ValueError(f"Expected an RFC3339 string, got {type(value).__name__}")

    match = _RFC3339_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid RFC3339 timestamp: {value!r}")

    fraction = (match.group("fraction") or "")[:9].ljust(9, "0")
    tz = match.group("tz")
    if tz in ("Z", "z"):
        tz = "+00:00"

    return datetime.fromisoformat(f"{match.group('date')}T{match.group('time')}{tz}"), fraction


def datetime_to_ns(value: datetime) -> int:
    return (ensure_aware(value) - _EPOCH) // timedelta(microseconds=1) * 1000


def format_ns(value: int) -> str:
    """Format nanoseconds since the epoch as RFC3339Nano in UTC.

    Trailing zeros of the fractional part are dropped, and the fraction is
    omitted entirely for whole seconds: 2023-01-01T00:00:00.1234567Z.
    """
    seconds, nanos = divmod(value, _NS_PER_SECOND)
    moment = _EPOCH + timedelta(seconds=seconds)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if nanos:
        text += "." + f"{nanos:09d}".rstrip("0")
    return text + "Z"


def ensure_aware(value: datetime) -> datetime:
    """Return the datetime with UTC attached when it carries no timezone."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def isoformat_nano(value: datetime) -> str:
    """Format a datetime as RFC3339Nano in UTC.

    Trailing zeros of the fractional part are dropped, and the fraction is
    omitted entirely for whole seconds: 2023-01-01T00:00:00.1Z.
    """
    value = ensure_aware(value).astimezone(timezone.utc)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    return text + "Z"


def as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "y", "on")


def as_int(value: Optional[str], default: int) -> int:
    """Parse an integer option, falling back to the default on bad input."""
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def clamp_page_size(page_size: int, max_page_size: int = DEFAULT_PAGE_SIZE) -> int:
    return max(1, min(page_size, max_page_size))
