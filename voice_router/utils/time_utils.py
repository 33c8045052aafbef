"""
Timestamp helpers for identity records.

Auth times are stored as RFC3339 strings. Parsing is strict about the UTC
offset: a timestamp without one cannot be compared against the current time
and is rejected.
"""

import re
from datetime import datetime, timedelta, timezone


class TimestampParseError(ValueError):
    """Raised when a stored timestamp is not valid RFC3339."""
    pass


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_rfc3339(moment: datetime) -> str:
    """
    Format a datetime as an RFC3339 string with second precision.

    Naive datetimes are assumed to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


_RFC3339_PATTERN = re.compile(
    r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})[Tt]"
    r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>[Zz]|(?P<sign>[+-])(?P<offset_hour>\d{2}):(?P<offset_minute>\d{2}))",
    re.ASCII
)


def parse_rfc3339(value: str) -> datetime:
    """
    Parse an RFC3339 timestamp into an aware datetime.

    Only the RFC3339 profile is accepted: full date, ``T`` separator, seconds
    and an explicit offset. Other ISO 8601 forms (basic format, week dates,
    missing seconds, comma fractions) are rejected. Fractions of any length
    are accepted and truncated to microseconds.

    Args:
        value: Timestamp such as ``2024-05-01T12:00:00Z`` or
            ``2024-05-01T08:00:00.250-04:00``

    Returns:
        Timezone-aware datetime

    Raises:
        TimestampParseError: If the value is empty, malformed or has no offset
    """
    if not isinstance(value, str) or not value.strip():
        raise TimestampParseError("Timestamp is empty")

    match = _RFC3339_PATTERN.fullmatch(value)
    if match is None:
        raise TimestampParseError(f"Invalid RFC3339 timestamp: {value!r}")

    fraction = match.group("fraction") or ""
    microsecond = int(fraction[:6].ljust(6, "0")) if fraction else 0

    try:
        if match.group("offset") in ("Z", "z"):
            tz = timezone.utc
        else:
            offset_hour = int(match.group("offset_hour"))
            offset_minute = int(match.group("offset_minute"))
            if offset_hour > 23 or offset_minute > 59:
                raise ValueError("UTC offset out of range")
            offset = timedelta(hours=offset_hour, minutes=offset_minute)
            tz = timezone(-offset if match.group("sign") == "-" else offset)

        return datetime(
            int(match.group("year")),
            int(match.group("month")),
            int(match.group("day")),
            int(match.group("hour")),
            int(match.group("minute")),
            int(match.group("second")),
            microsecond,
            tzinfo=tz
        )
    except ValueError as e:
        raise TimestampParseError(f"Invalid RFC3339 timestamp {value!r}: {e}")
