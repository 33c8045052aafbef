# Utilities module

from .time_utils import (
    TimestampParseError,
    format_rfc3339,
    parse_rfc3339,
    utcnow,
)

__all__ = [
    "TimestampParseError",
    "format_rfc3339",
    "parse_rfc3339",
    "utcnow",
]
