"""
Datetime utilities
Provides timezone-aware datetime functions to replace deprecated datetime.utcnow()
"""
import re
from datetime import datetime, timezone

_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d{2}:\d{2}$|$)")


def utc_now() -> datetime:
    """
    Get current UTC time (replacement for deprecated datetime.utcnow())
    
    Returns:
        datetime: Current UTC time with timezone awareness
    """
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """
    Get current UTC time as ISO format string
    
    Returns:
        str: Current UTC time in ISO format

    Example:
        >>> from esmc.utils.datetime_utils import utc_now_iso
        >>> timestamp = utc_now_iso()
        >>> print(timestamp)
        2025-12-10T10:00:00.123456+00:00
    """
    return datetime.now(timezone.utc).isoformat()


def utc_today() -> str:
    """Current UTC date as YYYY-MM-DD"""
    return datetime.now(timezone.utc).date().isoformat()


def parse_iso(value: str) -> datetime:
    """
    Parse an ISO timestamp, accepting a trailing 'Z'
    
    Naive values are assumed to be UTC. Millisecond precision
    (JavaScript toISOString) is padded to microseconds.
    """
    value = _FRACTION.sub(lambda m: "." + m.group(1).ljust(6, "0")[:6], value.replace("Z", "+00:00"))
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
