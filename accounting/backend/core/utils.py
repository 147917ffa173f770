"""
Core Utilities.

Shared helpers used across the backend. All datetimes are timezone-naive
and assumed to be UTC.
"""

import re
from datetime import datetime, timezone

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-naive datetime.

    Returns:
        Current UTC time with tzinfo stripped
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def is_uuid(value: str) -> bool:
    """True when the value looks like a UUID."""
    return bool(UUID_PATTERN.match(value))


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user search text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def round_money(value: float) -> float:
    """Round an amount to two decimal places."""
    return round(value, 2)


def normalize_email(email: str) -> str:
    """Emails are stored stripped and lower-cased."""
    return email.strip().lower()
