"""
AI Helper Utilities
Common utility functions for the trip-planning orchestrator
"""

import math
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def clamp(value: float, lower: float, upper: float) -> float:
    """
    Clamp a value into [lower, upper]

    Example:
        >>> clamp(2.4, 0.3, 2.0)
        2.0
    """
    return max(lower, min(upper, value))


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate text to maximum length

    Args:
        text: Text to truncate
        max_length: Maximum length of the text before the suffix
        suffix: Suffix to add when the text was cut (default: "...")

    Returns:
        str: Truncated text
    """
    if len(text) <= max_length:
        return text

    return text[:max_length].rstrip() + suffix


def trip_length_days(start: datetime, end: datetime) -> int:
    """
    Trip length in whole days, rounded up

    Example:
        >>> trip_length_days(datetime(2025, 6, 1), datetime(2025, 6, 8))
        7
    """
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 86400)


def normalize_place_name(name: str) -> str:
    """
    Capitalize each word of a lower-cased place name

    Example:
        >>> normalize_place_name("new york")
        'New York'
    """
    return " ".join(
        "-".join(part[:1].upper() + part[1:] for part in word.split("-"))
        for word in name.split()
    )


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
