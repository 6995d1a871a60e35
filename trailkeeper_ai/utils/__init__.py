"""
Utilities Module
Helper functions for the orchestrator
"""

from .ai_helpers import (
    utcnow,
    as_utc,
    clamp,
    truncate_text,
    trip_length_days,
    normalize_place_name
)

__all__ = [
    "utcnow",
    "as_utc",
    "clamp",
    "truncate_text",
    "trip_length_days",
    "normalize_place_name"
]
