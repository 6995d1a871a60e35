"""
Preference Pattern Key
Derives a stable string key from a preference set, used to index pattern
weights and to group historical interactions.

Key layout: "<interests>|<style>|<budget bucket>"
- interests: lower-cased interest names, sorted, comma-joined ("none" if empty)
- style: travel style value ("unknown" if unset)
- budget bucket: min/max floored to multiples of 50 ("unknown" if unset)

Example:
    culture,history|moderate|100-200
"""

import math
from typing import Optional

from ..schemas.ai_schemas import TravelPreferences, BudgetRange

BUDGET_BUCKET_SIZE = 50
ROUTE_KEY_PREFIX = "route:"


def budget_bucket(budget_range: Optional[BudgetRange], bucket_size: int = BUDGET_BUCKET_SIZE) -> str:
    """
    Floor a budget range to bucket boundaries

    Example:
        >>> budget_bucket(BudgetRange(min=120, max=180))
        '100-150'
    """
    if budget_range is None:
        return "unknown"
    low = int(math.floor(budget_range.min / bucket_size) * bucket_size)
    high = int(math.floor(budget_range.max / bucket_size) * bucket_size)
    return f"{low}-{high}"


def encode_pattern_key(preferences: Optional[TravelPreferences]) -> str:
    """Encode a preference set into its pattern key"""
    if preferences is None:
        preferences = TravelPreferences()

    names = sorted({name.strip().lower() for name in preferences.interest_names if name.strip()})
    interests = ",".join(names) if names else "none"
    style = preferences.travel_style.value if preferences.travel_style else "unknown"

    return f"{interests}|{style}|{budget_bucket(preferences.budget_range)}"


def route_pattern_key(preferences: Optional[TravelPreferences]) -> str:
    """Key used for route-acceptance weights, kept apart from response weights"""
    return f"{ROUTE_KEY_PREFIX}{encode_pattern_key(preferences)}"
