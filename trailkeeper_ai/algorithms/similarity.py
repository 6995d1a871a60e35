"""
Similarity Retrieval Algorithm
Scores stored interactions against a new request and returns the
highest-quality matches.

Preference similarity (0.0-1.0), weighted over the fields present on both sides:
1. Interest overlap (30%) - Jaccard index of interest names
2. Travel style (20%) - exact match
3. Budget range (30%) - overlap of the two ranges relative to their joint span
4. Group size (20%) - exact match
Fields absent on either side are skipped, not counted as zero.

Context similarity (0.0-1.0):
1. Trip length (50%) - 1 - normalized difference in days
2. Total budget (30%) - 1 - normalized difference, only if both sides have one
3. Phase (20%) - same dialogue phase
"""

from typing import NamedTuple, List, Optional, Iterable, TYPE_CHECKING
from loguru import logger

from ..config import settings
from ..schemas.ai_schemas import (
    BudgetRange,
    ChatRequest,
    ConversationContext,
    TrainingDataPoint,
    TravelPreferences,
)
from ..utils.ai_helpers import as_utc, trip_length_days

if TYPE_CHECKING:
    from ..interfaces.interaction_store import InteractionStore


INTEREST_WEIGHT = 0.3
STYLE_WEIGHT = 0.2
BUDGET_RANGE_WEIGHT = 0.3
GROUP_SIZE_WEIGHT = 0.2

DURATION_WEIGHT = 0.5
CONTEXT_BUDGET_WEIGHT = 0.3
PHASE_WEIGHT = 0.2


class SimilarityMatch(NamedTuple):
    """A stored interaction with the scores that admitted it"""
    point: TrainingDataPoint
    preference_similarity: float
    context_similarity: float

    def __repr__(self) -> str:
        return (
            f"SimilarityMatch(quality={self.point.quality_score:.2f}, "
            f"preference={self.preference_similarity:.2f}, "
            f"context={self.context_similarity:.2f})"
        )


def _relative_closeness(a: float, b: float) -> float:
    """1 - |a - b| / max(a, b); two zeros are identical"""
    largest = max(abs(a), abs(b))
    if largest == 0:
        return 1.0
    return max(0.0, 1.0 - abs(a - b) / largest)


def _budget_range_overlap(first: BudgetRange, second: BudgetRange) -> float:
    overlap = max(0.0, min(first.max, second.max) - max(first.min, second.min))
    span = max(first.max, second.max) - min(first.min, second.min)
    if span == 0:
        return 1.0
    return overlap / span


def calculate_preference_similarity(
    first: Optional[TravelPreferences],
    second: Optional[TravelPreferences]
) -> float:
    """
    Calculate how alike two preference sets are (0.0-1.0)

    Example:
        >>> a = TravelPreferences(travel_style="relaxed", group_size=2)
        >>> b = TravelPreferences(travel_style="relaxed", group_size=4)
        >>> calculate_preference_similarity(a, b)
        0.5
    """
    if first is None or second is None:
        return 0.0

    score = 0.0
    evaluated = 0.0

    names_first = {name.lower() for name in first.interest_names}
    names_second = {name.lower() for name in second.interest_names}
    if names_first and names_second:
        jaccard = len(names_first & names_second) / len(names_first | names_second)
        score += jaccard * INTEREST_WEIGHT
        evaluated += INTEREST_WEIGHT

    if first.travel_style and second.travel_style:
        if first.travel_style == second.travel_style:
            score += STYLE_WEIGHT
        evaluated += STYLE_WEIGHT

    if first.budget_range and second.budget_range:
        score += _budget_range_overlap(first.budget_range, second.budget_range) * BUDGET_RANGE_WEIGHT
        evaluated += BUDGET_RANGE_WEIGHT

    if first.group_size and second.group_size:
        if first.group_size == second.group_size:
            score += GROUP_SIZE_WEIGHT
        evaluated += GROUP_SIZE_WEIGHT

    if evaluated == 0:
        return 0.0
    return score / evaluated


def _total_budget(context: ConversationContext, days: int) -> Optional[float]:
    if context.budget is None:
        return None
    if context.budget.total is not None:
        return context.budget.total
    if context.budget.daily is not None:
        return context.budget.daily * days
    return None


def calculate_context_similarity(first: ConversationContext, second: ConversationContext) -> float:
    """Calculate how alike two trip contexts are (0.0-1.0)"""
    days_first = trip_length_days(first.trip_dates.start_date, first.trip_dates.end_date)
    days_second = trip_length_days(second.trip_dates.start_date, second.trip_dates.end_date)

    score = _relative_closeness(days_first, days_second) * DURATION_WEIGHT

    budget_first = _total_budget(first, days_first)
    budget_second = _total_budget(second, days_second)
    if budget_first is not None and budget_second is not None:
        score += _relative_closeness(budget_first, budget_second) * CONTEXT_BUDGET_WEIGHT

    if first.current_phase == second.current_phase:
        score += PHASE_WEIGHT

    return min(score, 1.0)


def rank_similar(
    points: Iterable[TrainingDataPoint],
    preferences: TravelPreferences,
    context: ConversationContext,
    top_k: int = 5,
    preference_threshold: float = 0.6,
    context_threshold: float = 0.5
) -> List[SimilarityMatch]:
    """
    Filter stored points by both similarity thresholds and return the top_k
    by quality score (newest first among equal scores)
    """
    matches = []
    for point in points:
        pref_score = calculate_preference_similarity(point.input.preferences, preferences)
        if pref_score <= preference_threshold:
            continue
        ctx_score = calculate_context_similarity(point.input.context, context)
        if ctx_score <= context_threshold:
            continue
        matches.append(SimilarityMatch(point, pref_score, ctx_score))

    matches.sort(key=lambda match: as_utc(match.point.timestamp), reverse=True)
    matches.sort(key=lambda match: match.point.quality_score, reverse=True)
    return matches[:top_k]


class SimilarityRetriever:
    """
    Finds past interactions that resemble the current request.
    Reads a snapshot of the interaction store so scoring never holds its lock.
    """

    def __init__(
        self,
        store: "InteractionStore",
        preference_threshold: Optional[float] = None,
        context_threshold: Optional[float] = None,
        top_k: Optional[int] = None
    ):
        self.store = store
        self.preference_threshold = (
            settings.PREFERENCE_SIMILARITY_THRESHOLD if preference_threshold is None else preference_threshold
        )
        self.context_threshold = (
            settings.CONTEXT_SIMILARITY_THRESHOLD if context_threshold is None else context_threshold
        )
        self.top_k = settings.SIMILAR_TOP_K if top_k is None else top_k

    async def find_similar(self, request: ChatRequest, k: Optional[int] = None) -> List[TrainingDataPoint]:
        """Top-k similar interactions for a request, sorted by quality score"""
        points = await self.store.snapshot()
        matches = rank_similar(
            points,
            request.preferences,
            request.context,
            top_k=self.top_k if k is None else k,
            preference_threshold=self.preference_threshold,
            context_threshold=self.context_threshold
        )
        logger.debug(f"Similarity retrieval: {len(matches)} of {len(points)} interactions matched")
        return [match.point for match in matches]
