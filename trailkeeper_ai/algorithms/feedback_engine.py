"""
Feedback & Weight Engine
Turns explicit ratings and route accept/reject signals into quality-score
and pattern-weight updates.

Single feedback (rating 1-5):
1. Correlate to a recorded turn by message_id, else the newest turn within
   the recency window (5 minutes)
2. Re-blend the quality score: 0.3 x score + 0.7 x (avg rating - 1) / 4
3. Rating >= 4: quality +0.1 (max 1.0), pattern weight +0.05
   Rating <= 2: quality -0.2 (min 0.1), pattern weight -0.1
   Rating 3: blend only

Batch passes:
- Interactions (>= 10 stored): last 50 split into high (> 0.8) and low (< 0.5)
  quality, grouped by pattern key, groups of >= 3 nudged by +/-0.1
- Routes (>= 5 route feedbacks): last 20 grouped by pattern key, groups of
  >= 3 with acceptance > 0.8 nudged +0.1, < 0.3 nudged -0.1

All weights stay within the WeightStore bounds.
"""

import asyncio
import json
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, NamedTuple, Optional, Tuple

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from ..config import settings
from ..interfaces.interaction_store import InteractionStore, find_by_message_id, most_recent_within
from ..interfaces.kv_store import KeyValueStore, USER_FEEDBACK_KEY, ROUTE_FEEDBACK_KEY
from ..interfaces.weight_store import WeightStore
from ..schemas.ai_schemas import PerformanceMetrics, RouteFeedback, TrainingDataPoint, UserFeedback
from ..utils.ai_helpers import clamp
from .pattern_key import encode_pattern_key, route_pattern_key


_feedback_adapter = TypeAdapter(List[UserFeedback])
_route_feedback_adapter = TypeAdapter(List[RouteFeedback])


def _from_settings(name: str):
    return field(default_factory=lambda: getattr(settings, name))


@dataclass
class LearningConfig:
    """Constants of the feedback loop; each default is read from settings at construction"""
    recency_window: float = _from_settings("FEEDBACK_RECENCY_WINDOW")
    blend_original: float = _from_settings("QUALITY_BLEND_ORIGINAL")
    blend_feedback: float = _from_settings("QUALITY_BLEND_FEEDBACK")
    positive_quality_delta: float = _from_settings("POSITIVE_QUALITY_DELTA")
    negative_quality_delta: float = _from_settings("NEGATIVE_QUALITY_DELTA")
    quality_floor: float = _from_settings("QUALITY_FLOOR")
    positive_weight_delta: float = _from_settings("POSITIVE_WEIGHT_DELTA")
    negative_weight_delta: float = _from_settings("NEGATIVE_WEIGHT_DELTA")
    batch_weight_delta: float = _from_settings("BATCH_WEIGHT_DELTA")
    batch_min_group: int = _from_settings("BATCH_MIN_GROUP")
    batch_min_interactions: int = _from_settings("BATCH_MIN_INTERACTIONS")
    batch_recent_interactions: int = _from_settings("BATCH_RECENT_INTERACTIONS")
    batch_high_quality: float = _from_settings("BATCH_HIGH_QUALITY")
    batch_low_quality: float = _from_settings("BATCH_LOW_QUALITY")
    route_batch_min_feedback: int = _from_settings("ROUTE_BATCH_MIN_FEEDBACK")
    route_batch_recent: int = _from_settings("ROUTE_BATCH_RECENT")
    route_accept_high: float = _from_settings("ROUTE_ACCEPT_HIGH")
    route_accept_low: float = _from_settings("ROUTE_ACCEPT_LOW")

    # Performance metrics windows
    metrics_interactions: int = 100
    metrics_ratings: int = 50
    metrics_route_feedback: int = 20
    accurate_quality: float = 0.7

    # Recommendation targets
    satisfaction_target: float = 0.7
    completion_target: float = 0.6
    accuracy_target: float = 0.8


class FeedbackOutcome(NamedTuple):
    """What a single rating changed"""
    matched: bool
    correlation: Optional[str] = None  # "message_id" or "recency"
    pattern_key: Optional[str] = None
    quality_score: Optional[float] = None
    weight: Optional[float] = None

    def __repr__(self) -> str:
        if not self.matched:
            return "FeedbackOutcome(unmatched)"
        return (
            f"FeedbackOutcome(via={self.correlation}, key={self.pattern_key}, "
            f"quality={self.quality_score:.2f}, weight={self.weight})"
        )


def calculate_updated_quality_score(
    point: TrainingDataPoint,
    original_weight: float = 0.3,
    feedback_weight: float = 0.7
) -> float:
    """
    Blend the stored score with the point's average rating

    Example:
        A point at 0.5 with one rating of 5 -> 0.3 * 0.5 + 0.7 * 1.0 = 0.85
    """
    if not point.feedback:
        return point.quality_score

    average_rating = sum(f.rating for f in point.feedback) / len(point.feedback)
    feedback_score = (average_rating - 1) / 4
    return point.quality_score * original_weight + feedback_score * feedback_weight


def group_by_pattern(points: Iterable[TrainingDataPoint]) -> Dict[str, List[TrainingDataPoint]]:
    groups: Dict[str, List[TrainingDataPoint]] = defaultdict(list)
    for point in points:
        groups[encode_pattern_key(point.input.preferences)].append(point)
    return groups


class FeedbackEngine:
    """
    Applies feedback to the interaction store and the weight table.
    Owns the bounded user-feedback and route-feedback logs.
    """

    def __init__(
        self,
        interactions: InteractionStore,
        weights: WeightStore,
        kv_store: KeyValueStore,
        config: Optional[LearningConfig] = None,
        feedback_capacity: Optional[int] = None,
        route_feedback_capacity: Optional[int] = None
    ):
        self.interactions = interactions
        self.weights = weights
        self.kv_store = kv_store
        self.config = config or LearningConfig()

        self._feedback: Deque[UserFeedback] = deque(
            maxlen=feedback_capacity or settings.FEEDBACK_PERSIST_LIMIT
        )
        self._route_feedback: Deque[RouteFeedback] = deque(
            maxlen=route_feedback_capacity or settings.ROUTE_FEEDBACK_PERSIST_LIMIT
        )
        self._lock = asyncio.Lock()

    async def load(self):
        """Restore the feedback logs"""
        feedback = await self._load_list(USER_FEEDBACK_KEY, _feedback_adapter)
        route_feedback = await self._load_list(ROUTE_FEEDBACK_KEY, _route_feedback_adapter)
        async with self._lock:
            self._feedback.clear()
            self._feedback.extend(feedback)
            self._route_feedback.clear()
            self._route_feedback.extend(route_feedback)
        logger.info(
            f"FeedbackEngine loaded {len(feedback)} ratings and {len(route_feedback)} route feedbacks"
        )

    async def _load_list(self, key: str, adapter: TypeAdapter) -> list:
        raw = await self.kv_store.get(key)
        if not raw:
            return []
        try:
            return adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring corrupt persisted {key}: {e.error_count()} errors")
            return []

    # ============================================
    # Single feedback
    # ============================================

    async def record_feedback(self, feedback: UserFeedback) -> FeedbackOutcome:
        """
        Store a rating and apply it to the turn it refers to

        Args:
            feedback: Rating on one AI message

        Returns:
            FeedbackOutcome describing the quality and weight change
        """
        async with self._lock:
            self._feedback.append(feedback)
            await self._persist_feedback()

        async with self.interactions.transaction() as points:
            point = find_by_message_id(points, feedback.message_id)
            correlation = "message_id"
            if point is None:
                point = most_recent_within(points, self.config.recency_window)
                correlation = "recency"

            if point is None:
                logger.info(f"Feedback for {feedback.message_id} matched no recorded interaction")
                return FeedbackOutcome(matched=False)

            point.feedback = point.feedback + [feedback]
            blended = calculate_updated_quality_score(
                point,
                self.config.blend_original,
                self.config.blend_feedback
            )
            point.quality_score = self._apply_rating_delta(blended, feedback.rating)
            quality_score = point.quality_score
            pattern_key = encode_pattern_key(point.input.preferences)

        weight_delta = self._weight_delta(feedback.rating)
        if weight_delta:
            weight = await self.weights.nudge(pattern_key, weight_delta)
        else:
            weight = await self.weights.get(pattern_key)

        outcome = FeedbackOutcome(True, correlation, pattern_key, quality_score, weight)
        logger.info(f"Applied rating {feedback.rating}: {outcome!r}")
        return outcome

    def _apply_rating_delta(self, score: float, rating: int) -> float:
        if rating >= 4:
            return min(1.0, score + self.config.positive_quality_delta)
        if rating <= 2:
            return clamp(score - self.config.negative_quality_delta, self.config.quality_floor, 1.0)
        return score

    def _weight_delta(self, rating: int) -> float:
        if rating >= 4:
            return self.config.positive_weight_delta
        if rating <= 2:
            return -self.config.negative_weight_delta
        return 0.0

    # ============================================
    # Route feedback
    # ============================================

    async def record_route_feedback(self, feedback: RouteFeedback) -> Dict[str, float]:
        """Store an accept/reject signal and run the route batch pass"""
        async with self._lock:
            self._route_feedback.append(feedback)
            await self._persist_route_feedback()
            recent = list(self._route_feedback)

        logger.info(f"Route {feedback.route_id} {'accepted' if feedback.accepted else 'rejected'}")
        return await self.run_route_batch_pass(recent)

    async def run_route_batch_pass(self, route_feedback: Optional[List[RouteFeedback]] = None) -> Dict[str, float]:
        """
        Nudge route weights from acceptance ratios of recent route feedback

        Returns:
            Dict of route pattern key -> new weight for every key nudged
        """
        if route_feedback is None:
            async with self._lock:
                route_feedback = list(self._route_feedback)

        if len(route_feedback) < self.config.route_batch_min_feedback:
            return {}

        recent = route_feedback[-self.config.route_batch_recent:]
        groups: Dict[str, List[RouteFeedback]] = defaultdict(list)
        for item in recent:
            groups[route_pattern_key(item.preferences)].append(item)

        deltas: List[Tuple[str, float]] = []
        for key, group in groups.items():
            if len(group) < self.config.batch_min_group:
                continue
            acceptance = sum(1 for item in group if item.accepted) / len(group)
            if acceptance > self.config.route_accept_high:
                deltas.append((key, self.config.batch_weight_delta))
            elif acceptance < self.config.route_accept_low:
                deltas.append((key, -self.config.batch_weight_delta))

        accepted = sum(1 for item in recent if item.accepted)
        logger.debug(
            f"Route pattern analysis: {len(route_feedback)} total, "
            f"recent acceptance {accepted / len(recent):.2f}, {len(groups)} patterns"
        )
        return await self.weights.nudge_many(deltas)

    # ============================================
    # Interaction batch pass
    # ============================================

    async def on_interaction_recorded(self) -> Dict[str, float]:
        """Hook run after every stored turn"""
        if len(self.interactions) < self.config.batch_min_interactions:
            return {}
        recent = await self.interactions.recent(self.config.batch_recent_interactions)
        return await self.run_batch_pass(recent)

    async def run_batch_pass(self, points: List[TrainingDataPoint]) -> Dict[str, float]:
        """
        Nudge weights of pattern keys that keep producing high or low quality turns

        Args:
            points: Recent interactions to analyze

        Returns:
            Dict of pattern key -> new weight for every key nudged
        """
        high_quality = [p for p in points if p.quality_score > self.config.batch_high_quality]
        low_quality = [p for p in points if p.quality_score < self.config.batch_low_quality]

        deltas: List[Tuple[str, float]] = []
        for key, group in group_by_pattern(high_quality).items():
            if len(group) >= self.config.batch_min_group:
                deltas.append((key, self.config.batch_weight_delta))
        for key, group in group_by_pattern(low_quality).items():
            if len(group) >= self.config.batch_min_group:
                deltas.append((key, -self.config.batch_weight_delta))

        logger.debug(
            f"Pattern analysis: {len(points)} recent, {len(high_quality)} high quality, "
            f"{len(low_quality)} low quality, {len(deltas)} patterns nudged"
        )
        return await self.weights.nudge_many(deltas)

    # ============================================
    # Reads & metrics
    # ============================================

    async def get_weights(self) -> Dict[str, float]:
        return await self.weights.snapshot()

    async def feedback_log(self) -> List[UserFeedback]:
        async with self._lock:
            return list(self._feedback)

    async def route_feedback_log(self) -> List[RouteFeedback]:
        async with self._lock:
            return list(self._route_feedback)

    async def get_performance_metrics(self) -> PerformanceMetrics:
        """
        Accuracy: share of the last 100 turns with quality > 0.7
        User satisfaction: mean of the last 50 ratings / 5
        Completion rate: acceptance share of the last 20 route feedbacks
        (window sizes and the quality bar come from the LearningConfig)
        """
        recent_points = await self.interactions.recent(self.config.metrics_interactions)
        async with self._lock:
            recent_ratings = list(self._feedback)[-self.config.metrics_ratings:]
            recent_routes = list(self._route_feedback)[-self.config.metrics_route_feedback:]

        accuracy = (
            sum(1 for p in recent_points if p.quality_score > self.config.accurate_quality) / len(recent_points)
            if recent_points else 0.0
        )
        satisfaction = (
            sum(f.rating for f in recent_ratings) / len(recent_ratings) / 5
            if recent_ratings else 0.0
        )
        completion = (
            sum(1 for f in recent_routes if f.accepted) / len(recent_routes)
            if recent_routes else 0.0
        )
        return PerformanceMetrics(
            accuracy=round(accuracy, 3),
            user_satisfaction=round(satisfaction, 3),
            completion_rate=round(completion, 3),
            sample_sizes={
                "interactions": len(recent_points),
                "ratings": len(recent_ratings),
                "route_feedback": len(recent_routes),
            }
        )

    async def get_improvement_recommendations(self) -> List[str]:
        metrics = await self.get_performance_metrics()
        recommendations = []

        if metrics.user_satisfaction < self.config.satisfaction_target:
            recommendations.append("Improve response personalization based on user preferences")
        if metrics.completion_rate < self.config.completion_target:
            recommendations.append("Improve route quality and user engagement")
        if metrics.accuracy < self.config.accuracy_target:
            recommendations.append("Retrain model with recent high-quality data")

        return recommendations

    async def reset(self):
        async with self._lock:
            self._feedback.clear()
            self._route_feedback.clear()
            await self.kv_store.delete(USER_FEEDBACK_KEY)
            await self.kv_store.delete(ROUTE_FEEDBACK_KEY)

    async def _persist_feedback(self):
        payload = json.dumps([f.model_dump(mode="json") for f in self._feedback])
        await self.kv_store.set(USER_FEEDBACK_KEY, payload)

    async def _persist_route_feedback(self):
        payload = json.dumps([f.model_dump(mode="json") for f in self._route_feedback])
        await self.kv_store.set(ROUTE_FEEDBACK_KEY, payload)
