# agents/trip_orchestrator.py
"""
Trip Planning Orchestrator (chat-facing)
Runs one conversational turn end to end:
1. Serialize on the session (turns of a session never interleave)
2. Phase Manager computes the next phase from the message
3. Prompt Composer builds the prompt (with similarity retrieval)
4. Model Gateway answers live or from the fallback bank
5. The turn is recorded in the background; recording failures are
   logged and never affect the response

Also the entry point for feedback, route feedback, interaction tracking,
route modification and analytics.
"""

import asyncio
import json
import re
import time
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional, Set

from loguru import logger
from pydantic import ValidationError

from ..algorithms.feedback_engine import FeedbackEngine, FeedbackOutcome, LearningConfig
from ..algorithms.similarity import SimilarityRetriever
from ..config import settings
from ..interfaces.interaction_store import InteractionStore
from ..interfaces.kv_store import KeyValueStore, create_kv_store
from ..interfaces.session_registry import SessionRegistry
from ..interfaces.weight_store import WeightStore
from ..llm.gateway import ModelGateway
from ..llm.phase_manager import PhaseManager
from ..llm.prompt_composer import PromptComposer
from ..llm.prompts import ROUTE_MODIFICATION_PROMPT
from ..llm.quick_actions import generate_quick_actions
from ..schemas.ai_schemas import (
    AIResponse,
    AnalyticsSnapshot,
    ChatRequest,
    ChatResponse,
    ConversationContext,
    GeneratedRoute,
    InteractionPattern,
    PerformanceMetrics,
    Phase,
    RouteFeedback,
    RouteModification,
    SessionUpdate,
    TrainingDataPoint,
    TrainingInput,
    TrainingOutput,
    TravelPreferences,
    TripDates,
    UserFeedback,
)
from ..utils.ai_helpers import utcnow


DEFAULT_MODIFICATION_MESSAGE = "Hier ist deine angepasste Route!"

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


# ============================================
# Helpers
# ============================================

def parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """First JSON object in a model answer, fenced or bare"""
    if not text:
        return None

    candidates = [match.group(1) for match in _FENCED_JSON.finditer(text)]
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def extract_route(text: str) -> Optional[GeneratedRoute]:
    """
    Route embedded in a live answer, if it validates

    Accepts either the route object itself or {"route": {...}}.
    """
    parsed = parse_json_object(text)
    if not parsed:
        return None
    payload = parsed.get("route", parsed)
    if not isinstance(payload, dict) or "destinations" not in payload:
        return None

    payload = {"id": f"route-{uuid.uuid4().hex[:8]}", "name": "Reiseroute", **payload}
    try:
        return GeneratedRoute.model_validate(payload)
    except ValidationError as e:
        logger.debug(f"Embedded route did not validate: {e.error_count()} errors")
        return None


def merge_preferences(base: TravelPreferences, update: TravelPreferences) -> TravelPreferences:
    """Overwrite per field with whatever the update carries; never deletes"""
    changes = {name: getattr(update, name) for name in update.model_dump(exclude_defaults=True)}
    if not changes:
        return base
    return base.model_copy(update=changes)


def generate_conversation_summary(preferences: TravelPreferences) -> str:
    parts = []
    if preferences.interests:
        parts.append(f"Interessiert sich für: {', '.join(preferences.interest_names)}.")
    if preferences.travel_style:
        parts.append(f"Reisestil: {preferences.travel_style.value}.")
    if preferences.budget_range:
        budget = preferences.budget_range
        parts.append(f"Budget: {budget.min:g}-{budget.max:g} {budget.currency}.")
    return " ".join(parts)


# ============================================
# Orchestrator
# ============================================

class TripPlanningOrchestrator:
    """
    Wires the stores, learning components and model gateway together.
    Every collaborator can be injected; defaults come from settings.
    """

    def __init__(
        self,
        kv_store: Optional[KeyValueStore] = None,
        gateway: Optional[ModelGateway] = None,
        phase_manager: Optional[PhaseManager] = None,
        interaction_capacity: Optional[int] = None,
        learning_config: Optional[LearningConfig] = None,
        registry: Optional[SessionRegistry] = None
    ):
        self.kv_store = kv_store or create_kv_store()
        self.gateway = gateway or ModelGateway()
        self.phase_manager = phase_manager or PhaseManager()

        self.interactions = InteractionStore(self.kv_store, capacity=interaction_capacity)
        self.weights = WeightStore(self.kv_store)
        self.registry = registry if registry is not None else SessionRegistry()
        self.retriever = SimilarityRetriever(self.interactions)
        self.feedback_engine = FeedbackEngine(self.interactions, self.weights, self.kv_store, config=learning_config)
        self.composer = PromptComposer(self.retriever, self.registry, self.weights)

        self._pending: Set[asyncio.Task] = set()

    async def load(self):
        """Restore persisted interactions, weights and feedback logs"""
        await self.interactions.load()
        await self.weights.load()
        await self.feedback_engine.load()

    # ============================================
    # Chat turn
    # ============================================

    async def process_message(self, request: ChatRequest) -> ChatResponse:
        """
        Handle one chat turn

        Args:
            request: ChatRequest with message, session id, context,
                preferences and recent history

        Returns:
            ChatResponse with the answer and the updated context the caller
            should persist
        """
        start = time.perf_counter()

        async with self.registry.turn(request.session_id) as state:
            context = self.registry.effective_context(state, request.context)
            if context is not request.context:
                request = request.model_copy(update={"context": context})

            next_phase = self.phase_manager.next_phase(context.current_phase, request.message)
            prompt = await self.composer.compose(request, next_phase)

            result = await self.gateway.invoke(
                prompt,
                context.model_copy(update={"current_phase": next_phase})
            )

            route = result.route
            if route is None and not result.is_fallback and next_phase == Phase.ROUTE_GENERATION:
                route = extract_route(result.text)
                if route is not None:
                    route = route.model_copy(update={"model_version": result.model_used})

            collected = merge_preferences(context.collected_preferences, request.preferences)
            summary = generate_conversation_summary(collected) or context.conversation_summary
            updated_context = context.model_copy(update={
                "current_phase": next_phase,
                "last_activity": utcnow(),
                "conversation_summary": summary,
                "collected_preferences": collected,
                "destination": self.composer.committed_destination(request),
                "home_base": context.home_base or settings.DEFAULT_HOME_BASE,
            })
            state.context = updated_context

        response = AIResponse(
            message=result.text,
            message_id=f"msg-{uuid.uuid4().hex}",
            route=route,
            quick_actions=result.quick_actions or generate_quick_actions(next_phase),
            phase=next_phase,
            confidence=result.confidence,
            processing_time_ms=round((time.perf_counter() - start) * 1000, 2),
            model_used=result.model_used,
            tokens_used=result.tokens_used,
            fallback_reason=result.fallback_reason
        )
        logger.info(
            f"Turn {request.session_id}: {context.current_phase.value} -> {next_phase.value} "
            f"via {result.route_name} ({response.processing_time_ms}ms)"
        )

        self._schedule_recording(request, response)
        return ChatResponse(response=response, session=SessionUpdate(context=updated_context))

    def _schedule_recording(self, request: ChatRequest, response: AIResponse):
        task = asyncio.create_task(self._record_turn(request, response))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _record_turn(self, request: ChatRequest, response: AIResponse):
        try:
            point = TrainingDataPoint(
                message_id=response.message_id,
                session_id=request.session_id,
                input=TrainingInput(
                    preferences=request.preferences,
                    context=request.context,
                    user_message=request.message
                ),
                output=TrainingOutput(
                    response=response.message,
                    route=response.route,
                    actions=response.quick_actions
                ),
                quality_score=response.confidence,
                model_version=settings.MODEL_VERSION
            )
            await self.interactions.append(point)
            await self.registry.update_traits(request.session_id, request.preferences)
            await self.feedback_engine.on_interaction_recorded()
        except Exception as e:
            logger.error(f"Failed to record interaction {response.message_id}: {e}")

    async def drain(self):
        """Wait for every background recording started so far"""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ============================================
    # Route modification
    # ============================================

    async def modify_route(
        self,
        route: GeneratedRoute,
        modifications: str,
        session_id: str,
        preferences: Optional[TravelPreferences] = None
    ) -> RouteModification:
        """
        Ask the model to rework a route

        The unchanged route comes back (modified=False) when the answer is a
        fallback or carries no valid route.
        """
        preferences = preferences or TravelPreferences()
        prompt = ROUTE_MODIFICATION_PROMPT.format(
            route_json=route.model_dump_json(exclude_none=True),
            modifications=modifications,
            preferences_json=preferences.model_dump_json(exclude_defaults=True),
            language=settings.RESPONSE_LANGUAGE
        )

        committed = await self.registry.committed_context(session_id)
        if committed is not None:
            context = committed.model_copy(update={"current_phase": Phase.ROUTE_REFINEMENT})
        else:
            today = utcnow()
            context = ConversationContext(
                trip_dates=TripDates(
                    start_date=today,
                    end_date=today + timedelta(days=max(route.total_duration, 1))
                ),
                current_phase=Phase.ROUTE_REFINEMENT
            )

        result = await self.gateway.invoke(prompt, context)
        if result.is_fallback:
            return RouteModification(route=route, message=result.text, modified=False)

        parsed = parse_json_object(result.text)
        new_route = extract_route(result.text)
        if new_route is None:
            logger.warning(f"Route modification for {session_id} returned no usable route")
            return RouteModification(route=route, message=result.text, modified=False)

        message = (parsed or {}).get("message") or DEFAULT_MODIFICATION_MESSAGE
        new_route = new_route.model_copy(update={"model_version": result.model_used})
        logger.info(f"Route {route.id} modified for {session_id}")
        return RouteModification(route=new_route, message=str(message), modified=True)

    # ============================================
    # Feedback & tracking
    # ============================================

    async def record_feedback(self, feedback: UserFeedback) -> FeedbackOutcome:
        return await self.feedback_engine.record_feedback(feedback)

    async def record_route_feedback(self, feedback: RouteFeedback) -> Dict[str, float]:
        return await self.feedback_engine.record_route_feedback(feedback)

    async def track_interaction(self, session_id: str, pattern: InteractionPattern) -> InteractionPattern:
        return await self.registry.track_interaction(session_id, pattern)

    async def end_session(self, session_id: str) -> bool:
        return await self.registry.end_session(session_id)

    async def get_weights(self) -> Dict[str, float]:
        return await self.feedback_engine.get_weights()

    # ============================================
    # Analytics
    # ============================================

    async def get_analytics(self) -> AnalyticsSnapshot:
        points = await self.interactions.snapshot()
        average = sum(p.quality_score for p in points) / len(points) if points else 0.0
        return AnalyticsSnapshot(
            total_interactions=len(points),
            average_quality_score=round(average, 4),
            user_patterns=await self.registry.all_traits(),
            global_patterns=await self.registry.global_patterns(),
            model_version=settings.MODEL_VERSION
        )

    async def get_performance_metrics(self) -> PerformanceMetrics:
        return await self.feedback_engine.get_performance_metrics()

    async def get_improvement_recommendations(self) -> List[str]:
        return await self.feedback_engine.get_improvement_recommendations()

    async def export_training_data(self, min_quality: float = 0.6) -> List[TrainingDataPoint]:
        """Only points above the quality bar leave the process"""
        points = await self.interactions.snapshot()
        return [p for p in points if p.quality_score > min_quality]

    async def import_training_data(self, points: List[TrainingDataPoint]) -> int:
        """Append external points through the bounded store; returns the new size"""
        size = await self.interactions.extend(points)
        logger.info(f"Imported {len(points)} training points ({size} stored)")
        return size

    async def reset(self):
        """Clear everything learned and re-seed the weight table"""
        await self.drain()
        await self.interactions.clear()
        await self.feedback_engine.reset()
        await self.weights.reset()
        await self.registry.reset()
        logger.info("Orchestrator state reset")

    async def aclose(self):
        await self.drain()
        await self.gateway.aclose()
        close = getattr(self.kv_store, "close", None)
        if close is not None:
            await close()


# ============================================
# Singleton
# ============================================

_orchestrator: Optional[TripPlanningOrchestrator] = None


def get_orchestrator() -> TripPlanningOrchestrator:
    """Get or create the process-wide orchestrator"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = TripPlanningOrchestrator()
    return _orchestrator


async def process_chat(request: ChatRequest) -> ChatResponse:
    """Convenience function using the process-wide orchestrator"""
    return await get_orchestrator().process_message(request)
