# api/chat.py
"""
Chat API Endpoint
Conversational trip-planning interface plus the learning loop endpoints:
- chat turns
- message ratings and route accept/reject signals
- route modification
- interaction tracking, weights and analytics
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from loguru import logger

from ..agents.trip_orchestrator import TripPlanningOrchestrator, get_orchestrator
from ..config import settings
from ..schemas.ai_schemas import (
    AnalyticsSnapshot,
    ChatRequest,
    ChatResponse,
    ConversationContext,
    GeneratedRoute,
    InteractionPattern,
    PerformanceMetrics,
    RouteFeedback,
    RouteModification,
    TravelPreferences,
    UserFeedback,
)
from ..utils.ai_helpers import utcnow


router = APIRouter(prefix="/api/ai", tags=["chat"])


def orchestrator_dependency(request: Request) -> TripPlanningOrchestrator:
    """The app's orchestrator (set in the lifespan hook), else the process-wide one"""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    return orchestrator or get_orchestrator()


# ============================================
# Request/Response Models
# ============================================

class FeedbackResult(BaseModel):
    matched: bool
    correlation: Optional[str] = None
    pattern_key: Optional[str] = None
    quality_score: Optional[float] = None
    weight: Optional[float] = None


class RouteFeedbackResult(BaseModel):
    updated_weights: Dict[str, float] = Field(default_factory=dict)


class RouteModificationRequest(BaseModel):
    route: GeneratedRoute
    modifications: str = Field(..., min_length=1, max_length=2000)
    session_id: str = Field(..., min_length=1)
    preferences: TravelPreferences = Field(default_factory=TravelPreferences)


class TrackInteractionRequest(BaseModel):
    session_id: str = Field(..., min_length=1)
    pattern: InteractionPattern


class WeightsResponse(BaseModel):
    weights: Dict[str, float]


class RecommendationsResponse(BaseModel):
    metrics: PerformanceMetrics
    recommendations: List[str]


class SessionStateResponse(BaseModel):
    session_id: str
    context: Optional[ConversationContext] = None
    traits: Dict = Field(default_factory=dict)
    patterns: List[InteractionPattern] = Field(default_factory=list)


# ============================================
# API Endpoints
# ============================================

@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    orchestrator: TripPlanningOrchestrator = Depends(orchestrator_dependency)
):
    """
    One planning turn.

    Always answers: service failures are absorbed by the gateway and show up
    only as a lower confidence and a fallback_reason.
    """
    logger.info(f"Chat request: session={request.session_id}, phase={request.context.current_phase.value}")
    return await orchestrator.process_message(request)


@router.post("/feedback", response_model=FeedbackResult)
async def submit_feedback(
    feedback: UserFeedback,
    orchestrator: TripPlanningOrchestrator = Depends(orchestrator_dependency)
):
    """Rate one AI message (1-5)"""
    outcome = await orchestrator.record_feedback(feedback)
    return FeedbackResult(**outcome._asdict())


@router.post("/route-feedback", response_model=RouteFeedbackResult)
async def submit_route_feedback(
    feedback: RouteFeedback,
    orchestrator: TripPlanningOrchestrator = Depends(orchestrator_dependency)
):
    """Accept or reject a generated route"""
    updated = await orchestrator.record_route_feedback(feedback)
    return RouteFeedbackResult(updated_weights=updated)


@router.post("/routes/modify", response_model=RouteModification)
async def modify_route(
    request: RouteModificationRequest,
    orchestrator: TripPlanningOrchestrator = Depends(orchestrator_dependency)
):
    """Rework a route from free-text change requests"""
    return await orchestrator.modify_route(
        request.route,
        request.modifications,
        request.session_id,
        request.preferences
    )


@router.post("/interactions", response_model=InteractionPattern)
async def track_interaction(
    request: TrackInteractionRequest,
    orchestrator: TripPlanningOrchestrator = Depends(orchestrator_dependency)
):
    """Record a UI interaction pattern for a session"""
    return await orchestrator.track_interaction(request.session_id, request.pattern)


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
async def get_session(
    session_id: str,
    orchestrator: TripPlanningOrchestrator = Depends(orchestrator_dependency)
):
    """Committed context, traits and patterns of a known session"""
    registry = orchestrator.registry
    if not registry.has_session(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")

    traits = await registry.get_traits(session_id)
    return SessionStateResponse(
        session_id=session_id,
        context=await registry.committed_context(session_id),
        traits=traits.to_dict() if traits else {},
        patterns=await registry.session_patterns(session_id)
    )


@router.delete("/sessions/{session_id}", status_code=204)
async def end_session(
    session_id: str,
    orchestrator: TripPlanningOrchestrator = Depends(orchestrator_dependency)
):
    """Drop a finished session; 409 while one of its turns is still running"""
    if not orchestrator.registry.has_session(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    if not await orchestrator.end_session(session_id):
        raise HTTPException(status_code=409, detail=f"Session busy: {session_id}")


@router.get("/weights", response_model=WeightsResponse)
async def get_weights(orchestrator: TripPlanningOrchestrator = Depends(orchestrator_dependency)):
    return WeightsResponse(weights=await orchestrator.get_weights())


@router.get("/analytics", response_model=AnalyticsSnapshot)
async def get_analytics(orchestrator: TripPlanningOrchestrator = Depends(orchestrator_dependency)):
    return await orchestrator.get_analytics()


@router.get("/analytics/recommendations", response_model=RecommendationsResponse)
async def get_recommendations(orchestrator: TripPlanningOrchestrator = Depends(orchestrator_dependency)):
    """Performance metrics and what to improve next"""
    return RecommendationsResponse(
        metrics=await orchestrator.get_performance_metrics(),
        recommendations=await orchestrator.get_improvement_recommendations()
    )


@router.get("/health")
async def health_check(orchestrator: TripPlanningOrchestrator = Depends(orchestrator_dependency)):
    """Service status and model gateway state"""
    gateway = orchestrator.gateway
    return {
        "status": "healthy",
        "service": "trailkeeper-ai",
        "model": gateway.live.model,
        "llm": "openai" if gateway.live.available else "fallback-bank",
        "rate_limit_remaining": gateway.rate_limiter.remaining,
        "interactions": len(orchestrator.interactions),
        "model_version": settings.MODEL_VERSION,
        "timestamp": utcnow().isoformat()
    }
