# schemas/ai_schemas.py
"""
Pydantic v2 schemas for the conversational trip-planning orchestrator
Covers the dialogue context, preferences, generated routes, the chat
request/response contract and the learning records (training data points,
user feedback, route feedback, interaction patterns)
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..utils.ai_helpers import as_utc, clamp, utcnow


# ============================================
# Enums
# ============================================

class Phase(str, Enum):
    """Stages of the planning dialogue"""
    WELCOME = "welcome"
    PREFERENCES_COLLECTION = "preferences_collection"
    ROUTE_GENERATION = "route_generation"
    ROUTE_REFINEMENT = "route_refinement"
    FINALIZATION = "finalization"
    COMPLETED = "completed"


class TravelStyle(str, Enum):
    RELAXED = "relaxed"
    MODERATE = "moderate"
    ACTIVE = "active"


class FeedbackType(str, Enum):
    ROUTE_QUALITY = "route_quality"
    RESPONSE_ACCURACY = "response_accuracy"
    USEFULNESS = "usefulness"
    OVERALL = "overall"


class ErrorKind(str, Enum):
    """Why a turn was answered from the fallback bank"""
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRANSIENT_SERVICE_ERROR = "transient_service_error"
    MISSING_CREDENTIALS = "missing_credentials"
    MALFORMED_FALLBACK_CONTENT = "malformed_fallback_content"


# ============================================
# Preferences
# ============================================

class InterestCategory(BaseModel):
    """A weighted interest ("Kultur", "Strand", ...)"""
    id: Optional[str] = None
    name: str
    weight: float = Field(5.0, ge=0, le=10)  # 1-10 importance
    subcategories: List[str] = Field(default_factory=list)


class BudgetRange(BaseModel):
    min: float = Field(0, ge=0)
    max: float = Field(0, ge=0)
    currency: str = "EUR"
    type: str = "total"  # "total" or "daily"
    flexibility: str = "flexible"  # "strict", "flexible", "very_flexible"

    @model_validator(mode="after")
    def _check_order(self) -> "BudgetRange":
        if self.min > self.max:
            raise ValueError("budget range min must not exceed max")
        return self


class PriorityFactor(BaseModel):
    factor: str  # cost, time, comfort, adventure, culture, nature
    importance: float = Field(5.0, ge=0, le=10)


class TravelPreferences(BaseModel):
    """
    Declared or inferred preferences.
    Every field is optional: requests carry whatever has been collected so far.
    """
    interests: List[InterestCategory] = Field(default_factory=list)
    budget_range: Optional[BudgetRange] = None
    travel_style: Optional[TravelStyle] = None
    accommodation_type: List[str] = Field(default_factory=list)
    transport_mode: List[str] = Field(default_factory=list)
    group_size: Optional[int] = Field(None, ge=1)
    dietary_restrictions: List[str] = Field(default_factory=list)
    mobility_requirements: List[str] = Field(default_factory=list)
    previous_destinations: List[str] = Field(default_factory=list)
    priority_factors: List[PriorityFactor] = Field(default_factory=list)

    @property
    def interest_names(self) -> List[str]:
        return [interest.name for interest in self.interests]

    def is_empty(self) -> bool:
        return not (
            self.interests or self.budget_range or self.travel_style
            or self.accommodation_type or self.group_size
        )


# ============================================
# Conversation Context
# ============================================

class TripDates(BaseModel):
    start_date: datetime
    end_date: datetime

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _check_order(self) -> "TripDates":
        if self.start_date > self.end_date:
            raise ValueError("trip start date must not be after the end date")
        return self


class Budget(BaseModel):
    total: Optional[float] = Field(None, ge=0)
    daily: Optional[float] = Field(None, ge=0)
    currency: str = "EUR"


class ConversationContext(BaseModel):
    """Per-session trip and dialogue state, owned and persisted by the caller"""
    trip_dates: TripDates
    budget: Optional[Budget] = None
    current_phase: Phase = Phase.WELCOME
    collected_preferences: TravelPreferences = Field(default_factory=TravelPreferences)
    last_activity: datetime = Field(default_factory=utcnow)
    conversation_summary: Optional[str] = None
    destination: Optional[str] = None
    home_base: Optional[str] = None


# ============================================
# Quick Actions & Routes
# ============================================

class QuickAction(BaseModel):
    id: str
    label: str
    icon: str
    message: str
    category: str
    weight: Optional[float] = None


class Coordinates(BaseModel):
    lat: float
    lng: float


class SuggestedActivity(BaseModel):
    name: str
    duration: float = 0  # hours
    cost: float = 0
    description: Optional[str] = None


class PriceRange(BaseModel):
    min: float
    max: float
    currency: str = "EUR"


class AccommodationSuggestion(BaseModel):
    name: str
    rating: Optional[float] = None
    price_range: Optional[PriceRange] = None


class GeneratedDestination(BaseModel):
    id: str
    name: str
    description: str = ""
    coordinates: Optional[Coordinates] = None
    address: Optional[str] = None
    duration: int = Field(1, ge=0)  # days
    estimated_cost: float = 0
    highlights: List[str] = Field(default_factory=list)
    suggested_activities: List[SuggestedActivity] = Field(default_factory=list)
    accommodation: List[AccommodationSuggestion] = Field(default_factory=list)
    local_tips: List[str] = Field(default_factory=list)


class CostBreakdown(BaseModel):
    accommodation: float = 0
    transport: float = 0
    activities: float = 0
    food: float = 0
    other: float = 0
    total: float = 0
    currency: str = "EUR"
    daily_average: float = 0


class GeneratedRoute(BaseModel):
    id: str
    name: str
    description: str = ""
    route_type: str = "linear"  # linear, circular, hub
    total_duration: int = Field(0, ge=0)
    travel_distance: float = 0
    confidence: float = Field(0.8, ge=0, le=1)
    destinations: List[GeneratedDestination] = Field(default_factory=list)
    estimated_cost: CostBreakdown = Field(default_factory=CostBreakdown)
    optimization_notes: List[str] = Field(default_factory=list)
    model_version: Optional[str] = None


# ============================================
# Chat Request / Response
# ============================================

class ChatMessage(BaseModel):
    """Single message of the visible conversation"""
    id: Optional[str] = None
    content: str
    sender: str = Field(..., description="'user' or 'ai'")
    timestamp: datetime = Field(default_factory=utcnow)


class ChatRequest(BaseModel):
    message: str = Field("", max_length=4000)
    session_id: str = Field(..., min_length=1)
    context: ConversationContext
    preferences: TravelPreferences = Field(default_factory=TravelPreferences)
    message_history: List[ChatMessage] = Field(default_factory=list)


class AIResponse(BaseModel):
    message: str
    message_id: str
    route: Optional[GeneratedRoute] = None
    quick_actions: List[QuickAction] = Field(default_factory=list)
    phase: Phase
    confidence: float = Field(..., ge=0, le=1)
    processing_time_ms: float = 0
    model_used: str
    tokens_used: int = 0
    fallback_reason: Optional[ErrorKind] = None


class SessionUpdate(BaseModel):
    context: ConversationContext


class ChatResponse(BaseModel):
    response: AIResponse
    session: SessionUpdate


class RouteModification(BaseModel):
    route: GeneratedRoute
    message: str
    modified: bool = False


# ============================================
# Learning Records
# ============================================

class UserFeedback(BaseModel):
    """Explicit rating on one AI message; immutable once stored"""
    model_config = ConfigDict(frozen=True)

    message_id: str
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = None
    feedback_type: FeedbackType = FeedbackType.OVERALL
    timestamp: datetime = Field(default_factory=utcnow)


class RouteFeedback(BaseModel):
    """Accept/reject signal on a generated route"""
    model_config = ConfigDict(frozen=True)

    route_id: str
    accepted: bool
    feedback: str = ""
    preferences: TravelPreferences = Field(default_factory=TravelPreferences)
    timestamp: datetime = Field(default_factory=utcnow)


class TrainingInput(BaseModel):
    preferences: TravelPreferences = Field(default_factory=TravelPreferences)
    context: ConversationContext
    user_message: str = ""


class TrainingOutput(BaseModel):
    response: str
    route: Optional[GeneratedRoute] = None
    actions: List[QuickAction] = Field(default_factory=list)


class TrainingDataPoint(BaseModel):
    """
    One recorded turn.
    quality_score is clamped to [0, 1] on construction and on every assignment.
    """
    model_config = ConfigDict(validate_assignment=True)

    message_id: Optional[str] = None
    session_id: Optional[str] = None
    input: TrainingInput
    output: TrainingOutput
    feedback: List[UserFeedback] = Field(default_factory=list)
    quality_score: float = 0.5
    timestamp: datetime = Field(default_factory=utcnow)
    model_version: str = ""

    @field_validator("quality_score")
    @classmethod
    def _clamp_quality(cls, value: float) -> float:
        return clamp(value, 0.0, 1.0)


class InteractionPattern(BaseModel):
    """Aggregated usage stats for one action type"""
    action: str
    frequency: int = Field(1, ge=0)
    time_spent: float = Field(0, ge=0)
    success: bool = True


class PerformanceMetrics(BaseModel):
    accuracy: float = 0
    user_satisfaction: float = 0
    completion_rate: float = 0
    sample_sizes: Dict[str, int] = Field(default_factory=dict)


class AnalyticsSnapshot(BaseModel):
    total_interactions: int
    average_quality_score: float
    user_patterns: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    global_patterns: List[InteractionPattern] = Field(default_factory=list)
    model_version: str
    last_updated: datetime = Field(default_factory=utcnow)
