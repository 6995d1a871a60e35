# schemas/__init__.py
"""
Pydantic Schemas Package

Contains all Pydantic v2 models for:
- Dialogue context and preferences
- Generated routes and quick actions
- Chat request/response contract
- Learning records (training data, feedback, interaction patterns)
"""

from .ai_schemas import (
    # Enums
    Phase, TravelStyle, FeedbackType, ErrorKind,
    # Preferences
    InterestCategory, BudgetRange, PriorityFactor, TravelPreferences,
    # Context
    TripDates, Budget, ConversationContext,
    # Routes
    QuickAction, Coordinates, SuggestedActivity, PriceRange,
    AccommodationSuggestion, GeneratedDestination, CostBreakdown, GeneratedRoute,
    # Chat
    ChatMessage, ChatRequest, AIResponse, SessionUpdate, ChatResponse, RouteModification,
    # Learning
    UserFeedback, RouteFeedback, TrainingInput, TrainingOutput, TrainingDataPoint,
    InteractionPattern, PerformanceMetrics, AnalyticsSnapshot
)

__all__ = [
    # Enums
    "Phase", "TravelStyle", "FeedbackType", "ErrorKind",
    # Preferences
    "InterestCategory", "BudgetRange", "PriorityFactor", "TravelPreferences",
    # Context
    "TripDates", "Budget", "ConversationContext",
    # Routes
    "QuickAction", "Coordinates", "SuggestedActivity", "PriceRange",
    "AccommodationSuggestion", "GeneratedDestination", "CostBreakdown", "GeneratedRoute",
    # Chat
    "ChatMessage", "ChatRequest", "AIResponse", "SessionUpdate", "ChatResponse", "RouteModification",
    # Learning
    "UserFeedback", "RouteFeedback", "TrainingInput", "TrainingOutput", "TrainingDataPoint",
    "InteractionPattern", "PerformanceMetrics", "AnalyticsSnapshot"
]
