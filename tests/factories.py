"""
Builders shared by the test modules
"""

import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import List, Optional, Union

import httpx
import openai

from trailkeeper_ai.schemas.ai_schemas import (
    BudgetRange,
    ChatMessage,
    ChatRequest,
    ConversationContext,
    InterestCategory,
    Phase,
    TrainingDataPoint,
    TrainingInput,
    TrainingOutput,
    TravelPreferences,
    TripDates,
)


TRIP_START = datetime(2025, 6, 1, tzinfo=timezone.utc)


def make_preferences(
    interests=("Culture", "History"),
    style: Optional[str] = "moderate",
    budget=(100, 200),
    group_size: Optional[int] = None
) -> TravelPreferences:
    return TravelPreferences(
        interests=[InterestCategory(name=name) for name in interests],
        travel_style=style,
        budget_range=BudgetRange(min=budget[0], max=budget[1]) if budget else None,
        group_size=group_size
    )


def make_context(phase: Phase = Phase.WELCOME, days: int = 7, **kwargs) -> ConversationContext:
    return ConversationContext(
        trip_dates=TripDates(start_date=TRIP_START, end_date=TRIP_START + timedelta(days=days)),
        current_phase=phase,
        **kwargs
    )


def make_request(
    message: str,
    session_id: str = "session-1",
    phase: Phase = Phase.WELCOME,
    preferences: Optional[TravelPreferences] = None,
    history: Optional[List[ChatMessage]] = None,
    **context_kwargs
) -> ChatRequest:
    return ChatRequest(
        message=message,
        session_id=session_id,
        context=make_context(phase, **context_kwargs),
        preferences=preferences or TravelPreferences(),
        message_history=history or []
    )


def make_point(
    preferences: Optional[TravelPreferences] = None,
    quality: float = 0.5,
    message_id: Optional[str] = None,
    response: str = "Eine Antwort",
    phase: Phase = Phase.WELCOME,
    timestamp: Optional[datetime] = None,
    days: int = 7
) -> TrainingDataPoint:
    point = TrainingDataPoint(
        message_id=message_id,
        session_id="session-1",
        input=TrainingInput(
            preferences=preferences or TravelPreferences(),
            context=make_context(phase, days=days),
            user_message="Hallo"
        ),
        output=TrainingOutput(response=response),
        quality_score=quality
    )
    if timestamp is not None:
        point.timestamp = timestamp
    return point


# ============================================
# Fake OpenAI client
# ============================================

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def rate_limit_error(message: str = "You exceeded your current quota") -> openai.RateLimitError:
    return openai.RateLimitError(message, response=httpx.Response(429, request=_REQUEST), body=None)


def auth_error() -> openai.AuthenticationError:
    return openai.AuthenticationError(
        "Incorrect API key provided",
        response=httpx.Response(401, request=_REQUEST),
        body=None
    )


def server_error() -> openai.InternalServerError:
    return openai.InternalServerError(
        "The server had an error",
        response=httpx.Response(500, request=_REQUEST),
        body=None
    )


def connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=_REQUEST)


class FakeCompletions:
    """
    Plays back scripted outcomes: strings become completions, exceptions
    are raised. The last outcome repeats once the script runs out.
    """

    def __init__(self, outcomes: List[Union[str, Exception]], delay: float = 0.0):
        self.outcomes = list(outcomes)
        self.delay = delay
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=outcome))],
            usage=SimpleNamespace(total_tokens=42)
        )


class FakeOpenAI:
    def __init__(self, *outcomes: Union[str, Exception], delay: float = 0.0):
        self.completions = FakeCompletions(list(outcomes) or ["Live-Antwort"], delay=delay)
        self.chat = SimpleNamespace(completions=self.completions)
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.completions.calls)

    async def close(self):
        self.closed = True
