# llm/gateway.py
"""
Rate-Limited Model Gateway
Single entry point for generating a turn's answer:
- a process-wide rolling request budget (60 calls per 60 s by default)
- the live completion provider (OpenAI chat completions) with bounded
  retries and exponential backoff via tenacity
- the fallback bank provider, used when credentials are missing, the
  budget is spent, the quota is exhausted or retries ran out

Every failure is absorbed here: invoke() always returns a ModelResult.
"""

import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

import httpx
import openai
from loguru import logger
from openai import AsyncOpenAI
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import is_usable_api_key, settings
from ..schemas.ai_schemas import ConversationContext, ErrorKind, GeneratedRoute, Phase, QuickAction
from .errors import (
    MissingCredentialsError,
    QuotaExceededError,
    RateLimitExceededError,
    TransientServiceError,
    TripPlannerError,
)
from .fallback_bank import FallbackBank, fallback_bank


# ============================================
# Result
# ============================================

@dataclass
class ModelResult:
    """Answer for one turn, live or canned"""
    text: str
    confidence: float
    route_name: str  # "live" or "fallback"
    model_used: str
    tokens_used: int = 0
    route: Optional[GeneratedRoute] = None
    quick_actions: List[QuickAction] = field(default_factory=list)
    fallback_reason: Optional[ErrorKind] = None
    processing_time_ms: float = 0.0

    @property
    def is_fallback(self) -> bool:
        return self.route_name == "fallback"


# ============================================
# Rate Limiter
# ============================================

class RollingRateLimiter:
    """
    Fixed-budget counter over a rolling window.
    The window reopens (count back to 0) once `window_seconds` have passed
    since it was opened. Thread-safe: the check-and-increment is atomic.
    """

    def __init__(
        self,
        limit: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.limit = settings.RATE_LIMIT_REQUESTS if limit is None else limit
        self.window_seconds = settings.RATE_LIMIT_WINDOW if window_seconds is None else window_seconds
        self.clock = clock
        self._count = 0
        self._window_start = clock()
        self._lock = threading.Lock()

    def _roll(self, now: float):
        if now - self._window_start >= self.window_seconds:
            self._count = 0
            self._window_start = now

    def try_acquire(self) -> bool:
        """Take one slot; False means the budget for this window is spent"""
        with self._lock:
            self._roll(self.clock())
            if self._count >= self.limit:
                return False
            self._count += 1
            return True

    @property
    def used(self) -> int:
        with self._lock:
            self._roll(self.clock())
            return self._count

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


# ============================================
# Providers
# ============================================

class ResponseProvider(Protocol):
    """Produces the answer text for a prompt in a given phase"""

    async def respond(self, prompt: str, phase: Phase) -> ModelResult:
        ...


def _classify_openai_error(error: openai.APIError) -> TripPlannerError:
    message = str(error)
    if isinstance(error, openai.AuthenticationError):
        return MissingCredentialsError(message, error)
    lowered = message.lower()
    if isinstance(error, openai.RateLimitError) or "quota" in lowered or "limit" in lowered:
        return QuotaExceededError(message, error)
    return TransientServiceError(message, error)


class LiveModelProvider:
    """
    OpenAI chat-completions provider.
    Retries only TransientServiceError; quota and credential errors surface
    immediately.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[float] = None,
        backoff_max: Optional[float] = None,
        deadline: Optional[float] = None
    ):
        self.model = model or settings.OPENAI_MODEL
        self.max_output_tokens = max_output_tokens or settings.LLM_MAX_OUTPUT_TOKENS
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
        self.max_attempts = max_attempts or settings.LLM_MAX_ATTEMPTS
        self.backoff_base = settings.LLM_BACKOFF_BASE if backoff_base is None else backoff_base
        self.backoff_max = settings.LLM_BACKOFF_MAX if backoff_max is None else backoff_max
        self.deadline = settings.LLM_DEADLINE if deadline is None else deadline

        self.client = client
        if self.client is None:
            key = settings.OPENAI_API_KEY if api_key is None else api_key
            if is_usable_api_key(key):
                self.client = AsyncOpenAI(
                    api_key=key,
                    base_url=settings.OPENAI_BASE_URL,
                    max_retries=0,
                    http_client=httpx.AsyncClient(timeout=settings.LLM_REQUEST_TIMEOUT)
                )
                logger.info(f"LiveModelProvider: OpenAI client initialized ({self.model})")
            else:
                logger.warning("LiveModelProvider: no OpenAI API key configured, fallback only")

    @property
    def available(self) -> bool:
        return self.client is not None

    async def respond(self, prompt: str, phase: Phase) -> ModelResult:
        if self.client is None:
            raise MissingCredentialsError("no completion credentials configured")

        try:
            text, tokens = await asyncio.wait_for(self._complete_with_retries(prompt), timeout=self.deadline)
        except asyncio.TimeoutError as e:
            raise TransientServiceError(f"no completion within {self.deadline:g}s", e) from e

        return ModelResult(
            text=text,
            confidence=settings.LIVE_CONFIDENCE,
            route_name="live",
            model_used=self.model,
            tokens_used=tokens
        )

    async def _complete_with_retries(self, prompt: str):
        """Attempts and backoff sleeps; the overall deadline is enforced by respond()"""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_base, max=self.backoff_max),
            retry=retry_if_exception_type(TransientServiceError),
            before_sleep=self._log_retry,
            reraise=True
        )

        async for attempt in retrying:
            with attempt:
                return await self._complete(prompt)

    async def _complete(self, prompt: str):
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_output_tokens,
                temperature=self.temperature
            )
        except openai.APIError as e:
            raise _classify_openai_error(e) from e

        if not completion.choices or not completion.choices[0].message.content:
            raise TransientServiceError("completion returned no content")

        usage = getattr(completion, "usage", None)
        tokens = getattr(usage, "total_tokens", None) or 0
        return completion.choices[0].message.content.strip(), tokens

    @staticmethod
    def _log_retry(retry_state: RetryCallState):
        error = retry_state.outcome.exception() if retry_state.outcome else None
        sleep = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Completion attempt {retry_state.attempt_number} failed ({error}), "
            f"retrying in {sleep:.1f}s"
        )

    async def aclose(self):
        if self.client is not None:
            await self.client.close()


class FallbackBankProvider:
    """Deterministic canned answers; never fails"""

    def __init__(self, bank: Optional[FallbackBank] = None, model_label: str = "fallback-bank"):
        self.bank = bank or fallback_bank
        self.model_label = model_label

    async def respond(self, prompt: str, phase: Phase) -> ModelResult:
        answer = self.bank.answer(phase)
        return ModelResult(
            text=answer.message,
            confidence=settings.FALLBACK_CONFIDENCE,
            route_name="fallback",
            model_used=self.model_label,
            route=answer.route,
            quick_actions=answer.quick_actions,
            fallback_reason=ErrorKind.MALFORMED_FALLBACK_CONTENT if answer.substituted else None
        )


# ============================================
# Gateway
# ============================================

class ModelGateway:
    """
    Chooses between the live provider and the fallback bank for each call.

    Usage:
        gateway = ModelGateway()
        result = await gateway.invoke(prompt, context)
        print(result.text, result.confidence, result.fallback_reason)
    """

    def __init__(
        self,
        live: Optional[LiveModelProvider] = None,
        fallback: Optional[FallbackBankProvider] = None,
        rate_limiter: Optional[RollingRateLimiter] = None,
        quota_cooldown: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.live = live or LiveModelProvider()
        self.fallback = fallback or FallbackBankProvider()
        self.rate_limiter = rate_limiter or RollingRateLimiter(clock=clock)
        self.quota_cooldown = settings.QUOTA_COOLDOWN if quota_cooldown is None else quota_cooldown
        self.clock = clock
        self._quota_blocked_until: Optional[float] = None

    def _in_quota_cooldown(self) -> bool:
        if self._quota_blocked_until is None:
            return False
        if self.clock() >= self._quota_blocked_until:
            self._quota_blocked_until = None
            logger.info("Quota cooldown over, live calls resume")
            return False
        return True

    def _check_live_allowed(self):
        """Raise the reason the live provider must not be called, if any"""
        if not self.live.available:
            raise MissingCredentialsError()
        if self._in_quota_cooldown():
            raise QuotaExceededError("quota cooldown active")
        if not self.rate_limiter.try_acquire():
            raise RateLimitExceededError(
                f"{self.rate_limiter.limit} calls per {self.rate_limiter.window_seconds:g}s exhausted"
            )

    async def invoke(self, prompt: str, context: ConversationContext) -> ModelResult:
        """
        Answer a prompt for the phase carried by `context`

        Args:
            prompt: Fully composed prompt text
            context: Conversation context; its current_phase selects the
                fallback entry

        Returns:
            ModelResult (never raises for service failures)
        """
        start = time.perf_counter()
        phase = context.current_phase

        try:
            self._check_live_allowed()
            result = await self.live.respond(prompt, phase)
        except TripPlannerError as e:
            if isinstance(e, QuotaExceededError) and self._quota_blocked_until is None:
                self._quota_blocked_until = self.clock() + self.quota_cooldown
                logger.warning(f"Completion quota exhausted, fallback for {self.quota_cooldown:g}s")
            elif isinstance(e, MissingCredentialsError):
                logger.debug("No credentials, answering from fallback bank")
            else:
                logger.warning(f"Live completion unavailable ({e.kind.value}): {e}")

            result = await self.fallback.respond(prompt, phase)
            result.fallback_reason = e.kind
            logger.info(f"Fallback answer for phase {phase.value} ({result.fallback_reason.value})")

        result.processing_time_ms = round((time.perf_counter() - start) * 1000, 2)
        return result

    async def aclose(self):
        await self.live.aclose()
