# llm/errors.py
"""
Error kinds raised inside the model gateway.
The gateway absorbs them, answers from the fallback bank and reports the
kind as ModelResult.fallback_reason. MalformedFallbackContentError is
absorbed by the bank itself, which substitutes the welcome entry.
"""

from typing import Optional

from ..schemas.ai_schemas import ErrorKind


class TripPlannerError(Exception):
    """Base error carrying the kind reported as the fallback reason"""

    kind: ErrorKind = ErrorKind.TRANSIENT_SERVICE_ERROR

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        super().__init__(message or self.kind.value)
        self.cause = cause


class RateLimitExceededError(TripPlannerError):
    """Local rolling budget exhausted; no network call was made"""
    kind = ErrorKind.RATE_LIMIT_EXCEEDED


class QuotaExceededError(TripPlannerError):
    """The completion service reported quota exhaustion; never retried"""
    kind = ErrorKind.QUOTA_EXCEEDED


class TransientServiceError(TripPlannerError):
    """Network, timeout or 5xx failure; retried with backoff"""
    kind = ErrorKind.TRANSIENT_SERVICE_ERROR


class MissingCredentialsError(TripPlannerError):
    """No usable API key; detected before any network call"""
    kind = ErrorKind.MISSING_CREDENTIALS


class MalformedFallbackContentError(TripPlannerError):
    """A fallback bank entry is missing or invalid for the requested phase"""
    kind = ErrorKind.MALFORMED_FALLBACK_CONTENT
