import time

import pytest

from trailkeeper_ai.config import settings
from trailkeeper_ai.llm.errors import MalformedFallbackContentError
from trailkeeper_ai.llm.fallback_bank import FALLBACK_ENTRIES, FallbackBank, FallbackEntry
from trailkeeper_ai.llm.gateway import (
    FallbackBankProvider,
    LiveModelProvider,
    ModelGateway,
    RollingRateLimiter,
)
from trailkeeper_ai.schemas.ai_schemas import ErrorKind, Phase

from .conftest import FakeClock
from .factories import (
    FakeOpenAI,
    auth_error,
    connection_error,
    make_context,
    rate_limit_error,
    server_error,
)


def make_gateway(client, clock=None, limit=60, **live_kwargs):
    clock = clock or FakeClock()
    live = LiveModelProvider(client=client, backoff_base=0, **live_kwargs)
    return ModelGateway(
        live=live,
        rate_limiter=RollingRateLimiter(limit=limit, window_seconds=60, clock=clock),
        quota_cooldown=60,
        clock=clock
    )


# ============================================
# Rate limiter
# ============================================

def test_rate_limiter_budget_and_window():
    clock = FakeClock()
    limiter = RollingRateLimiter(limit=60, window_seconds=60, clock=clock)

    assert all(limiter.try_acquire() for _ in range(60))
    assert not limiter.try_acquire()
    assert limiter.remaining == 0

    clock.advance(59.9)
    assert not limiter.try_acquire()

    clock.advance(0.2)
    assert limiter.try_acquire()
    assert limiter.used == 1


# ============================================
# Live path
# ============================================

async def test_live_answer():
    client = FakeOpenAI("  Willkommen in Rom!  ")
    gateway = make_gateway(client)

    result = await gateway.invoke("prompt", make_context(Phase.WELCOME))

    assert result.text == "Willkommen in Rom!"
    assert result.route_name == "live"
    assert result.confidence == settings.LIVE_CONFIDENCE
    assert result.tokens_used == 42
    assert result.fallback_reason is None
    assert client.completions.calls[0]["messages"] == [{"role": "user", "content": "prompt"}]


async def test_sixty_first_call_is_rate_limited():
    client = FakeOpenAI("ok")
    gateway = make_gateway(client)
    context = make_context(Phase.PREFERENCES_COLLECTION)

    for _ in range(60):
        result = await gateway.invoke("prompt", context)
        assert result.route_name == "live"

    result = await gateway.invoke("prompt", context)
    assert result.route_name == "fallback"
    assert result.fallback_reason == ErrorKind.RATE_LIMIT_EXCEEDED
    assert result.confidence == settings.FALLBACK_CONFIDENCE
    assert result.text == FALLBACK_ENTRIES[Phase.PREFERENCES_COLLECTION].message
    assert client.call_count == 60


async def test_quota_error_is_not_retried_and_starts_cooldown():
    clock = FakeClock()
    client = FakeOpenAI(rate_limit_error(), "ok")
    gateway = make_gateway(client, clock=clock)

    result = await gateway.invoke("prompt", make_context())
    assert result.fallback_reason == ErrorKind.QUOTA_EXCEEDED
    assert client.call_count == 1

    # Inside the cooldown no call goes out
    result = await gateway.invoke("prompt", make_context())
    assert result.fallback_reason == ErrorKind.QUOTA_EXCEEDED
    assert client.call_count == 1

    clock.advance(60)
    result = await gateway.invoke("prompt", make_context())
    assert result.route_name == "live"
    assert client.call_count == 2


async def test_transient_errors_are_retried():
    client = FakeOpenAI(connection_error(), server_error(), "Endlich")
    gateway = make_gateway(client)

    result = await gateway.invoke("prompt", make_context())

    assert result.route_name == "live"
    assert result.text == "Endlich"
    assert client.call_count == 3


async def test_retries_exhausted_falls_back():
    client = FakeOpenAI(server_error())
    gateway = make_gateway(client, max_attempts=3)

    result = await gateway.invoke("prompt", make_context(Phase.ROUTE_GENERATION))

    assert result.fallback_reason == ErrorKind.TRANSIENT_SERVICE_ERROR
    assert result.route is not None
    assert client.call_count == 3


async def test_slow_completion_hits_the_deadline():
    client = FakeOpenAI("Zu spät", delay=5)
    gateway = make_gateway(client, deadline=0.2)

    start = time.perf_counter()
    result = await gateway.invoke("prompt", make_context())

    assert time.perf_counter() - start < 2
    assert result.route_name == "fallback"
    assert result.fallback_reason == ErrorKind.TRANSIENT_SERVICE_ERROR
    assert client.call_count == 1


async def test_empty_completion_is_transient():
    client = FakeOpenAI("", "Jetzt aber")
    gateway = make_gateway(client)

    result = await gateway.invoke("prompt", make_context())
    assert result.text == "Jetzt aber"
    assert client.call_count == 2


async def test_auth_error_maps_to_missing_credentials():
    client = FakeOpenAI(auth_error())
    gateway = make_gateway(client)

    result = await gateway.invoke("prompt", make_context())
    assert result.fallback_reason == ErrorKind.MISSING_CREDENTIALS
    assert client.call_count == 1


async def test_missing_credentials_never_calls_out(offline_gateway):
    result = await offline_gateway.invoke("prompt", make_context(Phase.COMPLETED))

    assert result.fallback_reason == ErrorKind.MISSING_CREDENTIALS
    assert result.model_used == "fallback-bank"
    assert result.text == FALLBACK_ENTRIES[Phase.COMPLETED].message
    assert offline_gateway.rate_limiter.used == 0


# ============================================
# Fallback bank
# ============================================

async def test_fallback_is_deterministic():
    provider = FallbackBankProvider()
    first = await provider.respond("a", Phase.ROUTE_GENERATION)
    second = await provider.respond("b", Phase.ROUTE_GENERATION)

    assert first.text == second.text
    assert [a.id for a in first.quick_actions] == [a.id for a in second.quick_actions]
    assert first.route == second.route
    assert first.route is not second.route


async def test_only_route_generation_carries_a_route():
    provider = FallbackBankProvider()
    for phase in Phase:
        result = await provider.respond("prompt", phase)
        assert (result.route is not None) == (phase == Phase.ROUTE_GENERATION)


def test_example_route():
    route = FallbackBank().answer(Phase.ROUTE_GENERATION).route
    assert [d.name for d in route.destinations] == ["Rom", "Florenz", "Venedig"]
    assert [d.duration for d in route.destinations] == [3, 2, 2]
    assert route.estimated_cost.total == 1200


async def test_missing_entry_substitutes_welcome():
    bank = FallbackBank({Phase.WELCOME: FALLBACK_ENTRIES[Phase.WELCOME]})
    result = await FallbackBankProvider(bank).respond("prompt", Phase.FINALIZATION)

    assert result.text == FALLBACK_ENTRIES[Phase.WELCOME].message
    assert result.fallback_reason == ErrorKind.MALFORMED_FALLBACK_CONTENT


def test_bank_without_welcome_is_rejected():
    with pytest.raises(ValueError):
        FallbackBank({})


def test_invalid_entry_substitutes_welcome():
    bank = FallbackBank({
        Phase.WELCOME: FALLBACK_ENTRIES[Phase.WELCOME],
        Phase.ROUTE_GENERATION: FallbackEntry(message="Kaputt", actions=(), route={"destinations": "keine"}),
    })

    answer = bank.answer(Phase.ROUTE_GENERATION)

    assert answer.substituted
    assert answer.phase == Phase.WELCOME
    assert answer.route is None


def test_missing_entry_raises_inside_the_bank():
    bank = FallbackBank({Phase.WELCOME: FALLBACK_ENTRIES[Phase.WELCOME]})
    with pytest.raises(MalformedFallbackContentError):
        bank.entry_for(Phase.COMPLETED)


def test_invalid_welcome_entry_is_rejected():
    with pytest.raises(MalformedFallbackContentError):
        FallbackBank({Phase.WELCOME: FallbackEntry(message="Hallo", actions=(("only-one",),))})


@pytest.mark.parametrize("key, available", [
    ("", False),
    ("sk-your-openai-key", False),
    ("sk-live-123", True),
])
def test_placeholder_keys_count_as_missing(key, available):
    assert LiveModelProvider(api_key=key).available is available
