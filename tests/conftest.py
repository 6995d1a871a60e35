import pytest

from trailkeeper_ai.agents.trip_orchestrator import TripPlanningOrchestrator
from trailkeeper_ai.interfaces.interaction_store import InteractionStore
from trailkeeper_ai.interfaces.kv_store import MemoryKeyValueStore
from trailkeeper_ai.interfaces.weight_store import WeightStore
from trailkeeper_ai.llm.gateway import LiveModelProvider, ModelGateway, RollingRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def kv_store():
    return MemoryKeyValueStore()


@pytest.fixture
def interactions(kv_store):
    return InteractionStore(kv_store)


@pytest.fixture
def weights(kv_store):
    return WeightStore(kv_store)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def offline_gateway(clock):
    """Gateway without credentials: every answer comes from the fallback bank"""
    return ModelGateway(
        live=LiveModelProvider(api_key=""),
        rate_limiter=RollingRateLimiter(clock=clock),
        clock=clock
    )


@pytest.fixture
def orchestrator(kv_store, offline_gateway):
    return TripPlanningOrchestrator(kv_store=kv_store, gateway=offline_gateway)
