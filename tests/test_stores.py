import json
from datetime import timedelta

import pytest

from trailkeeper_ai.interfaces.interaction_store import (
    InteractionStore,
    find_by_message_id,
    most_recent_within,
)
from trailkeeper_ai.interfaces.kv_store import (
    MODEL_WEIGHTS_KEY,
    TRAINING_DATA_KEY,
    MemoryKeyValueStore,
    create_kv_store,
)
from trailkeeper_ai.interfaces.session_registry import SessionRegistry
from trailkeeper_ai.interfaces.weight_store import DEFAULT_PATTERN_SEEDS, WeightStore
from trailkeeper_ai.schemas.ai_schemas import InteractionPattern, Phase
from trailkeeper_ai.utils.ai_helpers import utcnow

from .factories import make_context, make_point, make_preferences


# ============================================
# Interaction store
# ============================================

async def test_store_evicts_oldest(kv_store):
    store = InteractionStore(kv_store, capacity=3)
    for index in range(5):
        size = await store.append(make_point(message_id=f"m{index}"))

    assert size == 3
    assert [p.message_id for p in await store.snapshot()] == ["m2", "m3", "m4"]


async def test_store_persists_newest_points(kv_store):
    store = InteractionStore(kv_store, capacity=10, persist_limit=2)
    await store.extend([make_point(message_id=f"m{index}") for index in range(4)])

    persisted = json.loads(await kv_store.get(TRAINING_DATA_KEY))
    assert [p["message_id"] for p in persisted] == ["m2", "m3"]

    restored = InteractionStore(kv_store)
    assert await restored.load() == 2
    assert [p.message_id for p in await restored.recent(5)] == ["m2", "m3"]


async def test_store_ignores_corrupt_data(kv_store):
    await kv_store.set(TRAINING_DATA_KEY, "[{\"not\": \"a point\"}]")
    assert await InteractionStore(kv_store).load() == 0


async def test_transaction_persists_updates(kv_store):
    store = InteractionStore(kv_store)
    await store.append(make_point(quality=0.5, message_id="m1"))

    async with store.transaction() as points:
        points[0].quality_score = 1.7

    persisted = json.loads(await kv_store.get(TRAINING_DATA_KEY))
    assert persisted[0]["quality_score"] == 1.0


async def test_recent_and_clear(kv_store):
    store = InteractionStore(kv_store)
    await store.extend([make_point(message_id=f"m{index}") for index in range(3)])

    assert [p.message_id for p in await store.recent(2)] == ["m1", "m2"]
    assert await store.recent(0) == []

    await store.clear()
    assert len(store) == 0
    assert await kv_store.get(TRAINING_DATA_KEY) is None


def test_capacity_must_be_positive(kv_store):
    with pytest.raises(ValueError):
        InteractionStore(kv_store, capacity=0)


def test_lookup_helpers():
    now = utcnow()
    points = [
        make_point(message_id="a", timestamp=now - timedelta(minutes=20)),
        make_point(message_id="b", timestamp=now - timedelta(minutes=2)),
    ]
    assert find_by_message_id(points, "a") is points[0]
    assert find_by_message_id(points, "") is None
    assert most_recent_within(points, 300, now=now) is points[1]
    assert most_recent_within(points, 60, now=now) is None
    assert most_recent_within([], 300) is None


# ============================================
# Weight store
# ============================================

async def test_weight_store_seeds(weights):
    snapshot = await weights.snapshot()
    assert set(snapshot) == set(DEFAULT_PATTERN_SEEDS)
    assert all(value == 1.0 for value in snapshot.values())
    assert await weights.get("never|seen|key") == 1.0


async def test_weight_store_clamps(weights):
    assert await weights.nudge("k", 5) == 2.0
    assert await weights.nudge("k", -5) == 0.3


async def test_weight_store_persists_and_loads(kv_store, weights):
    await weights.nudge_many([("a", 0.2), ("b", -0.2)])

    restored = WeightStore(kv_store)
    assert await restored.load() == len(DEFAULT_PATTERN_SEEDS) + 2
    assert await restored.get("a") == pytest.approx(1.2)
    assert await restored.get("b") == pytest.approx(0.8)


async def test_weight_store_clamps_loaded_values(kv_store):
    await kv_store.set(MODEL_WEIGHTS_KEY, json.dumps({"a": 9.0, "b": 0.0}))
    store = WeightStore(kv_store)
    await store.load()

    assert await store.get("a") == 2.0
    assert await store.get("b") == 0.3


async def test_weight_store_reset(kv_store, weights):
    await weights.nudge("a", 0.5)
    await weights.reset()

    assert "a" not in await weights.snapshot()
    assert await kv_store.get(MODEL_WEIGHTS_KEY) is None


def test_default_weight_outside_bounds_is_rejected(kv_store):
    with pytest.raises(ValueError):
        WeightStore(kv_store, default_weight=3.0)


def test_create_memory_kv_store():
    assert isinstance(create_kv_store("memory"), MemoryKeyValueStore)


# ============================================
# Session registry
# ============================================

async def test_session_patterns_merge():
    registry = SessionRegistry()

    await registry.track_interaction("s1", InteractionPattern(action="click_route", frequency=1, time_spent=10))
    merged = await registry.track_interaction(
        "s1", InteractionPattern(action="click_route", frequency=2, time_spent=5, success=False)
    )

    assert merged.frequency == 3
    assert merged.time_spent == 15
    assert merged.success is False


async def test_global_patterns_merge():
    registry = SessionRegistry()

    await registry.track_interaction("s1", InteractionPattern(action="share", frequency=4, time_spent=10, success=False))
    await registry.track_interaction("s2", InteractionPattern(action="share", frequency=1, time_spent=20, success=True))

    (pattern,) = await registry.global_patterns()
    assert pattern.frequency == 2
    assert pattern.time_spent == 15
    assert pattern.success is True
    assert [p.action for p in await registry.session_patterns("s2")] == ["share"]
    assert await registry.session_patterns("unknown") == []


async def test_traits_follow_preferences():
    registry = SessionRegistry()
    traits = await registry.update_traits("s1", make_preferences(budget=(80, 150)))

    assert traits.favorite_interests == ["Culture", "History"]
    assert traits.travel_style == "moderate"
    assert traits.preferred_budget_range == "80-150"
    assert traits.interaction_count == 1
    assert "s1" in await registry.all_traits()


async def test_effective_context_prefers_newer_commit():
    registry = SessionRegistry()
    stale = make_context(Phase.WELCOME, last_activity=utcnow() - timedelta(minutes=1))

    async with registry.turn("s1") as state:
        assert registry.effective_context(state, stale) is stale
        state.context = make_context(Phase.ROUTE_GENERATION)

    async with registry.turn("s1") as state:
        effective = registry.effective_context(state, stale)

    assert effective.current_phase == Phase.ROUTE_GENERATION
    assert registry.has_session("s1")
    assert (await registry.committed_context("s1")).current_phase == Phase.ROUTE_GENERATION


async def test_idle_sessions_are_evicted(clock):
    registry = SessionRegistry(idle_ttl=60, clock=clock)
    await registry.update_traits("s1", make_preferences())
    clock.advance(30)
    await registry.update_traits("s2", make_preferences())

    clock.advance(45)
    await registry.update_traits("s3", make_preferences())

    assert not registry.has_session("s1")
    assert registry.has_session("s2")
    assert len(registry) == 2


async def test_session_cap_drops_least_recently_seen(clock):
    registry = SessionRegistry(max_sessions=2, clock=clock)
    for session_id in ("s1", "s2"):
        await registry.update_traits(session_id, make_preferences())
        clock.advance(1)
    await registry.update_traits("s1", make_preferences())
    clock.advance(1)

    await registry.update_traits("s3", make_preferences())

    assert registry.has_session("s1")
    assert not registry.has_session("s2")
    assert len(registry) == 2


async def test_busy_session_is_kept(clock):
    registry = SessionRegistry(idle_ttl=10, clock=clock)
    async with registry.turn("s1"):
        clock.advance(60)
        await registry.update_traits("s2", make_preferences())
        assert registry.has_session("s1")
        assert not await registry.end_session("s1")

    assert await registry.end_session("s1")
    assert not registry.has_session("s1")
    assert not await registry.end_session("s1")
