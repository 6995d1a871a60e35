import pytest

from trailkeeper_ai.algorithms.pattern_key import budget_bucket, encode_pattern_key, route_pattern_key
from trailkeeper_ai.algorithms.similarity import (
    SimilarityRetriever,
    calculate_context_similarity,
    calculate_preference_similarity,
)
from trailkeeper_ai.schemas.ai_schemas import BudgetRange, Phase, TravelPreferences

from .factories import make_context, make_point, make_preferences, make_request


# ============================================
# Pattern key
# ============================================

def test_pattern_key_layout():
    prefs = make_preferences(interests=("History", "culture"), budget=(120, 180))
    assert encode_pattern_key(prefs) == "culture,history|moderate|100-150"


def test_pattern_key_ignores_interest_order_and_case():
    first = make_preferences(interests=("Beach", "Water"))
    second = make_preferences(interests=("water", "BEACH"))
    assert encode_pattern_key(first) == encode_pattern_key(second)


def test_pattern_key_for_empty_preferences():
    assert encode_pattern_key(TravelPreferences()) == "none|unknown|unknown"
    assert encode_pattern_key(None) == "none|unknown|unknown"


def test_budget_bucket():
    assert budget_bucket(BudgetRange(min=49, max=50)) == "0-50"
    assert budget_bucket(None) == "unknown"


def test_route_key_prefix():
    assert route_pattern_key(TravelPreferences()) == "route:none|unknown|unknown"


# ============================================
# Similarity
# ============================================

@pytest.mark.parametrize("first, second", [
    (make_preferences(), make_preferences(style="relaxed", budget=(150, 400))),
    (make_preferences(interests=("Beach",)), make_preferences(group_size=2)),
    (make_preferences(group_size=2), make_preferences(group_size=4, budget=None)),
])
def test_preference_similarity_symmetric_and_bounded(first, second):
    forward = calculate_preference_similarity(first, second)
    backward = calculate_preference_similarity(second, first)
    assert forward == pytest.approx(backward)
    assert 0.0 <= forward <= 1.0


def test_identical_preferences_are_fully_similar():
    prefs = make_preferences(group_size=2)
    assert calculate_preference_similarity(prefs, prefs) == pytest.approx(1.0)


def test_no_shared_fields_scores_zero():
    assert calculate_preference_similarity(TravelPreferences(), make_preferences()) == 0.0
    assert calculate_preference_similarity(None, make_preferences()) == 0.0


def test_style_and_group_example():
    first = TravelPreferences(travel_style="relaxed", group_size=2)
    second = TravelPreferences(travel_style="relaxed", group_size=4)
    assert calculate_preference_similarity(first, second) == pytest.approx(0.5)


def test_context_similarity():
    same = calculate_context_similarity(make_context(Phase.WELCOME), make_context(Phase.WELCOME))
    assert same == pytest.approx(0.7)

    other = calculate_context_similarity(make_context(Phase.WELCOME, days=14), make_context(Phase.FINALIZATION))
    assert other == pytest.approx(0.25)
    assert other == pytest.approx(
        calculate_context_similarity(make_context(Phase.FINALIZATION), make_context(Phase.WELCOME, days=14))
    )


async def test_retriever_filters_and_sorts_by_quality(interactions):
    prefs = make_preferences(group_size=2)
    await interactions.extend([
        make_point(prefs, quality=0.6, message_id="ok"),
        make_point(prefs, quality=0.95, message_id="best"),
        make_point(make_preferences(interests=("Beach",), style="active", budget=(1000, 2000), group_size=6),
                   quality=1.0, message_id="unlike"),
        make_point(prefs, quality=0.9, message_id="far-context", phase=Phase.COMPLETED, days=60),
    ])
    retriever = SimilarityRetriever(interactions)

    similar = await retriever.find_similar(make_request("Hallo", preferences=prefs))

    assert [p.message_id for p in similar] == ["best", "ok"]


async def test_retriever_respects_k(interactions):
    prefs = make_preferences()
    await interactions.extend([make_point(prefs, quality=0.5 + index / 10) for index in range(5)])

    similar = await SimilarityRetriever(interactions).find_similar(make_request("Hi", preferences=prefs), k=2)

    assert [p.quality_score for p in similar] == pytest.approx([0.9, 0.8])
