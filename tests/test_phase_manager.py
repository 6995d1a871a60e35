import pytest

from trailkeeper_ai.llm.fallback_bank import FALLBACK_ENTRIES
from trailkeeper_ai.llm.intent_classifier import Signal, classify_intent
from trailkeeper_ai.llm.phase_manager import PhaseManager, next_phase
from trailkeeper_ai.llm.quick_actions import QUICK_ACTION_TABLE
from trailkeeper_ai.schemas.ai_schemas import Phase


@pytest.mark.parametrize("current, message, expected", [
    # welcome
    (Phase.WELCOME, "Ich möchte nach Italien reisen", Phase.PREFERENCES_COLLECTION),
    (Phase.WELCOME, "Hi", Phase.WELCOME),
    (Phase.WELCOME, "   ", Phase.WELCOME),
    (Phase.WELCOME, "Von vorne bitte", Phase.WELCOME),
    (Phase.WELCOME, "Zeig mir eine Route", Phase.ROUTE_GENERATION),
    # preferences_collection
    (Phase.PREFERENCES_COLLECTION, "Ich mag Kultur und Museen", Phase.ROUTE_GENERATION),
    (Phase.PREFERENCES_COLLECTION, "Mein Budget ist etwa 1000€", Phase.ROUTE_GENERATION),
    (Phase.PREFERENCES_COLLECTION, "Hmm, mal sehen", Phase.PREFERENCES_COLLECTION),
    (Phase.PREFERENCES_COLLECTION, "Wir reisen als Gruppe", Phase.ROUTE_GENERATION),
    # route_generation
    (Phase.ROUTE_GENERATION, "Ich möchte einige Änderungen an der Route", Phase.ROUTE_REFINEMENT),
    (Phase.ROUTE_GENERATION, "Diese Route gefällt mir, ich übernehme sie", Phase.FINALIZATION),
    (Phase.ROUTE_GENERATION, "Zeig mir eine alternative Route", Phase.ROUTE_GENERATION),
    (Phase.ROUTE_GENERATION, "Wie wird das Wetter?", Phase.ROUTE_GENERATION),
    # route_refinement
    (Phase.ROUTE_REFINEMENT, "Perfekt, so passt es", Phase.FINALIZATION),
    (Phase.ROUTE_REFINEMENT, "Ich bin fertig", Phase.FINALIZATION),
    (Phase.ROUTE_REFINEMENT, "Mehr Zeit in Florenz", Phase.ROUTE_REFINEMENT),
    # finalization
    (Phase.FINALIZATION, "Eine weitere Reise planen", Phase.WELCOME),
    (Phase.FINALIZATION, "Danke schön", Phase.COMPLETED),
    # completed
    (Phase.COMPLETED, "Ich möchte eine Reise zu einem anderen Ziel planen", Phase.WELCOME),
    (Phase.COMPLETED, "Neu starten", Phase.WELCOME),
    (Phase.COMPLETED, "Tschüss", Phase.COMPLETED),
])
def test_transitions(current, message, expected):
    assert next_phase(current, message) == expected


def test_direct_requests_jump_from_anywhere():
    assert next_phase(Phase.COMPLETED, "Plan my trip please") == Phase.ROUTE_GENERATION
    assert next_phase(Phase.FINALIZATION, "Ich will das Budget ändern") == Phase.PREFERENCES_COLLECTION
    assert next_phase(Phase.ROUTE_REFINEMENT, "Lass uns von vorne anfangen") == Phase.WELCOME


def test_route_request_wins_over_preference_request():
    assert next_phase(Phase.WELCOME, "Route mit Budget 500") == Phase.ROUTE_GENERATION


def test_request_for_current_phase_uses_local_rules():
    # "Route" asks for route_generation, which is where we are; "gefällt" then accepts
    assert next_phase(Phase.ROUTE_GENERATION, "Die Route gefällt mir") == Phase.FINALIZATION


def test_empty_message_keeps_phase():
    for phase in Phase:
        assert next_phase(phase, "") in (phase, Phase.COMPLETED)
    assert next_phase(Phase.ROUTE_GENERATION, "") == Phase.ROUTE_GENERATION


def test_unknown_phase_is_treated_as_welcome():
    assert next_phase("no-such-phase", "Ich möchte nach Spanien") == Phase.PREFERENCES_COLLECTION


def test_string_phase_is_accepted():
    assert next_phase("route_refinement", "perfekt") == Phase.FINALIZATION


def test_deterministic():
    manager = PhaseManager()
    results = {manager.next_phase(Phase.PREFERENCES_COLLECTION, "Strand und Sonne") for _ in range(20)}
    assert results == {Phase.ROUTE_GENERATION}


def test_every_phase_has_rules_and_content():
    manager = PhaseManager()
    for phase in Phase:
        assert isinstance(manager.next_phase(phase, "irgendwas"), Phase)
        assert phase in FALLBACK_ENTRIES
        assert QUICK_ACTION_TABLE[phase]


@pytest.mark.parametrize("phase, action_id, expected", [
    (Phase.ROUTE_GENERATION, "accept", Phase.FINALIZATION),
    (Phase.ROUTE_GENERATION, "modify", Phase.ROUTE_REFINEMENT),
    (Phase.ROUTE_REFINEMENT, "accept", Phase.FINALIZATION),
    (Phase.PREFERENCES_COLLECTION, "budget_mid", Phase.ROUTE_GENERATION),
    (Phase.FINALIZATION, "new_trip", Phase.WELCOME),
    (Phase.COMPLETED, "new_destination", Phase.WELCOME),
    (Phase.COMPLETED, "restart", Phase.WELCOME),
])
def test_quick_actions_drive_their_transition(phase, action_id, expected):
    rows = {row[0]: row for row in QUICK_ACTION_TABLE[phase]}
    assert next_phase(phase, rows[action_id][3]) == expected


def test_classifier_signals():
    intent = classify_intent("Perfekt, aber ich möchte etwas ändern")
    assert intent.has(Signal.ACCEPTANCE)
    assert intent.has(Signal.MODIFICATION)
    assert intent.jump_to is None


def test_classifier_word_boundaries():
    # "gut" must not fire inside "Gutschein"
    assert not classify_intent("Ich habe einen Gutschein").has(Signal.ACCEPTANCE)
    assert classify_intent("Das klingt gut").has(Signal.ACCEPTANCE)


def test_classifier_empty_message():
    intent = classify_intent("")
    assert intent.jump_to is None
    assert not intent.signals
