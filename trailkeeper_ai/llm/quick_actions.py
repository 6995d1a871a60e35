# llm/quick_actions.py
"""
Quick Actions
Phase-indexed one-tap suggestions returned with every turn.
Each action's message is phrased so that sending it drives the
Phase Manager to the intended next phase.
"""

from typing import Dict, List, Tuple

from ..schemas.ai_schemas import Phase, QuickAction


# (id, label, icon, message, category)
_ActionRow = Tuple[str, str, str, str, str]

QUICK_ACTION_TABLE: Dict[Phase, List[_ActionRow]] = {
    Phase.WELCOME: [
        ("culture", "🏛️ Geschichte & Kultur", "🏛️", "Ich interessiere mich für Geschichte und Kultur", "interest"),
        ("beach", "🏖️ Strand & Meer", "🏖️", "Ich liebe Strände und Wassersport", "interest"),
        ("nature", "🌲 Natur & Wandern", "🌲", "Ich bin ein Naturliebhaber", "interest"),
        ("food", "🍷 Kulinarik", "🍷", "Ich mag gutes Essen und Wein", "interest"),
    ],
    Phase.PREFERENCES_COLLECTION: [
        ("budget_low", "💰 Sparsam (50-80€/Tag)", "💰", "Mein Budget ist eher knapp, etwa 50-80€ pro Tag", "budget"),
        ("budget_mid", "💳 Mittel (80-150€/Tag)", "💳", "Ich habe ein mittleres Budget von 80-150€ pro Tag", "budget"),
        ("budget_high", "💎 Komfortabel (150€+/Tag)", "💎", "Budget ist flexibel, etwa 150€+ pro Tag", "budget"),
        ("style_relaxed", "😌 Entspannt", "😌", "Ich reise gerne entspannt mit viel Zeit zum Genießen", "style"),
    ],
    Phase.ROUTE_GENERATION: [
        ("modify", "✏️ Route anpassen", "✏️", "Ich möchte einige Änderungen an der Route", "style"),
        ("more_culture", "🏛️ Mehr Kultur", "🏛️", "Können wir mehr kulturelle Sehenswürdigkeiten in die Route einbauen?", "interest"),
        ("more_nature", "🌲 Mehr Natur", "🌲", "Ich hätte gerne mehr Naturerlebnisse auf der Route", "interest"),
        ("accept", "👍 Route übernehmen", "👍", "Diese Route gefällt mir, bitte übernehmen", "action"),
    ],
    Phase.ROUTE_REFINEMENT: [
        ("add_cities", "🏙️ Andere Städte", "🏙️", "Ich möchte andere Städte besuchen", "modification"),
        ("more_time", "⏰ Mehr Zeit", "⏰", "Ich möchte mehr Zeit in bestimmten Städten", "modification"),
        ("shorter_stays", "⏱️ Kürzere Aufenthalte", "⏱️", "Die Aufenthalte könnten kürzer sein, ich sehe gerne mehr Orte", "modification"),
        ("accept", "✅ Passt so", "✅", "Perfekt, so passt es", "action"),
    ],
    Phase.FINALIZATION: [
        ("export", "📱 Reiseplan exportieren", "📱", "Reiseplan als PDF exportieren", "export"),
        ("calendar", "📅 Zum Kalender", "📅", "Termine zum Kalender hinzufügen", "export"),
        ("new_trip", "✈️ Neue Reise planen", "✈️", "Eine weitere Reise planen", "action"),
        ("share", "📤 Teilen", "📤", "Reiseplan mit anderen teilen", "export"),
    ],
    Phase.COMPLETED: [
        ("new_destination", "🌍 Neues Ziel", "🌍", "Ich möchte eine Reise zu einem anderen Ziel planen", "restart"),
        ("restart", "🔄 Neu starten", "🔄", "Von vorne beginnen", "restart"),
    ],
}


def generate_quick_actions(phase: Phase) -> List[QuickAction]:
    """Fresh QuickAction objects for a phase (empty for unknown phases)"""
    rows = QUICK_ACTION_TABLE.get(phase, [])
    return [
        QuickAction(id=action_id, label=label, icon=icon, message=message, category=category)
        for action_id, label, icon, message, category in rows
    ]
