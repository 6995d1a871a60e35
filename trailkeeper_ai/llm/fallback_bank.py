# llm/fallback_bank.py
"""
Fallback Bank
Static, phase-indexed canned answers used whenever the completion service
cannot be called. Contains no randomness: the same phase always yields the
same text, quick actions and (for route_generation only) example route, so
the dialogue can progress offline.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from ..schemas.ai_schemas import GeneratedRoute, Phase, QuickAction
from .errors import MalformedFallbackContentError


@dataclass(frozen=True)
class FallbackEntry:
    message: str
    actions: Tuple[Tuple[str, str, str, str, str], ...]
    route: Optional[Dict[str, Any]] = None


@dataclass
class FallbackAnswer:
    """A materialized bank entry with fresh model objects"""
    phase: Phase
    message: str
    quick_actions: List[QuickAction] = field(default_factory=list)
    route: Optional[GeneratedRoute] = None
    substituted: bool = False  # True when the welcome entry stood in for a missing or invalid one


ITALY_EXAMPLE_ROUTE: Dict[str, Any] = {
    "id": "italy-7days-cultural",
    "name": "Italien Kulturreise - 7 Tage",
    "description": "Eine wunderschöne 7-tägige Reise durch die kulturellen Highlights Italiens",
    "route_type": "linear",
    "total_duration": 7,
    "travel_distance": 850,
    "confidence": 0.92,
    "destinations": [
        {
            "id": "rome",
            "name": "Rom",
            "description": "Die ewige Stadt mit antiken Wunderwerken und lebendiger Kultur",
            "coordinates": {"lat": 41.9028, "lng": 12.4964},
            "address": "Rom, Italien",
            "duration": 3,
            "estimated_cost": 420,
            "highlights": ["Kolosseum", "Forum Romanum", "Vatikan", "Trevi-Brunnen", "Spanische Treppe"],
            "suggested_activities": [
                {"name": "Kolosseum-Tour", "duration": 3, "cost": 25},
                {"name": "Vatikan-Besichtigung", "duration": 4, "cost": 30},
                {"name": "Abendspaziergang Trastevere", "duration": 2, "cost": 0},
            ],
            "accommodation": [
                {"name": "Hotel Artemide", "rating": 4.2, "price_range": {"min": 120, "max": 180}},
            ],
            "local_tips": ["Früh am Morgen zum Kolosseum", "Reservierung für Vatikan notwendig"],
        },
        {
            "id": "florence",
            "name": "Florenz",
            "description": "Renaissance-Perle mit weltberühmter Kunst und Architektur",
            "coordinates": {"lat": 43.7696, "lng": 11.2558},
            "address": "Florenz, Italien",
            "duration": 2,
            "estimated_cost": 280,
            "highlights": ["Uffizien", "Ponte Vecchio", "Dom von Florenz", "Palazzo Pitti"],
            "suggested_activities": [
                {"name": "Uffizien-Museum", "duration": 3, "cost": 20},
                {"name": "Dom-Besichtigung", "duration": 2, "cost": 15},
                {"name": "Toskana-Weinprobe", "duration": 4, "cost": 45},
            ],
            "accommodation": [
                {"name": "Hotel Davanzati", "rating": 4.0, "price_range": {"min": 100, "max": 150}},
            ],
            "local_tips": ["Tickets für Uffizien vorab buchen", "Sonnenuntergang vom Piazzale Michelangelo"],
        },
        {
            "id": "venice",
            "name": "Venedig",
            "description": "Einzigartige Lagunenstadt mit romantischen Kanälen",
            "coordinates": {"lat": 45.4408, "lng": 12.3155},
            "address": "Venedig, Italien",
            "duration": 2,
            "estimated_cost": 320,
            "highlights": ["Markusplatz", "Dogenpalast", "Gondelfahrt", "Murano & Burano"],
            "suggested_activities": [
                {"name": "Gondelfahrt", "duration": 1, "cost": 80},
                {"name": "Dogenpalast-Tour", "duration": 2, "cost": 25},
                {"name": "Insel-Hopping Murano/Burano", "duration": 6, "cost": 40},
            ],
            "accommodation": [
                {"name": "Hotel ai Reali", "rating": 4.3, "price_range": {"min": 150, "max": 220}},
            ],
            "local_tips": ["Acqua alta (Hochwasser) beachten", "Früh am Morgen für weniger Touristen"],
        },
    ],
    "estimated_cost": {
        "accommodation": 480,
        "transport": 180,
        "activities": 285,
        "food": 255,
        "total": 1200,
        "currency": "EUR",
        "daily_average": 171,
    },
}


FALLBACK_ENTRIES: Dict[Phase, FallbackEntry] = {
    Phase.WELCOME: FallbackEntry(
        message="""Hallo! Ich bin der Trailkeeper Assistent und helfe Ihnen gerne bei der Planung Ihrer Reise! 🌍

Erzählen Sie mir gerne von Ihren Reiseplänen:
- Wohin möchten Sie reisen?
- Wie lange soll die Reise dauern?
- Was sind Ihre Interessen (Kultur, Natur, Entspannung, Abenteuer)?

Ich erstelle Ihnen dann eine personalisierte Reiseroute mit allen wichtigen Details!""",
        actions=(
            ("culture", "🏛️ Kulturreise", "🏛️", "Ich interessiere mich für Kultur und Geschichte", "interest"),
            ("beach", "🏖️ Strandurlaub", "🏖️", "Ich möchte einen entspannten Strandurlaub", "interest"),
            ("nature", "🏔️ Naturerlebnis", "🏔️", "Ich liebe Natur und Wandern", "interest"),
            ("adventure", "🎒 Abenteuerreise", "🎒", "Ich suche Abenteuer und Aktivitäten", "interest"),
        ),
    ),
    Phase.PREFERENCES_COLLECTION: FallbackEntry(
        message="""Vielen Dank für die Informationen! Das hilft mir sehr bei der Planung.

Lassen Sie mich noch ein paar Details wissen:
- Welches Budget schwebt Ihnen vor?
- Bevorzugen Sie Hotels, Ferienwohnungen oder andere Unterkünfte?
- Reisen Sie allein, als Paar oder in einer Gruppe?

Mit diesen Informationen kann ich Ihnen eine maßgeschneiderte Route zusammenstellen!""",
        actions=(
            ("budget_low", "💰 Budget bis 1000€", "💰", "Mein Budget ist etwa 1000€", "budget"),
            ("hotels", "🏨 Hotels bevorzugt", "🏨", "Ich bevorzuge Hotels", "accommodation"),
            ("group", "👥 Gruppenreise", "👥", "Wir reisen als Gruppe", "style"),
            ("surprise", "✨ Überrasch mich!", "✨", "Überrasch mich mit deinen Vorschlägen", "general"),
        ),
    ),
    Phase.ROUTE_GENERATION: FallbackEntry(
        message="""Perfekt! Basierend auf Ihren Wünschen habe ich eine fantastische 7-tägige Italien-Reise für Sie zusammengestellt. Diese Route kombiniert Kultur, Kulinarik und wunderschöne Landschaften.

🗺️ **Ihre Reiseroute:**

**Tag 1-3: Rom** - Die ewige Stadt
- Kolosseum & Forum Romanum
- Vatikan & Sixtinische Kapelle
- Trevi-Brunnen & Spanische Treppe

**Tag 4-5: Florenz** - Renaissance-Perle
- Uffizien & Ponte Vecchio
- Dom von Florenz
- Toskana-Ausflug

**Tag 6-7: Venedig** - Stadt der Kanäle
- Markusplatz & Dogenpalast
- Gondelfahrt durch die Kanäle
- Insel Murano & Burano

💰 **Geschätzte Kosten:** 1.200€ pro Person
🏨 **Unterkünfte:** Zentrale 3-4 Sterne Hotels

Möchten Sie diese Route übernehmen oder soll ich Anpassungen vornehmen?""",
        actions=(
            ("accept", "✅ Route übernehmen", "✅", "Diese Route gefällt mir, ich übernehme sie", "action"),
            ("modify", "🔄 Anpassen", "🔄", "Ich möchte einige Änderungen an der Route", "action"),
            ("alternative", "💡 Alternative zeigen", "💡", "Zeig mir eine alternative Route", "action"),
            ("details", "📋 Details anzeigen", "📋", "Ich möchte mehr Details zur Route", "action"),
        ),
        route=ITALY_EXAMPLE_ROUTE,
    ),
    Phase.ROUTE_REFINEMENT: FallbackEntry(
        message="""Gerne! Ich helfe Ihnen dabei, die Route anzupassen.

Was möchten Sie ändern?
- Andere Städte besuchen (z.B. Neapel, Mailand)?
- Mehr Zeit in einer bestimmten Stadt verbringen?
- Budget anpassen oder andere Aktivitäten?
- Andere Reisezeit oder Dauer?

Teilen Sie mir Ihre Wünsche mit und ich erstelle eine angepasste Route für Sie!""",
        actions=(
            ("add_cities", "🏙️ Andere Städte", "🏙️", "Ich möchte andere Städte besuchen", "modification"),
            ("more_time", "⏰ Mehr Zeit", "⏰", "Ich möchte mehr Zeit in bestimmten Städten", "modification"),
            ("budget_change", "💰 Budget ändern", "💰", "Ich möchte das Budget anpassen", "modification"),
            ("new_route", "🔄 Neue Route", "🔄", "Erstelle eine komplett neue Route", "modification"),
        ),
    ),
    Phase.FINALIZATION: FallbackEntry(
        message="""Ausgezeichnet! 🎉 Ihre Italien-Reise ist bereit!

✅ **Route bestätigt**: Rom → Florenz → Venedig (7 Tage)
✅ **Budget**: ~1.200€ pro Person
✅ **Unterkünfte**: Zentrale 3-4 Sterne Hotels
✅ **Aktivitäten**: Alle wichtigen Sehenswürdigkeiten eingeplant

**Nächste Schritte:**
1. 🎫 Flüge buchen (Rom Ankunft, Venedig Abflug)
2. 🏨 Hotelreservierungen bestätigen
3. 🎭 Tickets für Attraktionen vorbuchen (Kolosseum, Uffizien)
4. 🧳 Packliste und Reisedokumente vorbereiten

Wunderbare Reise und *Buon Viaggio*! 🇮🇹""",
        actions=(
            ("export", "📱 Reiseplan exportieren", "📱", "Reiseplan als PDF exportieren", "export"),
            ("calendar", "📅 Zum Kalender", "📅", "Termine zum Kalender hinzufügen", "export"),
            ("new_trip", "✈️ Neue Reise planen", "✈️", "Eine weitere Reise planen", "action"),
            ("share", "📤 Teilen", "📤", "Reiseplan mit anderen teilen", "export"),
        ),
    ),
    Phase.COMPLETED: FallbackEntry(
        message="""Vielen Dank, dass Sie den Trailkeeper Assistent für Ihre Reiseplanung genutzt haben! 🙏

Ich hoffe, Sie haben eine unvergessliche Zeit auf Ihrer Reise! Falls Sie weitere Reisen planen möchten, bin ich jederzeit für Sie da.

*Gute Reise!* ✨""",
        actions=(
            ("new_destination", "🌍 Neues Ziel", "🌍", "Ich möchte eine Reise zu einem anderen Ziel planen", "restart"),
            ("restart", "🔄 Neu starten", "🔄", "Von vorne beginnen", "restart"),
        ),
    ),
}


class FallbackBank:
    """
    Lookup over the canned entries.
    A missing or invalid entry is replaced by the welcome entry instead of
    failing the turn.
    """

    def __init__(self, entries: Optional[Dict[Phase, FallbackEntry]] = None):
        self.entries = FALLBACK_ENTRIES if entries is None else entries
        if Phase.WELCOME not in self.entries:
            raise ValueError("fallback bank needs a welcome entry")
        self._materialize(Phase.WELCOME, self.entries[Phase.WELCOME])

    def entry_for(self, phase: Phase) -> FallbackEntry:
        entry = self.entries.get(phase)
        if entry is None:
            raise MalformedFallbackContentError(f"no fallback entry for phase '{phase.value}'")
        return entry

    def _materialize(self, phase: Phase, entry: FallbackEntry, substituted: bool = False) -> FallbackAnswer:
        try:
            quick_actions = [
                QuickAction(id=action_id, label=label, icon=icon, message=message, category=category)
                for action_id, label, icon, message, category in entry.actions
            ]
            route = GeneratedRoute.model_validate(entry.route) if entry.route else None
        except ValueError as e:  # pydantic ValidationError included
            raise MalformedFallbackContentError(f"invalid fallback entry for phase '{phase.value}'", e) from e

        return FallbackAnswer(
            phase=phase,
            message=entry.message,
            quick_actions=quick_actions,
            route=route,
            substituted=substituted
        )

    def answer(self, phase: Phase) -> FallbackAnswer:
        """
        Materialize the entry for a phase

        Args:
            phase: The computed next phase of the dialogue

        Returns:
            FallbackAnswer with fresh QuickAction/GeneratedRoute objects
        """
        try:
            return self._materialize(phase, self.entry_for(phase))
        except MalformedFallbackContentError as e:
            logger.warning(f"{e}, using welcome")
            return self._materialize(Phase.WELCOME, self.entries[Phase.WELCOME], substituted=True)


# Global instance
fallback_bank = FallbackBank()
