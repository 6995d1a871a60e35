# llm/intent_classifier.py
"""
Intent Classifier for the Phase Manager
Turns a raw user message into intent signals:
- jump_to: a phase the user explicitly asked for (route, preferences, restart)
- signals: every keyword family found in the message

Keyword tables cover German and English. Matching is case-insensitive;
short words use word boundaries so "gut" does not fire inside "Gutschein".
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Pattern, Protocol, Tuple

from ..schemas.ai_schemas import Phase


class Signal(str, Enum):
    ROUTE_REQUEST = "route_request"
    PREFERENCE_REQUEST = "preference_request"
    RESTART = "restart"
    PREFERENCE_STATEMENT = "preference_statement"
    MODIFICATION = "modification"
    ACCEPTANCE = "acceptance"
    COMPLETION = "completion"
    NEW_TRIP = "new_trip"
    NEW_DESTINATION = "new_destination"
    DETAIL = "detail"
    ALTERNATIVE = "alternative"


KEYWORD_TABLES: Dict[Signal, List[str]] = {
    Signal.ROUTE_REQUEST: [
        r"route", r"\bvorschlag", r"\bitinerar", r"\bplan (?:my|a|the|our) trip",
        r"\bplan erstellen", r"\breiseplan erstellen",
    ],
    Signal.PREFERENCE_REQUEST: [
        r"budget", r"präferenz", r"preference", r"detail", r"unterkunft",
        r"\bgruppe", r"accommodation",
    ],
    Signal.RESTART: [
        r"neu starten", r"\bneustart", r"von vorne", r"von anfang",
        r"\brestart\b", r"\bstart over\b",
    ],
    Signal.PREFERENCE_STATEMENT: [
        r"€", r"\$", r"\beur\b", r"\b\d+\s*(?:euro|eur|dollar|usd)\b",
        r"\bhotel", r"entspannt", r"\brelax", r"\baktiv", r"\bactive\b", r"\bmoderat",
        r"kultur", r"\bcultur", r"strand", r"\bbeach", r"natur", r"\bhiking",
        r"abenteuer", r"\badventur", r"gruppe", r"\ballein", r"\bpaar\b",
        r"überrasch", r"\bsurprise", r"\bja\b", r"\byes\b", r"\bgenau\b",
    ],
    Signal.MODIFICATION: [
        r"ändern", r"änderung", r"anpassen", r"\bnicht\b", r"\baber\b",
        r"modifizieren", r"\bchange", r"\bmodify", r"\bstatt\b", r"\binstead\b",
    ],
    Signal.ACCEPTANCE: [
        r"übernehm", r"perfekt", r"gefällt", r"\bgut\b", r"\baccept",
        r"\bpasst\b", r"\bsounds good\b", r"\blooks good\b",
    ],
    Signal.COMPLETION: [
        r"\bfertig", r"\bdone\b", r"\bpasst\b", r"perfekt", r"übernehm",
    ],
    Signal.NEW_TRIP: [
        r"neue reise", r"weitere reise", r"weiteres ziel", r"\bnew trip\b", r"\banother trip\b",
    ],
    Signal.NEW_DESTINATION: [
        r"neues ziel", r"anderen ziel", r"anderes ziel", r"\bnew destination\b",
    ],
    Signal.DETAIL: [
        r"detail", r"mehr info", r"\bmore info",
    ],
    Signal.ALTERNATIVE: [
        r"alternative", r"andere route", r"\bdifferent route\b",
    ],
}

# Direct phase requests, checked in this order; the first family present wins
OVERRIDE_ORDER: Tuple[Tuple[Signal, Phase], ...] = (
    (Signal.ROUTE_REQUEST, Phase.ROUTE_GENERATION),
    (Signal.PREFERENCE_REQUEST, Phase.PREFERENCES_COLLECTION),
    (Signal.RESTART, Phase.WELCOME),
)


@dataclass(frozen=True)
class IntentSignals:
    """Result of classifying one message"""
    jump_to: Optional[Phase] = None
    signals: FrozenSet[Signal] = field(default_factory=frozenset)

    def has(self, *signals: Signal) -> bool:
        """True if any of the given signals fired"""
        return any(signal in self.signals for signal in signals)


class IntentClassifier(Protocol):
    """Anything that can classify a message; swappable for a learned model"""

    def classify(self, message: str) -> IntentSignals:
        ...


class KeywordIntentClassifier:
    """
    Deterministic keyword-table classifier.
    Pure: the same message always yields the same IntentSignals.
    """

    def __init__(self, tables: Optional[Dict[Signal, List[str]]] = None):
        tables = tables or KEYWORD_TABLES
        self._patterns: Dict[Signal, Pattern] = {
            signal: re.compile("|".join(f"(?:{token})" for token in tokens), re.IGNORECASE)
            for signal, tokens in tables.items()
            if tokens
        }

    def classify(self, message: str) -> IntentSignals:
        text = (message or "").lower()
        if not text.strip():
            return IntentSignals()

        found = frozenset(
            signal for signal, pattern in self._patterns.items()
            if pattern.search(text)
        )

        jump_to = None
        for signal, phase in OVERRIDE_ORDER:
            if signal in found:
                jump_to = phase
                break

        return IntentSignals(jump_to=jump_to, signals=found)


# Global instance
keyword_classifier = KeywordIntentClassifier()


def classify_intent(message: str) -> IntentSignals:
    """Convenience function for keyword classification"""
    return keyword_classifier.classify(message)
