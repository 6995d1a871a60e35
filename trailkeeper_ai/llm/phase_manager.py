# llm/phase_manager.py
"""
Phase Manager
Deterministic transition function (current phase, raw message) -> next phase

Dialogue: welcome -> preferences_collection -> route_generation
          -> route_refinement -> finalization -> completed

Priority:
1. Direct requests (route, then preferences, then restart) jump to their
   phase from anywhere. A request for the phase the dialogue is already in
   falls through to the local rules.
2. Local rules of the current phase.
Unmatched or empty input keeps the current phase; nothing here raises.
"""

from typing import Callable, Dict, Optional, Union

from loguru import logger

from ..schemas.ai_schemas import Phase
from .intent_classifier import IntentClassifier, IntentSignals, Signal, keyword_classifier


MIN_WELCOME_CHARS = 3


def _meaningful_length(message: str) -> int:
    return len("".join(message.split()))


class PhaseManager:
    """
    Owns the phase transition table.
    The classifier is injected so keyword tables can be replaced without
    touching the transitions.
    """

    def __init__(self, classifier: Optional[IntentClassifier] = None):
        self.classifier = classifier or keyword_classifier
        self._local_rules: Dict[Phase, Callable[[str, IntentSignals], Phase]] = {
            Phase.WELCOME: self._from_welcome,
            Phase.PREFERENCES_COLLECTION: self._from_preferences,
            Phase.ROUTE_GENERATION: self._from_route_generation,
            Phase.ROUTE_REFINEMENT: self._from_route_refinement,
            Phase.FINALIZATION: self._from_finalization,
            Phase.COMPLETED: self._from_completed,
        }

    def next_phase(self, current_phase: Union[Phase, str], message: str) -> Phase:
        """
        Compute the phase the dialogue moves to after this message

        Args:
            current_phase: Phase the session is in
            message: Raw user message

        Returns:
            The next phase (possibly unchanged)

        Example:
            >>> phase_manager.next_phase(Phase.WELCOME, "Ich interessiere mich für Kultur")
            <Phase.PREFERENCES_COLLECTION: 'preferences_collection'>
        """
        try:
            current = Phase(current_phase)
        except ValueError:
            logger.warning(f"Unknown phase '{current_phase}', treating as welcome")
            current = Phase.WELCOME

        message = message or ""
        intent = self.classifier.classify(message)

        if intent.jump_to is not None and intent.jump_to != current:
            next_phase = intent.jump_to
        else:
            next_phase = self._local_rules[current](message, intent)

        if next_phase != current:
            logger.debug(f"Phase transition: {current.value} -> {next_phase.value}")
        return next_phase

    # ============================================
    # Local rules
    # ============================================

    @staticmethod
    def _from_welcome(message: str, intent: IntentSignals) -> Phase:
        if intent.has(Signal.RESTART):
            return Phase.WELCOME
        if _meaningful_length(message) > MIN_WELCOME_CHARS:
            return Phase.PREFERENCES_COLLECTION
        return Phase.WELCOME

    @staticmethod
    def _from_preferences(message: str, intent: IntentSignals) -> Phase:
        # Eager: one informative statement is enough for a first proposal
        if intent.has(Signal.PREFERENCE_STATEMENT):
            return Phase.ROUTE_GENERATION
        return Phase.PREFERENCES_COLLECTION

    @staticmethod
    def _from_route_generation(message: str, intent: IntentSignals) -> Phase:
        if intent.has(Signal.MODIFICATION):
            return Phase.ROUTE_REFINEMENT
        if intent.has(Signal.ACCEPTANCE):
            return Phase.FINALIZATION
        # Detail and alternative requests regenerate content in place
        return Phase.ROUTE_GENERATION

    @staticmethod
    def _from_route_refinement(message: str, intent: IntentSignals) -> Phase:
        if intent.has(Signal.ACCEPTANCE, Signal.COMPLETION):
            return Phase.FINALIZATION
        return Phase.ROUTE_REFINEMENT

    @staticmethod
    def _from_finalization(message: str, intent: IntentSignals) -> Phase:
        if intent.has(Signal.NEW_TRIP, Signal.NEW_DESTINATION):
            return Phase.WELCOME
        return Phase.COMPLETED

    @staticmethod
    def _from_completed(message: str, intent: IntentSignals) -> Phase:
        if intent.has(Signal.NEW_DESTINATION, Signal.NEW_TRIP, Signal.RESTART):
            return Phase.WELCOME
        return Phase.COMPLETED


# Global instance
phase_manager = PhaseManager()


def next_phase(current_phase: Union[Phase, str], message: str) -> Phase:
    """Convenience function using the keyword classifier"""
    return phase_manager.next_phase(current_phase, message)
