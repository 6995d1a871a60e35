# llm/__init__.py
"""
LLM Components Package

Contains the conversation and model-access components:
- phase_manager: Dialogue phase transitions
- prompt_composer: Prompt assembly per turn
- gateway: Rate-limited live model access with fallback
- fallback_bank: Canned answers per phase
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .phase_manager import phase_manager, PhaseManager, next_phase
    from .intent_classifier import keyword_classifier, KeywordIntentClassifier, classify_intent
    from .prompt_composer import PromptComposer, extract_destination
    from .gateway import ModelGateway, ModelResult, RollingRateLimiter, LiveModelProvider, FallbackBankProvider
    from .fallback_bank import fallback_bank, FallbackBank
    from .quick_actions import generate_quick_actions

__all__ = [
    "phase_manager",
    "PhaseManager",
    "next_phase",
    "keyword_classifier",
    "KeywordIntentClassifier",
    "classify_intent",
    "PromptComposer",
    "extract_destination",
    "ModelGateway",
    "ModelResult",
    "RollingRateLimiter",
    "LiveModelProvider",
    "FallbackBankProvider",
    "fallback_bank",
    "FallbackBank",
    "generate_quick_actions"
]
