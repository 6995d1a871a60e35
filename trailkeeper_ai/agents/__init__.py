# agents/__init__.py
"""
AI Agents Package

Contains the chat-facing TripPlanningOrchestrator.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .trip_orchestrator import get_orchestrator, process_chat, TripPlanningOrchestrator

__all__ = [
    "get_orchestrator",
    "process_chat",
    "TripPlanningOrchestrator"
]
