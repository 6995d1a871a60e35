# api/__init__.py
"""
API Endpoints Package

Contains the FastAPI router for the planner:
- chat: Chat turns, feedback, route modification, analytics
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .chat import router as chat_router

__all__ = [
    "chat_router"
]
