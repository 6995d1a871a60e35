# interfaces/__init__.py
"""
Interfaces Package

Contains the stores the orchestrator reads and mutates:
- kv_store: Key-value persistence collaborator (Redis or in-memory)
- interaction_store: Bounded log of recorded turns
- weight_store: Pattern weight table
- session_registry: Per-session state and the Session Pattern Tracker
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .kv_store import KeyValueStore, MemoryKeyValueStore, RedisKeyValueStore, create_kv_store
    from .interaction_store import InteractionStore
    from .weight_store import WeightStore
    from .session_registry import SessionRegistry, SessionTraits

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
    "create_kv_store",
    "InteractionStore",
    "WeightStore",
    "SessionRegistry",
    "SessionTraits"
]
