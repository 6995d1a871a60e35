# interfaces/session_registry.py
"""
Session Registry
Per-session state for the orchestrator:
- a turn lock so turns of one session run strictly in submission order
- the last committed ConversationContext (phase is read-modify-written)
- personalization traits learned from the session's requests
- the Session Pattern Tracker (per-session and global InteractionPattern tables)

Sessions idle for longer than the TTL are dropped, and the map never holds
more than SESSION_MAX entries (least recently seen go first). A session whose
turn lock is held is never dropped.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, List, Optional

from loguru import logger

from ..config import settings
from ..schemas.ai_schemas import ConversationContext, InteractionPattern, TravelPreferences
from ..utils.ai_helpers import as_utc, utcnow


@dataclass
class SessionTraits:
    """What the session has told us so far, fed into the personalization block"""
    favorite_interests: List[str] = field(default_factory=list)
    travel_style: Optional[str] = None
    preferred_budget_range: Optional[str] = None
    interaction_count: int = 0
    last_interaction: Optional[datetime] = None

    def to_dict(self) -> Dict:
        return {
            "favorite_interests": list(self.favorite_interests),
            "travel_style": self.travel_style,
            "preferred_budget_range": self.preferred_budget_range,
            "interaction_count": self.interaction_count,
            "last_interaction": self.last_interaction.isoformat() if self.last_interaction else None,
        }


@dataclass
class SessionState:
    session_id: str
    turn_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    context: Optional[ConversationContext] = None
    traits: SessionTraits = field(default_factory=SessionTraits)
    patterns: Dict[str, InteractionPattern] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    last_seen: float = 0.0

    @property
    def busy(self) -> bool:
        return self.turn_lock.locked()


def _format_amount(value: float) -> str:
    return f"{value:g}"


class SessionRegistry:
    """
    Owns every session's state and the global pattern table.
    The registry lock only guards the session map; each session's turn lock
    serializes that session's turns.
    """

    def __init__(
        self,
        idle_ttl: Optional[float] = None,
        max_sessions: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.idle_ttl = settings.SESSION_IDLE_TTL if idle_ttl is None else idle_ttl
        self.max_sessions = max_sessions or settings.SESSION_MAX
        self.clock = clock
        self._sessions: Dict[str, SessionState] = {}
        self._global_patterns: Dict[str, InteractionPattern] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    async def _get_or_create(self, session_id: str) -> SessionState:
        async with self._lock:
            now = self.clock()
            state = self._sessions.get(session_id)
            if state is None:
                self._evict(now)
                state = SessionState(session_id=session_id)
                self._sessions[session_id] = state
                logger.info(f"Session registered: {session_id}")
            state.last_seen = now
            return state

    def _evict(self, now: float):
        """Drop idle sessions, then the least recently seen ones over the cap (caller holds _lock)"""
        expired = [
            session_id for session_id, state in self._sessions.items()
            if not state.busy and now - state.last_seen > self.idle_ttl
        ]
        for session_id in expired:
            del self._sessions[session_id]

        overflow = len(self._sessions) - self.max_sessions + 1
        if overflow > 0:
            idle = sorted(
                (state for state in self._sessions.values() if not state.busy),
                key=lambda state: state.last_seen
            )
            for state in idle[:overflow]:
                del self._sessions[state.session_id]
            expired.extend(state.session_id for state in idle[:overflow])

        if expired:
            logger.info(f"Evicted {len(expired)} idle sessions ({len(self._sessions)} active)")

    async def end_session(self, session_id: str) -> bool:
        """
        Forget a finished session

        Returns:
            False when the session is unknown or a turn is still running
        """
        async with self._lock:
            state = self._sessions.get(session_id)
            if state is None or state.busy:
                return False
            del self._sessions[session_id]
        logger.info(f"Session ended: {session_id}")
        return True

    @asynccontextmanager
    async def turn(self, session_id: str) -> AsyncIterator[SessionState]:
        """
        Hold the session's turn lock for the duration of one turn

        Usage:
            async with registry.turn(session_id) as state:
                ...
                state.context = updated_context
        """
        state = await self._get_or_create(session_id)
        async with state.turn_lock:
            yield state

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def effective_context(self, state: SessionState, incoming: ConversationContext) -> ConversationContext:
        """
        The context a turn should start from: the committed one if it is newer
        than what the caller sent (the caller may not have persisted the last
        turn yet), otherwise the caller's.
        """
        committed = state.context
        if committed is None:
            return incoming
        if as_utc(committed.last_activity) > as_utc(incoming.last_activity):
            return incoming.model_copy(update={"current_phase": committed.current_phase})
        return incoming

    async def committed_context(self, session_id: str) -> Optional[ConversationContext]:
        async with self._lock:
            state = self._sessions.get(session_id)
        return state.context if state else None

    # ============================================
    # Traits
    # ============================================

    async def update_traits(self, session_id: str, preferences: TravelPreferences) -> SessionTraits:
        """Fold a request's preferences into the session traits"""
        state = await self._get_or_create(session_id)
        async with self._lock:
            traits = state.traits
            if preferences.interests:
                traits.favorite_interests = preferences.interest_names
            if preferences.travel_style:
                traits.travel_style = preferences.travel_style.value
            if preferences.budget_range:
                traits.preferred_budget_range = (
                    f"{_format_amount(preferences.budget_range.min)}-"
                    f"{_format_amount(preferences.budget_range.max)}"
                )
            traits.interaction_count += 1
            traits.last_interaction = utcnow()
            return traits

    async def get_traits(self, session_id: str) -> Optional[SessionTraits]:
        async with self._lock:
            state = self._sessions.get(session_id)
            return state.traits if state else None

    async def all_traits(self) -> Dict[str, Dict]:
        async with self._lock:
            return {
                session_id: state.traits.to_dict()
                for session_id, state in self._sessions.items()
                if state.traits.interaction_count > 0
            }

    # ============================================
    # Session Pattern Tracker
    # ============================================

    async def track_interaction(self, session_id: str, pattern: InteractionPattern) -> InteractionPattern:
        """
        Merge a pattern into the session table and the global table

        Session merge: frequency and time are summed, success only holds if
        every occurrence succeeded.
        Global merge: frequency counts occurrences, time is averaged with the
        incoming value, success reflects the latest occurrence.

        Returns:
            The merged session-level pattern
        """
        state = await self._get_or_create(session_id)
        async with self._lock:
            existing = state.patterns.get(pattern.action)
            if existing is None:
                merged = pattern.model_copy()
            else:
                merged = existing.model_copy(update={
                    "frequency": existing.frequency + pattern.frequency,
                    "time_spent": existing.time_spent + pattern.time_spent,
                    "success": existing.success and pattern.success,
                })
            state.patterns[pattern.action] = merged

            global_existing = self._global_patterns.get(pattern.action)
            if global_existing is None:
                self._global_patterns[pattern.action] = pattern.model_copy(update={"frequency": 1})
            else:
                self._global_patterns[pattern.action] = global_existing.model_copy(update={
                    "frequency": global_existing.frequency + 1,
                    "time_spent": (global_existing.time_spent + pattern.time_spent) / 2,
                    "success": pattern.success,
                })

        logger.debug(f"Tracked '{pattern.action}' for session {session_id} (frequency {merged.frequency})")
        return merged

    async def session_patterns(self, session_id: str) -> List[InteractionPattern]:
        async with self._lock:
            state = self._sessions.get(session_id)
            return list(state.patterns.values()) if state else []

    async def global_patterns(self) -> List[InteractionPattern]:
        async with self._lock:
            return list(self._global_patterns.values())

    async def reset(self):
        """Forget every session and pattern"""
        async with self._lock:
            self._sessions.clear()
            self._global_patterns.clear()
        logger.info("SessionRegistry reset")
