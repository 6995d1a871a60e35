# interfaces/interaction_store.py
"""
Interaction Store - append-only, capacity-bounded log of recorded turns

Every answered turn becomes a TrainingDataPoint. The log is a ring buffer:
once it holds `capacity` points the oldest one is evicted on each append.
The newest `persist_limit` points are written through the key-value store
after every mutation.
"""

import asyncio
import json
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Deque, Iterable, List, Optional

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from ..config import settings
from ..schemas.ai_schemas import TrainingDataPoint
from ..utils.ai_helpers import as_utc, utcnow
from .kv_store import KeyValueStore, TRAINING_DATA_KEY


_points_adapter = TypeAdapter(List[TrainingDataPoint])


class InteractionStore:
    """
    Bounded log of TrainingDataPoint records.
    A single lock guards appends, trims and in-place quality updates.
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        capacity: Optional[int] = None,
        persist_limit: Optional[int] = None
    ):
        self.kv_store = kv_store
        self.capacity = settings.INTERACTION_CAPACITY if capacity is None else capacity
        self.persist_limit = settings.TRAINING_PERSIST_LIMIT if persist_limit is None else persist_limit
        if self.capacity < 1:
            raise ValueError("interaction store capacity must be at least 1")

        self._points: Deque[TrainingDataPoint] = deque(maxlen=self.capacity)
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._points)

    async def load(self) -> int:
        """Restore persisted points; returns how many were loaded"""
        raw = await self.kv_store.get(TRAINING_DATA_KEY)
        if not raw:
            return 0

        try:
            points = _points_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring corrupt persisted training data: {e.error_count()} errors")
            return 0

        async with self._lock:
            self._points.clear()
            self._points.extend(points)
        logger.info(f"InteractionStore loaded {len(self._points)} interactions")
        return len(self._points)

    async def append(self, point: TrainingDataPoint) -> int:
        """Append one point, evicting the oldest past capacity; returns the new size"""
        return await self.extend([point])

    async def extend(self, points: Iterable[TrainingDataPoint]) -> int:
        async with self._lock:
            before = len(self._points)
            added = 0
            for point in points:
                self._points.append(point)
                added += 1
            evicted = before + added - len(self._points)
            if evicted:
                logger.debug(f"InteractionStore evicted {evicted} oldest interactions")
            await self._persist()
            return len(self._points)

    async def snapshot(self) -> List[TrainingDataPoint]:
        """All points, oldest first"""
        async with self._lock:
            return list(self._points)

    async def recent(self, count: int) -> List[TrainingDataPoint]:
        """The newest `count` points, oldest first"""
        async with self._lock:
            if count <= 0:
                return []
            return list(self._points)[-count:]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Deque[TrainingDataPoint]]:
        """
        Exclusive access to the live log for read-modify-write updates.
        The log is persisted when the block exits without error.
        """
        async with self._lock:
            yield self._points
            await self._persist()

    async def clear(self):
        async with self._lock:
            self._points.clear()
            await self.kv_store.delete(TRAINING_DATA_KEY)

    async def _persist(self):
        newest = list(self._points)[-self.persist_limit:] if self.persist_limit > 0 else []
        payload = json.dumps([point.model_dump(mode="json") for point in newest])
        await self.kv_store.set(TRAINING_DATA_KEY, payload)


# ============================================
# Lookup helpers (call inside a transaction)
# ============================================

def find_by_message_id(points: Iterable[TrainingDataPoint], message_id: str) -> Optional[TrainingDataPoint]:
    """Exact correlation of feedback to the turn that produced the message"""
    if not message_id:
        return None
    for point in reversed(list(points)):
        if point.message_id == message_id:
            return point
    return None


def most_recent_within(
    points: Iterable[TrainingDataPoint],
    window_seconds: float,
    now: Optional[datetime] = None
) -> Optional[TrainingDataPoint]:
    """Newest point recorded inside the recency window, if any"""
    now = now or utcnow()
    cutoff = now - timedelta(seconds=window_seconds)
    newest = max(points, key=lambda point: as_utc(point.timestamp), default=None)
    if newest is not None and as_utc(newest.timestamp) >= cutoff:
        return newest
    return None
