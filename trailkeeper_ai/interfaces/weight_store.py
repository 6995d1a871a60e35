# interfaces/weight_store.py
"""
Pattern Weight Store
Scalar multiplier per preference-pattern key, bounded to [WEIGHT_MIN, WEIGHT_MAX]

Weights are created lazily at the default value on first nudge, clamped on
every update and never deleted (except by an explicit reset). One lock
guards the table so a batch of nudges lands atomically relative to
concurrent single-feedback updates.
"""

import asyncio
import json
from typing import Dict, Iterable, Optional, Tuple

from loguru import logger

from ..config import settings
from ..utils.ai_helpers import clamp
from .kv_store import KeyValueStore, MODEL_WEIGHTS_KEY


DEFAULT_PATTERN_SEEDS = (
    "culture,history|moderate|100-200",
    "beach,water|relaxed|50-150",
    "hiking,nature|active|50-100",
    "food,wine|moderate|100-250",
)


class WeightStore:
    """
    Injected weight table with its own synchronization.

    Usage:
        store = WeightStore(MemoryKeyValueStore())
        await store.nudge("culture,history|moderate|100-200", 0.05)
    """

    def __init__(
        self,
        kv_store: KeyValueStore,
        min_weight: Optional[float] = None,
        max_weight: Optional[float] = None,
        default_weight: Optional[float] = None,
        seeds: Iterable[str] = DEFAULT_PATTERN_SEEDS
    ):
        self.kv_store = kv_store
        self.min_weight = settings.WEIGHT_MIN if min_weight is None else min_weight
        self.max_weight = settings.WEIGHT_MAX if max_weight is None else max_weight
        self.default_weight = settings.WEIGHT_DEFAULT if default_weight is None else default_weight
        if not self.min_weight <= self.default_weight <= self.max_weight:
            raise ValueError("default weight must lie within the weight bounds")

        self.seeds = tuple(seeds)
        self._weights: Dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._seed()

    def _seed(self):
        self._weights = {key: self.default_weight for key in self.seeds}

    async def load(self) -> int:
        """Replace the seeded table with the persisted one, if present"""
        raw = await self.kv_store.get(MODEL_WEIGHTS_KEY)
        if not raw:
            return 0

        try:
            stored = json.loads(raw)
            weights = {str(key): float(value) for key, value in stored.items()}
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring corrupt persisted weights: {e}")
            return 0

        async with self._lock:
            self._weights = {
                key: clamp(value, self.min_weight, self.max_weight)
                for key, value in weights.items()
            }
        logger.info(f"WeightStore loaded {len(weights)} pattern weights")
        return len(weights)

    async def get(self, key: str) -> float:
        """Current weight for a key (default if never nudged)"""
        async with self._lock:
            return self._weights.get(key, self.default_weight)

    async def snapshot(self) -> Dict[str, float]:
        async with self._lock:
            return dict(self._weights)

    async def nudge(self, key: str, delta: float) -> float:
        """Move one weight by delta within bounds; returns the new weight"""
        updated = await self.nudge_many([(key, delta)])
        return updated[key]

    async def nudge_many(self, deltas: Iterable[Tuple[str, float]]) -> Dict[str, float]:
        """
        Apply several nudges atomically and persist once

        Args:
            deltas: (pattern key, delta) pairs, applied in order

        Returns:
            Dict of key -> resulting weight for every key touched
        """
        updated: Dict[str, float] = {}
        async with self._lock:
            for key, delta in deltas:
                current = self._weights.get(key, self.default_weight)
                new_weight = clamp(current + delta, self.min_weight, self.max_weight)
                self._weights[key] = new_weight
                updated[key] = new_weight
                logger.debug(f"Weight {key}: {current:.2f} -> {new_weight:.2f}")
            if updated:
                await self._persist()
        return updated

    async def reset(self):
        """Drop learned weights and restore the seeds"""
        async with self._lock:
            self._seed()
            await self.kv_store.delete(MODEL_WEIGHTS_KEY)
        logger.info("WeightStore reset to default seeds")

    async def _persist(self):
        await self.kv_store.set(MODEL_WEIGHTS_KEY, json.dumps(self._weights))
