"""
Key-Value Store - durable persistence surface for learning records

The orchestrator addresses a handful of fixed logical keys
("training-data", "user-feedback", "route-feedback", "model-weights"),
each holding one JSON-serialized, size-bounded collection.

Uses Redis when reachable, falls back to in-memory storage otherwise.
"""

import asyncio
from typing import Dict, Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError
from loguru import logger

from ..config import settings


TRAINING_DATA_KEY = "training-data"
USER_FEEDBACK_KEY = "user-feedback"
ROUTE_FEEDBACK_KEY = "route-feedback"
MODEL_WEIGHTS_KEY = "model-weights"


class KeyValueStore(Protocol):
    """Persistence collaborator consumed by the stores"""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """In-process store used for tests and offline runs"""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self._data[key] = value

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class RedisKeyValueStore:
    """
    Stores values under "<prefix><key>" in Redis

    Connects lazily; if Redis is unreachable the store keeps working
    against an in-memory dict and logs the degradation once.
    """

    def __init__(self, redis_url: Optional[str] = None, key_prefix: Optional[str] = None):
        """
        Initialize the store

        Args:
            redis_url: Redis connection URL
            key_prefix: Namespace prepended to every logical key
        """
        self.redis_url = redis_url or settings.redis_url
        self.key_prefix = settings.REDIS_KEY_PREFIX if key_prefix is None else key_prefix
        self.redis_client: Optional[redis.Redis] = None

        # Fallback in-memory storage
        self.memory_store: Dict[str, str] = {}

        self._initialized = False
        self._connect_lock = asyncio.Lock()

    async def _ensure_connected(self):
        """Ensure Redis connection is established"""
        if self._initialized:
            return

        async with self._connect_lock:
            if self._initialized:
                return
            try:
                self.redis_client = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True
                )
                await self.redis_client.ping()
                logger.info(f"KeyValueStore connected to Redis at {self.redis_url}")
            except (RedisError, OSError) as e:
                logger.warning(f"Redis connection failed, using in-memory storage: {e}")
                self.redis_client = None
            self._initialized = True

    def _get_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        await self._ensure_connected()

        if self.redis_client:
            try:
                value = await self.redis_client.get(self._get_key(key))
                if value is not None:
                    return value
            except RedisError as e:
                logger.error(f"Redis get error for {key}: {e}")

        return self.memory_store.get(key)

    async def set(self, key: str, value: str) -> None:
        await self._ensure_connected()

        if self.redis_client:
            try:
                await self.redis_client.set(self._get_key(key), value)
                return
            except RedisError as e:
                logger.error(f"Redis save error for {key}, keeping value in memory: {e}")

        self.memory_store[key] = value

    async def delete(self, key: str) -> None:
        await self._ensure_connected()

        if self.redis_client:
            try:
                await self.redis_client.delete(self._get_key(key))
            except RedisError as e:
                logger.error(f"Redis delete error for {key}: {e}")

        self.memory_store.pop(key, None)

    async def close(self):
        """Close Redis connection"""
        if self.redis_client:
            await self.redis_client.aclose()
            logger.info("KeyValueStore connection closed")


def create_kv_store(backend: Optional[str] = None) -> KeyValueStore:
    """Build the store selected by STORE_BACKEND ("redis" or "memory")"""
    backend = (backend or settings.STORE_BACKEND).lower()
    if backend == "memory":
        return MemoryKeyValueStore()
    return RedisKeyValueStore()
