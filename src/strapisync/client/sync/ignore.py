"""Echo suppression markers.

When one side writes an entity, the other side answers with a change
notification for the same entity. A short-lived marker keyed by
``{id}_ignore_{side}`` lets the receiver drop that echo.

This module provides:
- EchoStore: Key-value capability with expiry ({set(key, ttl), get(key)})
- MemoryEchoStore: In-process store with monotonic expiry
- RedisEchoStore: Redis-backed store using server-side TTLs
- EchoGuard: Marker naming and lookup on top of a store
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

import redis

logger = logging.getLogger(__name__)

# Sides of the synchronisation
SIDE_STRAPI = "strapi"
SIDE_MEDUSA = "medusa"

DEFAULT_IGNORE_TTL = 3  # seconds


class EchoStore(Protocol):
    """Key-value store with per-key expiry."""

    def set(self, key: str, ttl: int) -> None:
        """Store a key that expires after ``ttl`` seconds."""
        ...

    def get(self, key: str) -> bool:
        """Return True if the key exists and has not expired."""
        ...


class MemoryEchoStore:
    """Echo store kept in process memory."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._expires: dict[str, float] = {}
        self._clock = clock

    def set(self, key: str, ttl: int) -> None:
        now = self._clock()
        # Expired markers are removed on write as well as on read
        for stale in [k for k, expires in self._expires.items() if expires <= now]:
            del self._expires[stale]
        self._expires[key] = now + ttl

    def __len__(self) -> int:
        return len(self._expires)

    def get(self, key: str) -> bool:
        expires = self._expires.get(key)
        if expires is None:
            return False
        if self._clock() >= expires:
            self._expires.pop(key, None)
            return False
        return True


class RedisEchoStore:
    """Echo store backed by Redis keys with ``EX`` expiry."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "") -> None:
        """Initialize the store.

        Args:
            redis_client: Synchronous Redis client.
            key_prefix: Prefix for all keys.
        """
        self._redis = redis_client
        self._prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "") -> RedisEchoStore:
        """Create a store connected to the Redis server at ``url``."""
        logger.info(f"Using redis echo store at {url}")
        return cls(redis.Redis.from_url(url), key_prefix=key_prefix)

    def set(self, key: str, ttl: int) -> None:
        # Redis rejects EX 0, a zero TTL means "do not mark"
        if ttl <= 0:
            return
        self._redis.set(f"{self._prefix}{key}", 1, ex=ttl)

    def get(self, key: str) -> bool:
        return self._redis.get(f"{self._prefix}{key}") is not None


class EchoGuard:
    """Records and checks echo markers for entity ids."""

    def __init__(self, store: EchoStore, ttl: int = DEFAULT_IGNORE_TTL) -> None:
        """Initialize the guard.

        Args:
            store: Backing key-value store.
            ttl: Marker lifetime in seconds.
        """
        self._store = store
        self._ttl = ttl

    @staticmethod
    def key(entity_id: str, side: str) -> str:
        """Marker key for an entity written by ``side``."""
        return f"{entity_id}_ignore_{side}"

    def add_ignore(self, entity_id: str, side: str) -> None:
        """Mark the next notification for this entity from ``side`` as an echo."""
        self._store.set(self.key(entity_id, side), self._ttl)

    def should_ignore(self, entity_id: str, side: str) -> bool:
        """Check whether a notification for this entity is an echo."""
        return self._store.get(self.key(entity_id, side))
