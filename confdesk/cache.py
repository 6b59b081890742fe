"""
Key-value cache for session entries and upload idempotency keys.

Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from confdesk.errors import UpstreamFailure

logger = logging.getLogger(__name__)


class KeyValueCache(Protocol):
    """Minimal cache interface; values are JSON-serialisable dicts."""

    def get(self, key: str) -> Optional[dict]:
        ...

    def set(self, key: str, value: dict, ttl_seconds: Optional[int] = None) -> None:
        ...

    def add(self, key: str, value: dict, ttl_seconds: Optional[int] = None) -> bool:
        """Store only if absent. Returns False when the key already exists."""
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass
class InMemoryCache:
    """Dict-backed cache with lazy expiry for testing/dev."""

    items: dict = field(default_factory=dict)

    def _live(self, key: str) -> Optional[tuple[dict, Optional[float]]]:
        entry = self.items.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            self.items.pop(key, None)
            return None
        return entry

    def get(self, key: str) -> Optional[dict]:
        entry = self._live(key)
        return dict(entry[0]) if entry else None

    def set(self, key: str, value: dict, ttl_seconds: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ttl_seconds if ttl_seconds else None
        self.items[key] = (dict(value), expires_at)

    def add(self, key: str, value: dict, ttl_seconds: Optional[int] = None) -> bool:
        if self._live(key) is not None:
            return False
        self.set(key, value, ttl_seconds)
        return True

    def delete(self, key: str) -> None:
        self.items.pop(key, None)

    def reset(self) -> None:
        self.items.clear()


@dataclass
class RedisCache:
    """Redis-backed cache storing JSON strings."""

    url: str
    key_prefix: str = "confdesk:"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _reconnect(self) -> None:
        # Connection resets can happen on managed Redis.
        self.client = redis.Redis.from_url(self.url)

    def get(self, key: str) -> Optional[dict]:
        try:
            raw = self.client.get(self._key(key))
        except redis_exceptions.ConnectionError:
            logger.warning("Redis connection lost while reading %s", key)
            self._reconnect()
            return None
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: dict, ttl_seconds: Optional[int] = None) -> None:
        try:
            self.client.set(self._key(key), json.dumps(value), ex=ttl_seconds or None)
        except redis_exceptions.RedisError as exc:
            self._reconnect()
            raise UpstreamFailure(f"Cache write failed: {exc}") from exc

    def add(self, key: str, value: dict, ttl_seconds: Optional[int] = None) -> bool:
        try:
            stored = self.client.set(
                self._key(key), json.dumps(value), ex=ttl_seconds or None, nx=True
            )
        except redis_exceptions.RedisError as exc:
            self._reconnect()
            raise UpstreamFailure(f"Cache write failed: {exc}") from exc
        return bool(stored)

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis_exceptions.ConnectionError:
            logger.warning("Redis connection lost while deleting %s", key)
            self._reconnect()
