"""Best-effort keyed cache used by the provider adapters.

Backends only need ``get``/``set``/``ping``. They may raise freely: the
``CacheFacade`` is the single place where backend failures are turned into
misses and no-op writes, so adapters never guard cache calls themselves.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Protocol

from redis import Redis

from ..config import settings
from ..models.domain import Coordinate
from .geospatial import round_coordinate

logger = logging.getLogger(__name__)


class KeyedCache(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    def ping(self) -> bool: ...


class MemoryCache:
    """In-process TTL cache."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, value)
            if len(self._entries) > 1000 and len(self._entries) % 100 == 0:
                self._cleanup_expired()

    def ping(self) -> bool:
        return True

    def _cleanup_expired(self) -> None:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            self._entries.pop(key, None)
        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired cache entries")


class RedisCache:
    """Redis-backed cache storing JSON documents with ``SETEX``."""

    def __init__(self, client: Redis) -> None:
        self.client = client

    def get(self, key: str) -> Any | None:
        raw = self.client.get(key)
        return json.loads(raw) if raw else None

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        self.client.setex(key, ttl_seconds, json.dumps(value))

    def ping(self) -> bool:
        return bool(self.client.ping())


class CacheFacade:
    """Advisory cache: reads miss and writes vanish when the backend fails."""

    def __init__(self, backend: KeyedCache | None = None) -> None:
        self.backend = backend

    def get(self, key: str) -> Any | None:
        if self.backend is None:
            return None
        try:
            value = self.backend.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if value is not None:
            logger.debug(f"Cache hit for {key}")
        return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if self.backend is None or value is None:
            return
        try:
            self.backend.set(key, value, ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    @property
    def backend_name(self) -> str:
        if self.backend is None:
            return "none"
        return "redis" if isinstance(self.backend, RedisCache) else "memory"

    def available(self) -> bool:
        if self.backend is None:
            return False
        try:
            return self.backend.ping()
        except Exception:
            return False


def cache_key(namespace: str, *parts: Any, precision: int | None = None) -> str:
    """Build a cache key; coordinates are rounded so nearby requests share entries."""

    digits = settings.cache_coordinate_precision if precision is None else precision
    rendered: list[str] = []
    for part in parts:
        if isinstance(part, Coordinate):
            lat, lon = round_coordinate(part, digits)
            rendered.append(f"{lat:.{digits}f},{lon:.{digits}f}")
        else:
            rendered.append(str(getattr(part, "value", part)))
    return ":".join([namespace, *rendered])


def build_cache() -> CacheFacade:
    from ..db.redis_client import get_redis_client

    client = get_redis_client()
    if client is not None:
        return CacheFacade(RedisCache(client))
    return CacheFacade(MemoryCache())
