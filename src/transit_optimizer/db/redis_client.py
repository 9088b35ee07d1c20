"""Redis client for the shared response cache."""

import logging
from functools import lru_cache

from redis import Redis
from redis.exceptions import RedisError

from ..config import settings


@lru_cache()
def get_redis_client() -> Redis | None:
    """Get cached Redis client instance.

    Returns:
        Redis client if configured and reachable, None otherwise.
        Note: a reachable server may still fail later; callers go through the cache facade.
    """
    if not settings.redis_url:
        logging.info("Redis URL not configured, using in-process cache")
        return None

    try:
        client = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=1,
            socket_timeout=1,
        )
        client.ping()
        logging.info("Redis connected for distributed caching")
        return client
    except RedisError as e:
        logging.warning(f"Redis unavailable, using in-process cache: {e}")
        return None
