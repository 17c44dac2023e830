"""Redis cache utility functions.

The cache is optional: it is only used when ``REDIS_URL`` is set, and every
helper degrades to a no-op when Redis cannot be reached.
"""

from __future__ import annotations

import logging
import os

import redis

logger = logging.getLogger(__name__)

# Redis connection
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis | None:
    """
    Get or create Redis client instance.

    Returns None if Redis is not configured or the connection fails.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        return None

    try:
        client = redis.from_url(redis_url, decode_responses=True)
        # Test connection
        client.ping()
        logger.info("Redis cache connected successfully")
        _redis_client = client
        return _redis_client
    except redis.RedisError as e:
        logger.warning(f"Redis cache unavailable: {e}. Continuing without cache.")
        return None


def cache_get_int(key: str) -> int | None:
    """Read an integer counter, or None when missing or unavailable."""
    client = get_redis_client()
    if not client:
        return None

    try:
        value = client.get(key)
        if value is None:
            return None
        return int(value)
    except (redis.RedisError, ValueError) as e:
        logger.warning(f"Cache get error for key '{key}': {e}")
        return None


def cache_set_int(key: str, value: int, ttl: int = 3600) -> bool:
    """Store an integer counter with TTL."""
    client = get_redis_client()
    if not client:
        return False

    try:
        client.setex(key, ttl, int(value))
        return True
    except redis.RedisError as e:
        logger.warning(f"Cache set error for key '{key}': {e}")
        return False


def cache_incr(key: str, amount: int = 1) -> None:
    """
    Increment an existing counter.

    Missing keys are left missing so the next read recomputes from the database.
    """
    client = get_redis_client()
    if not client:
        return

    try:
        if client.exists(key):
            client.incrby(key, amount)
    except redis.RedisError as e:
        logger.warning(f"Cache incr error for key '{key}': {e}")


def cache_delete(*keys: str) -> int:
    """
    Delete cache keys.

    Returns:
        Number of keys deleted
    """
    client = get_redis_client()
    if not client or not keys:
        return 0

    try:
        return int(client.delete(*keys))
    except redis.RedisError as e:
        logger.warning(f"Cache delete error for keys {keys}: {e}")
        return 0
