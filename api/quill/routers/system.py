"""Liveness and dependency checks."""

from __future__ import annotations

import logging
import time

import redis
from fastapi import APIRouter

from .. import schemas
from ..cache import get_redis_client
from ..errors import ServiceUnavailable

router = APIRouter(tags=["System"])
logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()


@router.get("/health", response_model=schemas.HealthResponse)
def health() -> schemas.HealthResponse:
    return schemas.HealthResponse(uptime_s=round(time.monotonic() - _STARTED_AT, 3))


@router.get("/health/redis", response_model=schemas.HealthResponse)
def redis_health() -> schemas.HealthResponse:
    """
    Check the unread-counter cache.

    503 when REDIS_URL is unset or the server does not answer a ping.
    """
    client = get_redis_client()
    if client is None:
        raise ServiceUnavailable("Redis unavailable")
    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning(f"Redis ping failed: {e}")
        raise ServiceUnavailable("Redis unavailable")
    return schemas.HealthResponse(uptime_s=round(time.monotonic() - _STARTED_AT, 3))
