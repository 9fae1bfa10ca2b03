"""
Redis connection management.

One pooled client is shared by the Redis-backed Telemetry Store and the
generation summary cache. The pool is created lazily on first use so the
in-memory store never needs a Redis server.
"""

import logging
import time
from typing import Any, Dict, Optional

import redis
from redis import ConnectionPool

from config.settings import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None
_redis_pool: Optional[ConnectionPool] = None


def redis_location() -> str:
    return f"{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"


def _create_pool() -> ConnectionPool:
    return ConnectionPool(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5
    )


def get_redis_client() -> redis.Redis:
    """
    Get the shared Redis client, connecting on first use.

    Returns:
        redis.Redis: Client with decoded (str) responses

    Raises:
        ConnectionError: If Redis cannot be reached
    """
    global _redis_client, _redis_pool

    if _redis_client is not None:
        return _redis_client

    pool = _create_pool()
    client = redis.Redis(connection_pool=pool)
    try:
        client.ping()
    except redis.RedisError as e:
        pool.disconnect()
        logger.error(f"Failed to connect to Redis at {redis_location()}: {e}")
        raise ConnectionError(f"Redis connection failed: {e}") from e

    _redis_pool, _redis_client = pool, client
    logger.info(f"Connected to Redis at {redis_location()}")
    return _redis_client


def check_connections() -> Dict[str, Dict[str, Any]]:
    """
    Probe Redis for startup logging and the health endpoint.

    Returns:
        dict: {"redis": {"connected", "error", "latency_ms"}}
    """
    status: Dict[str, Any] = {"connected": False, "error": None, "latency_ms": None}

    started = time.perf_counter()
    try:
        get_redis_client().ping()
        status["connected"] = True
        status["latency_ms"] = round((time.perf_counter() - started) * 1000, 1)
    except (ConnectionError, redis.RedisError) as e:
        status["error"] = str(e)

    return {"redis": status}


def close_connections() -> None:
    """Release the shared client and its pool. Safe to call when never connected."""
    global _redis_client, _redis_pool

    if _redis_client is None and _redis_pool is None:
        return

    try:
        if _redis_client is not None:
            _redis_client.close()
        if _redis_pool is not None:
            _redis_pool.disconnect()
        logger.info("Closed Redis connections")
    except redis.RedisError as e:
        logger.error(f"Error closing Redis connections: {e}")
    finally:
        _redis_client = None
        _redis_pool = None
