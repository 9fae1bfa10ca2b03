"""
Redis caching utilities for generation summaries and background follow-ups.
"""

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from config.database import get_redis_client
from config.settings import settings

logger = logging.getLogger(__name__)

# Fire-and-forget work scheduled after a generation result is returned
_background_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="recs-background")


def get_cache_key(prefix: str, *args) -> str:
    """
    Generate a cache key from prefix and arguments.

    Args:
        prefix: Key prefix (e.g., 'recs', 'summary')
        *args: Additional arguments to include in key

    Returns:
        str: Generated cache key
    """
    key_parts = [prefix] + [str(arg) for arg in args]
    return ":".join(key_parts)


def cache_generation_summary(
    subject_id: str,
    summary: Dict[str, Any],
    ttl: Optional[int] = None
) -> bool:
    """
    Cache the summary of a subject's latest generation.

    Args:
        subject_id: Subject identifier
        summary: JSON-serializable summary (generation id, maturity, counts)
        ttl: Time to live in seconds (default: from settings)

    Returns:
        bool: True if cached successfully
    """
    try:
        redis_client = get_redis_client()
        cache_key = get_cache_key(settings.REDIS_KEY_PREFIX, "summary", subject_id)
        payload = {**summary, "cached_at": datetime.now().isoformat()}

        redis_client.setex(cache_key, ttl or settings.REDIS_CACHE_TTL, json.dumps(payload, default=str))
        logger.debug(f"Cached generation summary for {subject_id}")
        return True

    except Exception as e:
        logger.error(f"Error caching generation summary: {e}")
        return False


def get_cached_generation_summary(subject_id: str) -> Optional[Dict[str, Any]]:
    """
    Get the cached summary of a subject's latest generation.

    Returns:
        dict: Summary or None if not cached
    """
    try:
        redis_client = get_redis_client()
        cache_key = get_cache_key(settings.REDIS_KEY_PREFIX, "summary", subject_id)

        cached = redis_client.get(cache_key)
        if cached:
            logger.debug(f"Cache HIT for summary: {subject_id}")
            return json.loads(cached)

        logger.debug(f"Cache MISS for summary: {subject_id}")
        return None

    except Exception as e:
        logger.error(f"Error getting cached summary: {e}")
        return None


def _log_background_failure(future: Future) -> None:
    error = future.exception()
    if error is not None:
        logger.error(f"Background task failed: {error}")


def schedule_background(func: Callable, *args, **kwargs) -> Future:
    """
    Run auxiliary work after the caller has its result.

    Failures are logged and never propagate to the caller.
    """
    future = _background_executor.submit(func, *args, **kwargs)
    future.add_done_callback(_log_background_failure)
    return future
