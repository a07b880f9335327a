"""Redis cache for read-mostly lookups (contract-tier partner resolution).

Values are JSON, keys are namespaced by company so a contract change can
drop exactly the entries it affects:

    contracts:{company_code}:{office_code or '-'}:{category}

Redis is optional. With `cache_enabled` off, or on any Redis error, calls
go straight to the wrapped function.
"""

import functools
import json
import logging
from typing import Callable, Optional

import redis.asyncio as redis
from onetouch.config import settings

logger = logging.getLogger(__name__)

# Shared by the cache and the rate limiter
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Close the pool on app shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def cached(key_builder: Callable[..., str], ttl: int = 300):
    """Cache the JSON-serialisable result of an async function.

    `key_builder` receives the same arguments as the wrapped function.
    A hit returns the decoded JSON, so the function should already
    return plain dicts/lists.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if not settings.cache_enabled:
                return await func(*args, **kwargs)

            key = key_builder(*args, **kwargs)
            try:
                client = await get_redis()
                hit = await client.get(key)
            except redis.RedisError as e:
                logger.warning(f"Cache read failed for {key}, computing uncached: {e}")
                return await func(*args, **kwargs)

            if hit:
                logger.debug(f"Cache HIT: {key}")
                return json.loads(hit)

            logger.debug(f"Cache MISS: {key}")
            result = await func(*args, **kwargs)
            try:
                await client.setex(key, ttl, json.dumps(result, ensure_ascii=False))
            except redis.RedisError as e:
                logger.warning(f"Cache write failed for {key}: {e}")
            return result

        return wrapper

    return decorator


async def invalidate_cache(pattern: str):
    """Delete every key matching `pattern`, e.g. "contracts:C1:*"."""
    if not settings.cache_enabled:
        return
    try:
        client = await get_redis()
        keys = [key async for key in client.scan_iter(match=pattern)]
        if keys:
            await client.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching {pattern}")
    except redis.RedisError as e:
        logger.warning(f"Cache invalidation failed for {pattern}: {e}")


async def commit_and_invalidate(db, pattern: str):
    """Commit `db`, then drop the keys matching `pattern`.

    Keys are only dropped once the new rows are visible to other sessions,
    so a miss served in between cannot re-cache the old contracts.
    """
    await db.commit()
    await invalidate_cache(pattern)
