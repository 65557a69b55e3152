"""
Redis client for the latest-reading cache.

Caches the most recent reading of each batch under ``latest:{batch_id}``.
All cache operations are best-effort: connection failures are logged but do
not propagate exceptions, and every helper is a no-op when no Redis URL is
configured.

Each batch also has a generation counter under ``latest:{batch_id}:gen``.
Invalidation bumps it before deleting the cached reading. A reader takes
the generation before querying the database, and its fill only lands if
the generation is unchanged, so a reading loaded before an ingestion run
committed is never written back over the invalidation.

CHANGELOG:
- 2026-10-17: Generation-checked cache fill
- 2026-10-17: Key cache entries by batch instead of device
- 2026-10-17: Initial creation (STORY-011)
"""

import logging
import uuid

import redis.asyncio as redis

logger = logging.getLogger(__name__)

# KEYS[1]=cache key, KEYS[2]=generation key; ARGV: payload, generation, ttl.
_FILL_IF_CURRENT = """
if (redis.call('GET', KEYS[2]) or '0') == ARGV[2] then
    redis.call('SET', KEYS[1], ARGV[1], 'EX', ARGV[3])
    return 1
end
return 0
"""


def cache_key(batch_id: uuid.UUID) -> str:
    """Return the cache key holding a batch's latest reading."""
    return f"latest:{batch_id}"


def generation_key(batch_id: uuid.UUID) -> str:
    """Return the key of a batch's cache generation counter."""
    return f"latest:{batch_id}:gen"


def _decode(value: bytes | str) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


async def get_redis(redis_url: str) -> redis.Redis:
    """Create and return an async Redis client.

    Args:
        redis_url: Redis connection URL.

    Returns:
        redis.Redis: Async Redis client.
    """
    return redis.from_url(redis_url)


async def get_cached_latest(redis_url: str | None, batch_id: uuid.UUID) -> str | None:
    """Return the cached latest-reading JSON for a batch, or None on miss/failure."""
    if not redis_url:
        return None
    try:
        client = await get_redis(redis_url)
        try:
            cached = await client.get(cache_key(batch_id))
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Redis read failed for batch %s, falling back to DB",
            batch_id,
            exc_info=True,
        )
        return None
    if cached is None:
        return None
    return _decode(cached)


async def get_cache_generation(redis_url: str | None, batch_id: uuid.UUID) -> str | None:
    """Return a batch's cache generation, or None if it cannot be read.

    A batch that was never invalidated is at generation ``"0"``.
    """
    if not redis_url:
        return None
    try:
        client = await get_redis(redis_url)
        try:
            generation = await client.get(generation_key(batch_id))
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Redis generation read failed for batch %s",
            batch_id,
            exc_info=True,
        )
        return None
    return "0" if generation is None else _decode(generation)


async def set_cached_latest(
    redis_url: str | None,
    batch_id: uuid.UUID,
    payload: str,
    ttl_s: int,
    *,
    generation: str | None,
) -> bool:
    """Store a batch's latest-reading JSON with a TTL (best-effort).

    The write is skipped when *generation* is None or no longer current.

    Args:
        redis_url: Redis connection URL, or None when caching is disabled.
        batch_id: Batch the reading belongs to.
        payload: Serialized reading.
        ttl_s: Expiry in seconds.
        generation: Value of get_cache_generation() taken before the
            reading was loaded.

    Returns:
        bool: True if the payload was cached.
    """
    if not redis_url or generation is None:
        return False
    try:
        client = await get_redis(redis_url)
        try:
            filled = await client.eval(
                _FILL_IF_CURRENT,
                2,
                cache_key(batch_id),
                generation_key(batch_id),
                payload,
                generation,
                ttl_s,
            )
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Redis write failed for batch %s",
            batch_id,
            exc_info=True,
        )
        return False
    if not filled:
        logger.debug("Cache fill for batch %s skipped, generation moved on", batch_id)
    return bool(filled)


async def invalidate_batch_cache(redis_url: str | None, batch_id: uuid.UUID) -> None:
    """Bump the batch's cache generation and delete its cached reading.

    Best-effort operation: if Redis is unavailable or the delete fails,
    the error is logged but not raised. This ensures that ingestion is
    not blocked by cache infrastructure issues.

    Args:
        redis_url: Redis connection URL, or None when caching is disabled.
        batch_id: The batch whose cache entry should be cleared.
    """
    if not redis_url:
        return
    try:
        client = await get_redis(redis_url)
        try:
            await client.incr(generation_key(batch_id))
            await client.delete(cache_key(batch_id))
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Failed to invalidate cache for batch %s",
            batch_id,
            exc_info=True,
        )
