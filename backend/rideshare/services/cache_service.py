"""
Redis caching service for trip search results.

CACHING STRATEGY
================

What we cache:
  - Search result pages (JSON-serialized TripListResponse payloads)
  - Key pattern: "trips:search:{generation}:{sha256 of the filters}"

Why:
  - Browsing upcoming trips is by far the most frequent read
  - Filters repeat a lot (a handful of popular city pairs)

Invalidation strategy:
  - Any trip or booking mutation changes available_seats or the result set,
    so every mutation bumps the "trips:search-generation" counter and then
    deletes all "trips:search:*" keys
  - Readers fetch the generation before querying the database and store the
    page under that generation. A page computed before a mutation lands under
    a generation nobody reads any more, so a slow search can never
    republish seats that were just taken
  - Short TTL as safety net, since "departing after now" drifts on its own
  - Readers re-filter cached pages against the current time and free seats,
    so a trip that departed while cached is never returned

Why NOT cache individual trips:
  - Reservation needs the real-time seat count; a stale count here would
    only produce confusing InsufficientSeatsError responses

Redis is advisory: when it is disabled or unreachable every call degrades
to a cache miss and the database answers.
"""

import hashlib
import json
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from rideshare.core.config import get_settings
from rideshare.core.logging import get_logger
from rideshare.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

SEARCH_KEY_PREFIX = "trips:search:"
# Must not match the SEARCH_KEY_PREFIX scan pattern
SEARCH_GENERATION_KEY = "trips:search-generation"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except RedisError as e:
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def make_search_key(
    generation: int,
    origin: Optional[str],
    destination: Optional[str],
    page: int,
    page_size: int,
) -> str:
    """Filters are hashed as a JSON list so no filter text can forge another key."""
    filters = [
        (origin or "").strip().casefold(),
        (destination or "").strip().casefold(),
        page,
        page_size,
    ]
    digest = hashlib.sha256(json.dumps(filters, ensure_ascii=False).encode("utf-8")).hexdigest()
    return f"{SEARCH_KEY_PREFIX}{generation}:{digest}"


async def get_search_generation() -> Optional[int]:
    """
    Current cache generation, read before the database is queried.
    Returns None when Redis is disabled or failing, which turns caching off
    for the request.
    """
    client = await get_redis()
    if not client:
        return None

    try:
        value = await client.get(SEARCH_GENERATION_KEY)
    except RedisError as e:
        record_cache_operation("generation", "error")
        logger.error("cache_generation_error", error=str(e))
        return None
    return int(value) if value else 0


async def get_cached_search(
    generation: Optional[int],
    origin: Optional[str],
    destination: Optional[str],
    page: int,
    page_size: int,
) -> Optional[dict]:
    """Retrieve a cached search page."""
    if generation is None:
        return None
    client = await get_redis()
    if not client:
        return None

    key = make_search_key(generation, origin, destination, page, page_size)
    try:
        data = await client.get(key)
    except RedisError as e:
        record_cache_operation("get", "error")
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    if data:
        record_cache_operation("get", "hit")
        logger.debug("cache_hit", key=key)
        return json.loads(data)

    record_cache_operation("get", "miss")
    logger.debug("cache_miss", key=key)
    return None


async def set_cached_search(
    generation: Optional[int],
    origin: Optional[str],
    destination: Optional[str],
    page: int,
    page_size: int,
    data: dict,
) -> None:
    """Cache a search page with TTL, under the generation it was computed in."""
    if generation is None:
        return
    client = await get_redis()
    if not client:
        return

    key = make_search_key(generation, origin, destination, page, page_size)
    try:
        await client.setex(
            key,
            settings.REDIS_CACHE_TTL,
            json.dumps(data, default=str, ensure_ascii=False),
        )
        record_cache_operation("set", "ok")
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except RedisError as e:
        record_cache_operation("set", "error")
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_search_cache() -> None:
    """
    Invalidate all cached search pages.
    Bumps the generation first, then uses SCAN to delete the old pages.
    """
    client = await get_redis()
    if not client:
        return

    try:
        generation = await client.incr(SEARCH_GENERATION_KEY)
        deleted = 0
        async for key in client.scan_iter(match=f"{SEARCH_KEY_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        record_cache_operation("invalidate", "ok")
        logger.info("cache_invalidated", generation=generation, keys_deleted=deleted)
    except RedisError as e:
        record_cache_operation("invalidate", "error")
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except RedisError as e:
        return {"status": "error", "error": str(e)}
