"""
Redis caching service for event listings.

CACHING STRATEGY
================

What we cache:
  - Event listing responses (paginated, JSON-serialized, with live seat counts)
  - Cache key pattern: "events:list:page={page}&size={size}&status={status}"

Invalidation:
  - On booking or cancellation: available seat counts changed
  - On scheduler transitions: event status changed, and status filters
    would serve stale pages
  - TTL-based expiry as safety net

  All listing keys share the "events:list:" prefix, so invalidation is a
  SCAN + DELETE over that prefix.

What we do NOT cache:
  - Seat maps and single events: booking needs real-time availability, and
    the database stays authoritative for every write decision

Redis is advisory. Any Redis error degrades to "no cache" and is logged.
"""

import json
from typing import Optional

import redis.asyncio as redis
from seatify.core.config import get_settings
from seatify.core.logging import get_logger
from seatify.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

LIST_PREFIX = "events:list:"

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
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except Exception as e:
            redis_connection_errors.inc()
            logger.error("redis_connection_failed", error=str(e))
            await client.aclose()
            return None
        _redis_client = client
        logger.info("redis_connected", url=settings.REDIS_URL)

    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_event_list_key(page: int, page_size: int, status: Optional[str]) -> str:
    return f"{LIST_PREFIX}page={page}&size={page_size}&status={status or 'any'}"


async def get_cached_events(page: int, page_size: int, status: Optional[str]) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_event_list_key(page, page_size, status)
    try:
        data = await client.get(key)
    except Exception as e:
        record_cache_operation("get", "error")
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    if data:
        record_cache_operation("get", "hit")
        return json.loads(data)
    record_cache_operation("get", "miss")
    return None


async def set_cached_events(
    page: int,
    page_size: int,
    status: Optional[str],
    data: dict,
) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_event_list_key(page, page_size, status)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set", "ok")
    except Exception as e:
        record_cache_operation("set", "error")
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_event_cache() -> None:
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        record_cache_operation("invalidate", "ok")
        logger.debug("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        record_cache_operation("invalidate", "error")
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Redis statistics for the health endpoint."""
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
    except Exception as e:
        return {"status": "error", "error": str(e)}
