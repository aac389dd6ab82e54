"""
Geo Cache
Caches fetched area bundles in Redis under a rounded coordinate + radius key.
"""

import math
import time
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

from area_insights.config import settings
from area_insights.schemas.places import AreaBundle, Coordinates
from area_insights.services.redis_client import RedisClient, redis_client
from area_insights.utils.metrics import cache_tracker

logger = logging.getLogger(__name__)

CACHE_PREFIX = "area_cache:"
CACHE_INDEX_KEY = "area_cache:index"
POPULAR_AREAS_KEY = "popular_areas"

KEY_PRECISION = 3


def round_half_up(value: float, precision: int) -> float:
    factor = 10 ** precision
    return math.floor(value * factor + 0.5) / factor


def area_key(coords: Coordinates, radius: int, precision: int = KEY_PRECISION) -> str:
    """Key shared by every coordinate inside one rounding cell."""
    lat = round_half_up(coords.lat, precision)
    lng = round_half_up(coords.lng, precision)
    return f"{lat:.{precision}f}_{lng:.{precision}f}_{radius}"


class GeoCache:
    """TTL cache of raw place bundles keyed by rounded coordinates.

    Each entry is a Redis hash holding the JSON payload and its bookkeeping
    fields. A sorted set scored by ``cached_at`` indexes the entries so the
    maintenance task can find expired ones without scanning the keyspace.
    Request-path methods never raise.
    """

    def __init__(
        self,
        client: Optional[RedisClient] = None,
        ttl_hours: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client or redis_client
        self.ttl_hours = ttl_hours if ttl_hours is not None else settings.cache_ttl_hours
        self.clock = clock

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_hours * 3600

    def key(self, coords: Coordinates, radius: Optional[int] = None) -> str:
        return area_key(coords, radius or settings.places_search_radius)

    async def get(self, key: str) -> Optional[AreaBundle]:
        """Return the cached bundle, or None when absent, expired or unreadable."""
        try:
            entry = await self.client.hgetall(CACHE_PREFIX + key)
            if not entry:
                cache_tracker.record_cache_operation("get", "area", "miss")
                return None

            cache_age = self.clock() - float(entry["cached_at"])
            if cache_age > self.ttl_seconds:
                await self._remove(key)
                cache_tracker.record_cache_operation("get", "area", "miss")
                logger.debug(f"Expired area cache entry removed: {key}")
                return None

            bundle = AreaBundle.model_validate_json(entry["payload"])
            cache_tracker.record_cache_operation("get", "area", "hit")
            return bundle

        except Exception as e:
            cache_tracker.record_cache_operation("get", "area", "error")
            logger.warning(f"Area cache read failed for {key}: {e}")
            return None

    async def put(self, key: str, payload: AreaBundle) -> None:
        """Create or overwrite an entry, resetting its access count."""
        now = self.clock()
        try:
            await self.client.hset(CACHE_PREFIX + key, {
                "payload": payload.model_dump_json(),
                "cached_at": repr(now),
                "access_count": "1",
                "last_accessed": repr(now),
            })
            await self.client.zadd(CACHE_INDEX_KEY, {key: now})
            cache_tracker.record_cache_operation("put", "area", "success")
            logger.debug(f"Cached area data for key: {key}")
        except Exception as e:
            cache_tracker.record_cache_operation("put", "area", "error")
            logger.warning(f"Area cache write failed for {key}: {e}")

    async def touch(self, key: str) -> None:
        try:
            if not await self.client.exists(CACHE_PREFIX + key):
                return
            await self.client.hincrby(CACHE_PREFIX + key, "access_count", 1)
            await self.client.hset(CACHE_PREFIX + key, {"last_accessed": repr(self.clock())})
        except Exception as e:
            logger.warning(f"Area cache access update failed for {key}: {e}")

    async def evict_expired(self, threshold_time: Union[datetime, float, None] = None) -> int:
        """Delete every entry cached before ``threshold_time``.

        Defaults to ``now - TTL``. Storage errors propagate so the maintenance
        task can retry.
        """
        if threshold_time is None:
            threshold = self.clock() - self.ttl_seconds
        elif isinstance(threshold_time, datetime):
            # Naive datetimes are UTC, matching the stored epoch scores
            if threshold_time.tzinfo is None:
                threshold_time = threshold_time.replace(tzinfo=timezone.utc)
            threshold = threshold_time.timestamp()
        else:
            threshold = float(threshold_time)

        expired = await self.client.zrangebyscore(CACHE_INDEX_KEY, float("-inf"), threshold)
        if not expired:
            return 0

        await self.client.delete(*[CACHE_PREFIX + key for key in expired])
        await self.client.zrem(CACHE_INDEX_KEY, *expired)
        logger.info(f"Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    async def statistics(self) -> Dict[str, Any]:
        try:
            keys = await self.client.zrangebyscore(CACHE_INDEX_KEY, float("-inf"), float("inf"))
            total_access = 0
            for key in keys:
                entry = await self.client.hgetall(CACHE_PREFIX + key)
                total_access += int(entry.get("access_count", 0)) if entry else 0

            oldest = await self.client.zrange_withscores(CACHE_INDEX_KEY, 0, 0)
            newest = await self.client.zrevrange_withscores(CACHE_INDEX_KEY, 0, 0)

            return {
                "total_cache_entries": len(keys),
                "total_cache_access": total_access,
                "popular_areas_tracked": await self.client.zcard(POPULAR_AREAS_KEY),
                "oldest_cache_entry": datetime.utcfromtimestamp(oldest[0][1]) if oldest else None,
                "newest_cache_entry": datetime.utcfromtimestamp(newest[0][1]) if newest else None,
                "cache_ttl_hours": self.ttl_hours,
            }
        except Exception as e:
            logger.error(f"Error getting cache statistics: {e}")
            return {
                "total_cache_entries": 0,
                "total_cache_access": 0,
                "popular_areas_tracked": 0,
                "cache_ttl_hours": self.ttl_hours,
                "error": "Cache statistics unavailable",
            }

    async def _remove(self, key: str):
        await self.client.delete(CACHE_PREFIX + key)
        await self.client.zrem(CACHE_INDEX_KEY, key)


geo_cache = GeoCache()
