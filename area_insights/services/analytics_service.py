"""
Analytics Service
Popular-area aggregation and the capped analytics event log, both kept in Redis.
"""

import json
import uuid
import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from area_insights.config import settings
from area_insights.schemas.insights import PopularArea
from area_insights.schemas.places import Coordinates
from area_insights.services.geo_cache import POPULAR_AREAS_KEY, area_key
from area_insights.services.redis_client import RedisClient, redis_client

logger = logging.getLogger(__name__)

POPULAR_AREA_PREFIX = "popular_area:"
EVENTS_KEY = "analytics:events"
TRACKING_RADIUS = 1000
MAX_AGGREGATED_INTERESTS = 10


class AnalyticsService:
    """Informational counters; nothing here feeds back into ranking."""

    def __init__(self, client: Optional[RedisClient] = None):
        self.client = client or redis_client

    def area_id(self, coords: Coordinates) -> str:
        return area_key(coords, TRACKING_RADIUS, precision=settings.popular_area_precision)

    async def track_popular_area(
        self,
        coords: Coordinates,
        interests: Optional[List[str]] = None,
        result_count: int = 0,
    ) -> str:
        area_id = self.area_id(coords)
        key = POPULAR_AREA_PREFIX + area_id
        now = datetime.utcnow().isoformat()

        existing = await self.client.hgetall(key)
        pipe = await self.client.pipeline()
        if existing:
            counts = Counter(json.loads(existing.get("interest_counts") or "{}"))
            counts.update(interests or [])
            pipe.hincrby(key, "search_count", 1)
            pipe.hset(key, mapping={
                "last_searched": now,
                "last_result_count": str(result_count),
                "interest_counts": json.dumps(dict(counts)),
            })
            pipe.zincrby(POPULAR_AREAS_KEY, 1, area_id)
        else:
            pipe.hset(key, mapping={
                "lat": repr(coords.lat),
                "lng": repr(coords.lng),
                "search_count": "1",
                "created_at": now,
                "last_searched": now,
                "last_result_count": str(result_count),
                "interest_counts": json.dumps(dict(Counter(interests or []))),
            })
            pipe.zadd(POPULAR_AREAS_KEY, {area_id: 1})

        pipe.expire(key, settings.popular_areas_ttl_hours * 3600)
        await pipe.execute()

        logger.debug(f"Tracked popular area: {area_id}")
        return area_id

    async def get_popular_areas(self, limit: int = 10) -> List[PopularArea]:
        """Most searched areas first. Returns [] when storage is unavailable.

        Index members whose record has expired are removed as they are met,
        and the scan continues past them so up to ``limit`` live areas are returned.
        """
        try:
            areas = []
            offset = 0
            while len(areas) < limit:
                ranked = await self.client.zrevrange_withscores(POPULAR_AREAS_KEY, offset, offset + limit - 1)
                if not ranked:
                    break

                stale = []
                for area_id, score in ranked:
                    record = await self.client.hgetall(POPULAR_AREA_PREFIX + area_id)
                    if not record:
                        stale.append(area_id)
                    elif len(areas) < limit:
                        areas.append(self._to_popular_area(area_id, record, score))

                if stale:
                    await self.client.zrem(POPULAR_AREAS_KEY, *stale)
                offset += len(ranked) - len(stale)
            return areas

        except Exception as e:
            logger.error(f"Error getting popular areas: {e}")
            return []

    async def prune_popular_areas(self) -> int:
        """Drop every index member whose area record has expired."""
        area_ids = await self.client.zrangebyscore(POPULAR_AREAS_KEY, float("-inf"), float("inf"))
        stale = []
        for area_id in area_ids:
            if not await self.client.exists(POPULAR_AREA_PREFIX + area_id):
                stale.append(area_id)

        if stale:
            await self.client.zrem(POPULAR_AREAS_KEY, *stale)
            logger.info(f"Pruned {len(stale)} expired popular areas")
        return len(stale)

    async def log_event(
        self,
        event_type: str,
        event_data: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> str:
        event_id = str(uuid.uuid4())
        entry = {
            "event_id": event_id,
            "event_type": event_type,
            "event_data": event_data,
            "user_id": user_id,
            "timestamp": datetime.utcnow().isoformat(),
        }
        pipe = await self.client.pipeline()
        pipe.lpush(EVENTS_KEY, json.dumps(entry, default=str))
        pipe.ltrim(EVENTS_KEY, 0, settings.analytics_max_events - 1)
        await pipe.execute()
        return event_id

    async def recent_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        raw_events = await self.client.lrange(EVENTS_KEY, 0, limit - 1)
        return [json.loads(raw) for raw in raw_events]

    @staticmethod
    def _to_popular_area(area_id: str, record: Dict[str, str], score: float) -> PopularArea:
        counts = Counter(json.loads(record.get("interest_counts") or "{}"))
        coordinates = None
        if "lat" in record and "lng" in record:
            coordinates = Coordinates(lat=float(record["lat"]), lng=float(record["lng"]))

        return PopularArea(
            area_id=area_id,
            coordinates=coordinates,
            search_count=int(record.get("search_count") or score),
            last_searched=record.get("last_searched"),
            created_at=record.get("created_at"),
            aggregated_interests=[interest for interest, _ in counts.most_common(MAX_AGGREGATED_INTERESTS)],
        )


analytics_service = AnalyticsService()
