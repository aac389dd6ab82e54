import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from redis.exceptions import RedisError

from area_insights.celery_app import celery_app
from area_insights.services.analytics_service import AnalyticsService
from area_insights.services.geo_cache import GeoCache
from area_insights.services.redis_client import RedisClient

logger = logging.getLogger(__name__)


async def evict_expired_entries(threshold_time: Optional[float] = None) -> Tuple[int, int]:
    """Evict stale cache entries, then drop popular-area index members whose record expired."""
    # Each task run owns its event loop, so it also owns its connection pool
    client = RedisClient()
    await client.connect()
    try:
        removed = await GeoCache(client=client).evict_expired(threshold_time)
        pruned = await AnalyticsService(client=client).prune_popular_areas()
        return removed, pruned
    finally:
        await client.disconnect()


@celery_app.task(
    bind=True,
    autoretry_for=(RedisError, ConnectionError),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    max_retries=3,
)
def cleanup_expired_cache(self, threshold_time: Optional[float] = None) -> Dict[str, Any]:
    """
    Periodic task that deletes area cache entries older than the TTL
    and prunes expired popular areas from their ranking index
    """
    removed, pruned = asyncio.run(evict_expired_entries(threshold_time))
    logger.info(
        f"Cache cleanup removed {removed} entries and {pruned} popular areas "
        f"(attempt {self.request.retries + 1})"
    )

    return {
        'cleaned_cache_entries': removed,
        'pruned_popular_areas': pruned,
        'completed_at': datetime.utcnow().isoformat(),
        'status': 'completed'
    }
