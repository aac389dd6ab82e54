"""
Monitoring and Health Check API Endpoints
Metrics exposition, cache statistics and component health.
"""

import time
from datetime import datetime
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from area_insights.config import settings
from area_insights.database import check_db
from area_insights.services.geo_cache import GeoCache
from area_insights.services.places_service import PlacesLookupAdapter
from area_insights.services.redis_client import redis_client
from area_insights.utils.dependencies import get_geo_cache, get_places_adapter
from area_insights.utils.metrics import get_metrics_response

router = APIRouter()


@router.get("/metrics")
async def get_prometheus_metrics():
    """
    Get Prometheus metrics for monitoring systems.
    """
    return get_metrics_response()


@router.get("/cache")
async def get_cache_statistics(cache: GeoCache = Depends(get_geo_cache)):
    """
    Area cache statistics: entry count, total accesses, oldest and newest
    entries, and the number of popular areas tracked.
    """
    return await cache.statistics()


@router.get("/health")
async def comprehensive_health_check(places: PlacesLookupAdapter = Depends(get_places_adapter)):
    """
    Health of Redis, the preference database and the places provider configuration.

    Returns 503 when Redis or the database is unreachable. A missing places
    API key only degrades the status, since insights still return (empty).
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.app_version,
        "components": {}
    }
    overall_healthy = True

    try:
        start_time = time.time()
        await redis_client.ping()
        health_status["components"]["redis"] = {
            "status": "healthy",
            "response_time_ms": round((time.time() - start_time) * 1000, 2)
        }
    except Exception as e:
        overall_healthy = False
        health_status["components"]["redis"] = {
            "status": "unhealthy",
            "error": type(e).__name__,
            "details": "Redis connection failed"
        }

    try:
        start_time = time.time()
        await check_db()
        health_status["components"]["database"] = {
            "status": "healthy",
            "response_time_ms": round((time.time() - start_time) * 1000, 2)
        }
    except Exception as e:
        overall_healthy = False
        health_status["components"]["database"] = {
            "status": "unhealthy",
            "error": type(e).__name__,
            "details": "Database connection failed"
        }

    places_status = places.status()
    health_status["components"]["places_api"] = {
        "status": "healthy" if places_status["configured"] else "degraded",
        **places_status
    }

    if not overall_healthy:
        health_status["status"] = "unhealthy"
    elif not places_status["configured"]:
        health_status["status"] = "degraded"

    return JSONResponse(content=health_status, status_code=200 if overall_healthy else 503)
