from fastapi import APIRouter, Depends, Query

from area_insights.schemas.insights import PopularAreasResponse
from area_insights.services.analytics_service import AnalyticsService
from area_insights.utils.dependencies import get_analytics_service

router = APIRouter()


@router.get("/popular", response_model=PopularAreasResponse)
async def get_popular_areas(
    limit: int = Query(10, ge=1, le=100, description="Number of areas to return"),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    """
    Most searched areas, ordered by search count.
    """
    areas = await analytics.get_popular_areas(limit)
    return PopularAreasResponse(areas=areas, count=len(areas))
