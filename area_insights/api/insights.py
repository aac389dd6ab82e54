"""
Area Insights API Endpoints
Personalized points of interest around a clicked map coordinate.
"""

from fastapi import APIRouter, Depends, Request

from area_insights.schemas.insights import AreaInsightsRequest, AreaInsightsResponse
from area_insights.services.insights_service import InsightsService
from area_insights.utils.dependencies import get_insights_service

router = APIRouter()


@router.post("/area-insights", response_model=AreaInsightsResponse)
async def get_area_insights(
    body: AreaInsightsRequest,
    request: Request,
    service: InsightsService = Depends(get_insights_service)
):
    """
    Get personalized insights for the area around a coordinate.

    - **coords**: clicked point, `lat` in [-90, 90] and `lng` in [-180, 180]
    - **user_id**: optional; without it the default preference profile is used
    - **filters**: optional rating, review, price, type and open-only filters

    Results for nearby clicks are served from the area cache for 24 hours.
    """
    return await service.get_area_insights(
        coords=body.coords,
        user_id=body.user_id,
        filters=body.filters,
        user_agent=request.headers.get("user-agent")
    )
