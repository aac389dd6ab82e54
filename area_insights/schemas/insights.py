"""
Area Insights Schemas
Request and response models for the personalized area insights endpoint.
"""

from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from pydantic import BaseModel, Field

from area_insights.schemas.places import Coordinates, Place, ScoredPlace


class InsightsFilters(BaseModel):
    """Optional pre-scoring filters applied to every category list."""
    min_rating: Optional[float] = Field(None, ge=0, le=5)
    min_reviews: Optional[int] = Field(None, ge=0)
    open_only: bool = Field(False, description="Only operational places")
    types: Optional[List[str]] = Field(None, description="Keep places with any of these tags")
    max_price_level: Optional[int] = Field(None, ge=0, le=4)


class AreaInsightsRequest(BaseModel):
    """Request for insights around a clicked map point."""
    coords: Coordinates
    user_id: Optional[str] = Field(None, max_length=128)
    filters: InsightsFilters = Field(default_factory=InsightsFilters)


class HourlyActivity(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    activity_level: int = Field(..., ge=0, le=100)


class CrowdLevel(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    level: str


class PeakTimesAnalysis(BaseModel):
    """Time-of-day heuristics for the area."""
    current_conditions: str
    best_time_to_visit: str
    avoid_peak_hours: List[str]
    optimal_day_of_week: str
    hourly_activity: List[HourlyActivity]
    current_crowd_level: str
    predicted_crowd_levels: List[CrowdLevel]


class TimeAssessment(BaseModel):
    status: str
    message: str


class AlternativeTime(BaseModel):
    time: str
    reason: str


class BestVisitTime(BaseModel):
    """Natural-language visit recommendation."""
    recommendation: str
    reasoning: str
    current_time_assessment: TimeAssessment
    alternative_times: List[AlternativeTime] = Field(default_factory=list)


class CategoryCount(BaseModel):
    category: str
    count: int


class AreaStats(BaseModel):
    """Aggregate statistics over the top recommendations."""
    total_places_found: int
    average_rating: float
    price_level_distribution: Dict[str, int]
    popular_categories: List[CategoryCount]


class PersonalizationSummary(BaseModel):
    total_recommendations: int
    top_recommendations: List[Union[ScoredPlace, Place]]
    categorized_recommendations: Dict[str, List[Union[ScoredPlace, Place]]]
    personalization_factors: Dict[str, Any]
    generated_at: datetime


class AreaInsightsResponse(BaseModel):
    """Personalized insights for a clicked area."""
    coordinates: Coordinates
    search_radius: int
    landmarks: List[Union[ScoredPlace, Place]] = Field(default_factory=list)
    restaurants: List[Union[ScoredPlace, Place]] = Field(default_factory=list)
    attractions: List[Union[ScoredPlace, Place]] = Field(default_factory=list)
    entertainment: List[Union[ScoredPlace, Place]] = Field(default_factory=list)
    shopping: List[Union[ScoredPlace, Place]] = Field(default_factory=list)
    top_recommendations: List[Union[ScoredPlace, Place]] = Field(default_factory=list)
    peak_times: PeakTimesAnalysis
    best_visit_time: BestVisitTime
    personalization_summary: PersonalizationSummary
    area_stats: AreaStats
    from_cache: bool
    personalized: bool
    processing_time_ms: float
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class PopularArea(BaseModel):
    """Aggregated search popularity for a coarse area."""
    area_id: str
    coordinates: Optional[Coordinates] = Field(None)
    search_count: int
    last_searched: Optional[datetime] = Field(None)
    created_at: Optional[datetime] = Field(None)
    aggregated_interests: List[str] = Field(default_factory=list)


class PopularAreasResponse(BaseModel):
    areas: List[PopularArea]
    count: int
