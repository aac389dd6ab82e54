"""
Places Schemas
Data models for coordinates, provider place records and fetched area bundles.
"""

from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    """A clicked map point in decimal degrees."""
    model_config = ConfigDict(frozen=True)

    # JSON numbers only; booleans and numeric strings are rejected
    lat: float = Field(..., strict=True, ge=-90, le=90, description="Latitude in decimal degrees")
    lng: float = Field(..., strict=True, ge=-180, le=180, description="Longitude in decimal degrees")


class PlaceLocation(BaseModel):
    """Geographic position of a place."""
    lat: float
    lng: float


class OpeningHours(BaseModel):
    """Opening-hours schedule as returned by the provider."""
    open_now: Optional[bool] = Field(None)
    weekday_text: List[str] = Field(default_factory=list)


class Place(BaseModel):
    """A point of interest returned by the places provider."""
    place_id: str = Field(..., description="Provider place identifier")
    name: str
    location: Optional[PlaceLocation] = Field(None)
    rating: Optional[float] = Field(None, ge=0, le=5, description="Average rating")
    user_ratings_total: int = Field(0, ge=0, description="Number of reviews")
    price_level: Optional[int] = Field(None, ge=0, le=4)
    types: List[str] = Field(default_factory=list, description="Category tags")
    vicinity: Optional[str] = Field(None)
    business_status: Optional[str] = Field(None)
    opening_hours: Optional[OpeningHours] = Field(None)


class ScoredPlace(Place):
    """A place annotated with its personalized score."""
    personalized_score: float
    matching_interests: List[str] = Field(default_factory=list)
    age_group_match: bool = False


class AreaBundle(BaseModel):
    """Raw category results fetched for one area."""
    landmarks: List[Place] = Field(default_factory=list)
    restaurants: List[Place] = Field(default_factory=list)
    attractions: List[Place] = Field(default_factory=list)
    entertainment: List[Place] = Field(default_factory=list)
    shopping: List[Place] = Field(default_factory=list)
    coordinates: Optional[Coordinates] = Field(None)
    search_radius: int = Field(3000, gt=0)
    fetched_at: datetime = Field(default_factory=datetime.utcnow)
    failed_categories: List[str] = Field(default_factory=list)
