"""
User Preference Schemas
Defines the stored preference record and the request/response models around it.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, validator

from area_insights.services.preference_tables import (
    ACTIVITY_TYPES, AGE_GROUP_PROFILES, DEFAULT_PREFERENCES, INTEREST_MAPPING
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AgeGroup(str, Enum):
    YOUNG = "young"
    ADULT = "adult"
    SENIOR = "senior"
    FAMILY = "family"


class Environment(str, Enum):
    QUIET = "quiet"
    BUSY = "busy"
    TRENDING = "trending"
    FAMILY_FRIENDLY = "family-friendly"
    MIXED = "mixed"


class PriceRange(str, Enum):
    BUDGET = "budget"
    LOW = "low"
    MEDIUM = "medium"
    COMFORTABLE = "comfortable"
    LUXURY = "luxury"


class TimePreference(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"
    FLEXIBLE = "flexible"


class PreferenceRecord(BaseModel):
    """A user's personalization profile. Missing fields take the documented defaults."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    user_id: Optional[str] = Field(None)
    interests: List[str] = Field(default_factory=lambda: list(DEFAULT_PREFERENCES["interests"]))
    age_group: AgeGroup = Field(AgeGroup.ADULT)
    activity_types: List[str] = Field(default_factory=lambda: list(DEFAULT_PREFERENCES["activity_types"]))
    preferred_environment: Environment = Field(Environment.MIXED)
    price_range: PriceRange = Field(PriceRange.MEDIUM)
    time_preference: TimePreference = Field(TimePreference.FLEXIBLE)
    group_size: str = Field("small")
    accessibility_needs: bool = Field(False)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    is_default: bool = Field(False, description="True when no stored record was found")


class PreferenceUpdate(BaseModel):
    """Partial preference update. Only fields that are set are merged."""
    model_config = ConfigDict(use_enum_values=True, extra="ignore")

    interests: Optional[List[str]] = Field(None)
    age_group: Optional[AgeGroup] = Field(None)
    activity_types: Optional[List[str]] = Field(None)
    preferred_environment: Optional[Environment] = Field(None)
    price_range: Optional[PriceRange] = Field(None)
    time_preference: Optional[TimePreference] = Field(None)
    group_size: Optional[str] = Field(None, max_length=50)
    accessibility_needs: Optional[bool] = Field(None)

    @validator("interests")
    def validate_interests(cls, v):
        if v is None:
            return v
        invalid = [interest for interest in v if interest not in INTEREST_MAPPING]
        if invalid:
            raise ValueError(
                f"Invalid interests: {', '.join(invalid)}. "
                f"Available: {', '.join(INTEREST_MAPPING)}"
            )
        return v

    @validator("activity_types")
    def validate_activity_types(cls, v):
        if v is None:
            return v
        invalid = [activity for activity in v if activity not in ACTIVITY_TYPES]
        if invalid:
            raise ValueError(
                f"Invalid activity types: {', '.join(invalid)}. "
                f"Available: {', '.join(ACTIVITY_TYPES)}"
            )
        return v


class PreferenceCreateRequest(BaseModel):
    """Body for creating preferences; a user id is generated when omitted."""
    user_id: Optional[str] = Field(None, min_length=1, max_length=128)
    preferences: PreferenceUpdate


class PreferenceUpdateRequest(BaseModel):
    preferences: PreferenceUpdate


class AvailableOptions(BaseModel):
    """Enumerations a client can choose from."""
    interests: List[str] = Field(default_factory=lambda: list(INTEREST_MAPPING))
    age_groups: List[str] = Field(default_factory=lambda: list(AGE_GROUP_PROFILES))
    environments: List[str] = Field(default_factory=lambda: [e.value for e in Environment])
    price_ranges: List[str] = Field(default_factory=lambda: [p.value for p in PriceRange])
    time_preferences: List[str] = Field(default_factory=lambda: [t.value for t in TimePreference])
    activity_types: List[str] = Field(default_factory=lambda: list(ACTIVITY_TYPES))


class PreferencesResponse(BaseModel):
    """Preferences plus the options available for editing them."""
    preferences: PreferenceRecord
    available_options: AvailableOptions
    is_default: bool


class PreferenceSaveResponse(BaseModel):
    user_id: str
    preferences: PreferenceRecord
    message: str
    operation: str


class PreferenceDeleteResponse(BaseModel):
    user_id: str
    deleted: bool
    message: str


class ProfileInsightsResponse(BaseModel):
    """Derived insights about a user's preference profile."""
    preferences: PreferenceRecord
    recommended_categories: List[Dict[str, str]] = Field(default_factory=list)
    personality_profile: Dict[str, str] = Field(default_factory=dict)
    optimal_times: Dict[str, Any] = Field(default_factory=dict)
    improvement_suggestions: List[Dict[str, str]] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=datetime.utcnow)
