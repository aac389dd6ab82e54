"""
Static lookup tables shared by the personalization engine and preference validation.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import FrozenSet, Mapping, Tuple


# Interest -> provider category tags
INTEREST_MAPPING: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "food": ("restaurant", "cafe", "bakery", "meal_takeaway", "meal_delivery"),
    "nightlife": ("night_club", "bar", "liquor_store"),
    "culture": ("museum", "art_gallery", "library", "university"),
    "history": ("tourist_attraction", "museum", "cemetery", "place_of_worship"),
    "shopping": ("shopping_mall", "store", "clothing_store", "electronics_store"),
    "entertainment": ("amusement_park", "movie_theater", "bowling_alley", "casino"),
    "nature": ("park", "zoo", "aquarium", "campground"),
    "fitness": ("gym", "spa", "stadium"),
    "business": ("bank", "post_office", "city_hall", "courthouse"),
    "health": ("hospital", "pharmacy", "doctor", "dentist"),
    "travel": ("lodging", "travel_agency", "gas_station", "airport"),
    "services": ("car_repair", "laundry", "hair_care", "beauty_salon"),
})


@dataclass(frozen=True)
class AgeGroupProfile:
    """Secondary ranking signals for an age group."""
    priority_types: FrozenSet[str]
    time_preference: str
    price_range: str


AGE_GROUP_PROFILES: Mapping[str, AgeGroupProfile] = MappingProxyType({
    "young": AgeGroupProfile(
        priority_types=frozenset({"night_club", "bar", "amusement_park", "shopping_mall"}),
        time_preference="evening",
        price_range="budget",
    ),
    "adult": AgeGroupProfile(
        priority_types=frozenset({"restaurant", "museum", "tourist_attraction", "park"}),
        time_preference="flexible",
        price_range="medium",
    ),
    "senior": AgeGroupProfile(
        priority_types=frozenset({"museum", "park", "restaurant", "library"}),
        time_preference="morning",
        price_range="comfortable",
    ),
    "family": AgeGroupProfile(
        priority_types=frozenset({"park", "zoo", "amusement_park", "restaurant"}),
        time_preference="daytime",
        price_range="family-friendly",
    ),
})

DEFAULT_AGE_GROUP = "adult"

PRICE_RANGE_INDEX: Mapping[str, int] = MappingProxyType({
    "budget": 0,
    "low": 1,
    "medium": 2,
    "comfortable": 3,
    "luxury": 4,
})

DEFAULT_PRICE_INDEX = 2

FAMILY_FRIENDLY_TYPES: FrozenSet[str] = frozenset({"park", "zoo", "amusement_park"})

# Checked in order when picking a place's primary category
PRIMARY_TYPES: Tuple[str, ...] = (
    "restaurant", "tourist_attraction", "shopping_mall", "museum",
    "park", "night_club", "bar", "cafe", "amusement_park",
)

NIGHTLIFE_TYPES: FrozenSet[str] = frozenset({"night_club", "bar"})

ACTIVITY_TYPES: Tuple[str, ...] = (
    "sightseeing", "dining", "shopping", "nightlife", "culture",
    "history", "nature", "entertainment", "fitness", "relaxation",
)

# name (hours are [start, end), night wraps midnight)
TIME_WINDOWS: Mapping[str, Tuple[int, int]] = MappingProxyType({
    "morning": (6, 12),
    "afternoon": (12, 17),
    "evening": (17, 22),
    "night": (22, 6),
})

DEFAULT_PREFERENCES: Mapping[str, object] = MappingProxyType({
    "interests": ("restaurant", "tourist_attraction", "shopping_mall"),
    "age_group": "adult",
    "activity_types": ("sightseeing", "dining", "shopping"),
    "preferred_environment": "mixed",
    "price_range": "medium",
    "time_preference": "flexible",
    "group_size": "small",
    "accessibility_needs": False,
})
