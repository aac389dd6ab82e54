"""
Visit-timing heuristics: crowd levels, peak hours and best-visit recommendations.

The values below are fixed lookup tables, not measurements. They live in
``VisitTimingTables`` so a deployment can swap them without code changes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Tuple

from area_insights.schemas.insights import (
    AlternativeTime, BestVisitTime, CrowdLevel, HourlyActivity, PeakTimesAnalysis, TimeAssessment
)
from area_insights.schemas.places import Place
from area_insights.schemas.preferences import PreferenceRecord
from area_insights.services.preference_tables import AGE_GROUP_PROFILES, NIGHTLIFE_TYPES


def _frozen(mapping):
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class VisitTimingTables:
    # (start_hour, end_hour_exclusive, label); first match wins
    conditions: Tuple[Tuple[int, int, str], ...] = (
        (6, 10, "Morning Rush"),
        (10, 14, "Moderate Activity"),
        (14, 17, "Afternoon Active"),
        (17, 21, "Evening Rush"),
    )
    quiet_label: str = "Quiet Hours"
    avoid_peak_hours: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: _frozen({
        "family": ("11 AM - 1 PM", "5 PM - 7 PM"),
        "young": ("9 AM - 11 AM",),
        "senior": ("6 PM - 9 PM",),
    }))
    default_avoid_peak_hours: Tuple[str, ...] = ("12 PM - 2 PM",)
    quiet_days: str = "Tuesday-Thursday"
    young_days: str = "Friday-Saturday"
    default_days: str = "Wednesday-Friday"
    optimal_hours: Mapping[str, Tuple[int, ...]] = field(default_factory=lambda: _frozen({
        "morning": (9, 10, 11),
        "afternoon": (14, 15, 16),
        "evening": (18, 19, 20),
    }))
    default_optimal_hours: Tuple[int, ...] = (10, 14, 16)
    # (upper bound exclusive, label)
    crowd_thresholds: Tuple[Tuple[int, str], ...] = ((30, "Low"), (60, "Moderate"), (80, "High"))
    crowd_ceiling_label: str = "Very High"
    prediction_hours: int = 6


DEFAULT_TABLES = VisitTimingTables()

VISIT_RECOMMENDATIONS = _frozen({
    "morning": (
        "Visit between 9 AM - 11 AM for the best experience",
        "Morning hours typically offer less crowded locations and better parking availability.",
    ),
    "evening": (
        "Visit between 6 PM - 9 PM for vibrant atmosphere",
        "Evening hours provide lively atmosphere with more dining and entertainment options.",
    ),
    "quiet": (
        "Visit during weekday mornings (10 AM - 12 PM)",
        "Weekday mornings offer peaceful experiences with minimal crowds.",
    ),
    "default": (
        "Visit between 2 PM - 5 PM for optimal balance",
        "Afternoon hours provide good availability with moderate activity levels.",
    ),
})


class VisitTimingAnalyzer:
    """Derives time-of-day annotations from top places and preferences."""

    def __init__(self, tables: VisitTimingTables = DEFAULT_TABLES):
        self.tables = tables

    def peak_times(
        self,
        places: Sequence[Place],
        preferences: PreferenceRecord,
        now: Optional[datetime] = None,
    ) -> PeakTimesAnalysis:
        hour = (now or datetime.now()).hour
        profile = AGE_GROUP_PROFILES.get(preferences.age_group)

        return PeakTimesAnalysis(
            current_conditions=self.current_conditions(hour),
            best_time_to_visit=profile.time_preference if profile else "flexible",
            avoid_peak_hours=self.avoid_peak_hours(preferences.age_group),
            optimal_day_of_week=self.optimal_day_of_week(preferences),
            hourly_activity=self.hourly_activity(places),
            current_crowd_level=self.crowd_level(hour),
            predicted_crowd_levels=self.predicted_crowd_levels(hour),
        )

    def best_visit_time(
        self,
        preferences: PreferenceRecord,
        now: Optional[datetime] = None,
    ) -> BestVisitTime:
        hour = (now or datetime.now()).hour
        profile_time = self._profile_time(preferences)

        if profile_time == "morning":
            choice = "morning"
        elif profile_time == "evening":
            choice = "evening"
        elif preferences.preferred_environment == "quiet":
            choice = "quiet"
        else:
            choice = "default"
        recommendation, reasoning = VISIT_RECOMMENDATIONS[choice]

        return BestVisitTime(
            recommendation=recommendation,
            reasoning=reasoning,
            current_time_assessment=self.assess_hour(hour, preferences),
            alternative_times=self.alternative_times(preferences),
        )

    def current_conditions(self, hour: int) -> str:
        for start, end, label in self.tables.conditions:
            if start <= hour < end:
                return label
        return self.tables.quiet_label

    def avoid_peak_hours(self, age_group: str) -> List[str]:
        return list(self.tables.avoid_peak_hours.get(age_group, self.tables.default_avoid_peak_hours))

    def optimal_day_of_week(self, preferences: PreferenceRecord) -> str:
        if preferences.preferred_environment == "quiet":
            return self.tables.quiet_days
        if preferences.age_group == "young":
            return self.tables.young_days
        return self.tables.default_days

    def hourly_activity(self, places: Sequence[Place]) -> List[HourlyActivity]:
        has_restaurants = any("restaurant" in place.types for place in places)
        has_nightlife = any(NIGHTLIFE_TYPES.intersection(place.types) for place in places)

        return [
            HourlyActivity(hour=hour, activity_level=self.activity_level(hour, has_restaurants, has_nightlife))
            for hour in range(24)
        ]

    def activity_level(self, hour: int, has_restaurants: bool = False, has_nightlife: bool = False) -> int:
        level = 30
        if 9 <= hour <= 21:
            level += 40
        if 12 <= hour <= 14:
            level += 20
        if 18 <= hour <= 20:
            level += 30

        if has_restaurants and (hour in (12, 13) or 18 <= hour <= 20):
            level += 15
        if has_nightlife and hour >= 21:
            level += 25

        return min(100, max(10, level))

    def crowd_level(self, hour: int) -> str:
        activity = self.activity_level(hour)
        for bound, label in self.tables.crowd_thresholds:
            if activity < bound:
                return label
        return self.tables.crowd_ceiling_label

    def predicted_crowd_levels(self, hour: int) -> List[CrowdLevel]:
        upcoming = [(hour + offset) % 24 for offset in range(1, self.tables.prediction_hours + 1)]
        return [CrowdLevel(hour=h, level=self.crowd_level(h)) for h in upcoming]

    def assess_hour(self, hour: int, preferences: PreferenceRecord) -> TimeAssessment:
        optimal = self.tables.optimal_hours.get(self._profile_time(preferences), self.tables.default_optimal_hours)

        if hour in optimal:
            return TimeAssessment(status="optimal", message="Great time to visit!")
        if 12 <= hour <= 14:
            return TimeAssessment(status="busy", message="Expect moderate crowds during lunch hours.")
        if 18 <= hour <= 20:
            return TimeAssessment(status="busy", message="Popular dinner time, expect crowds.")
        return TimeAssessment(status="good", message="Good time to visit with moderate activity.")

    def alternative_times(self, preferences: PreferenceRecord) -> List[AlternativeTime]:
        if preferences.preferred_environment == "quiet":
            return [
                AlternativeTime(time="8 AM - 10 AM", reason="Peaceful morning hours"),
                AlternativeTime(time="Tuesday 2 PM - 4 PM", reason="Weekday afternoon calm"),
            ]
        return [
            AlternativeTime(time="11 AM - 1 PM", reason="Pre-lunch exploration"),
            AlternativeTime(time="3 PM - 5 PM", reason="Afternoon discovery"),
            AlternativeTime(time="7 PM - 9 PM", reason="Evening atmosphere"),
        ]

    @staticmethod
    def _profile_time(preferences: PreferenceRecord) -> Optional[str]:
        profile = AGE_GROUP_PROFILES.get(preferences.age_group)
        return profile.time_preference if profile else None


visit_timing = VisitTimingAnalyzer()
