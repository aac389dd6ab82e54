"""
Personalization Engine
Scores, filters, sorts and caps provider places against a user's preference record.
"""

import math
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from area_insights.config import settings
from area_insights.schemas.insights import InsightsFilters
from area_insights.schemas.places import Place, ScoredPlace
from area_insights.schemas.preferences import PreferenceRecord
from area_insights.services.preference_tables import (
    AGE_GROUP_PROFILES, DEFAULT_AGE_GROUP, DEFAULT_PRICE_INDEX, FAMILY_FRIENDLY_TYPES,
    INTEREST_MAPPING, PRICE_RANGE_INDEX, PRIMARY_TYPES, TIME_WINDOWS, AgeGroupProfile
)

logger = logging.getLogger(__name__)

MIN_RELEVANCE_SCORE = 2
FALLBACK_LIMIT = 15
REVIEW_SCORE_CAP = 5
SUMMARY_SIZE = 5
SCORE_FIELDS = {"personalized_score", "matching_interests", "age_group_match"}


@dataclass
class PersonalizationContext:
    """Per-call signals that are not part of the stored preferences."""
    current_time: Optional[datetime] = None
    filters: Optional[InsightsFilters] = None
    max_results: int = field(default_factory=lambda: settings.max_personalized_results)

    def hour(self) -> int:
        return (self.current_time or datetime.now()).hour


class PersonalizationEngine:
    """Weighted linear ranking of places for one preference record.

    The engine holds no mutable state; all lookup tables are module
    constants. ``personalize`` never raises: on unexpected input it logs the
    failure and returns the first fifteen input places unscored.
    """

    def personalize(
        self,
        places: Sequence[Place],
        preferences: Optional[PreferenceRecord] = None,
        context: Optional[PersonalizationContext] = None,
    ) -> List[Union[ScoredPlace, Place]]:
        preferences = preferences or PreferenceRecord(is_default=True)
        context = context or PersonalizationContext()

        try:
            candidates = self.apply_filters(places, context.filters)

            relevant = set(self.relevant_tags(preferences.interests))
            profile = self.age_group_profile(preferences.age_group)
            hour = context.hour()

            scored = [
                self._score_place(place, preferences, relevant, profile, hour)
                for place in candidates
            ]

            ranked = [place for place in scored if place.personalized_score > MIN_RELEVANCE_SCORE]
            # sorted() is stable, so equal scores keep input order
            ranked = sorted(ranked, key=lambda place: -place.personalized_score)
            return ranked[:context.max_results]

        except Exception as e:
            logger.error(f"Error personalizing places: {e}", exc_info=True)
            return list(places[:FALLBACK_LIMIT])

    def apply_filters(self, places: Iterable[Place], filters: Optional[InsightsFilters]) -> List[Place]:
        if filters is None:
            return list(places)

        kept = []
        for place in places:
            if filters.min_rating is not None and (place.rating or 0) < filters.min_rating:
                continue
            if filters.min_reviews is not None and place.user_ratings_total < filters.min_reviews:
                continue
            if filters.open_only and place.business_status != "OPERATIONAL":
                continue
            if filters.types and not any(tag in place.types for tag in filters.types):
                continue
            if (filters.max_price_level is not None and place.price_level is not None
                    and place.price_level > filters.max_price_level):
                continue
            kept.append(place)
        return kept

    def relevant_tags(self, interests: Iterable[str]) -> List[str]:
        """Expand interests to category tags; unmapped interests are kept literally."""
        tags: Dict[str, None] = {}
        for interest in interests:
            for tag in INTEREST_MAPPING.get(interest, (interest,)):
                tags.setdefault(tag)
        return list(tags)

    def age_group_profile(self, age_group: str) -> AgeGroupProfile:
        return AGE_GROUP_PROFILES.get(age_group, AGE_GROUP_PROFILES[DEFAULT_AGE_GROUP])

    def price_level_score(self, price_level: int, price_range: str) -> float:
        preferred = PRICE_RANGE_INDEX.get(price_range, DEFAULT_PRICE_INDEX)
        return max(0, 2 - abs(price_level - preferred))

    def environment_score(self, place: Place, environment: str) -> float:
        reviews = place.user_ratings_total or 0

        if environment == "quiet":
            return 2 if reviews < 100 else 0
        if environment == "busy":
            return 2 if reviews > 500 else 0
        if environment == "trending":
            return 3 if (place.rating or 0) > 4.0 and reviews > 200 else 0
        if environment == "family-friendly":
            return 2 if FAMILY_FRIENDLY_TYPES.intersection(place.types) else 0
        return 1

    def time_score(self, hour: int, time_preference: str) -> float:
        window = TIME_WINDOWS.get(time_preference)
        if window is None:
            return 0.5

        start, end = window
        if start < end:
            return 1 if start <= hour < end else 0
        return 1 if hour >= start or hour < end else 0

    def primary_category(self, types: Sequence[str]) -> str:
        for tag in PRIMARY_TYPES:
            if tag in types:
                return tag
        return types[0] if types else "general"

    def summarize(
        self,
        scored_places: Sequence[Union[ScoredPlace, Place]],
        preferences: PreferenceRecord,
    ) -> Dict[str, Any]:
        top_places = list(scored_places[:SUMMARY_SIZE])

        categories: Dict[str, List[Union[ScoredPlace, Place]]] = {}
        for place in top_places:
            categories.setdefault(self.primary_category(place.types), []).append(place)

        return {
            "total_recommendations": len(scored_places),
            "top_recommendations": top_places,
            "categorized_recommendations": categories,
            "personalization_factors": {
                "interests": list(preferences.interests),
                "age_group": preferences.age_group,
                "preferred_environment": preferences.preferred_environment,
                "price_range": preferences.price_range,
                "time_preference": preferences.time_preference,
            },
            "generated_at": datetime.utcnow(),
        }

    def available_interests(self) -> List[str]:
        return list(INTEREST_MAPPING)

    def available_age_groups(self) -> List[str]:
        return list(AGE_GROUP_PROFILES)

    def _score_place(
        self,
        place: Place,
        preferences: PreferenceRecord,
        relevant: set,
        profile: AgeGroupProfile,
        hour: int,
    ) -> ScoredPlace:
        reviews = place.user_ratings_total or 0
        tags = list(dict.fromkeys(place.types))

        matching = [tag for tag in tags if tag in relevant]
        priority_matches = [tag for tag in tags if tag in profile.priority_types]

        score = (place.rating or 0) * 2
        score += min(math.log(reviews + 1), REVIEW_SCORE_CAP)
        score += 3 * len(matching)
        score += 2 * len(priority_matches)
        if place.price_level is not None:
            score += self.price_level_score(place.price_level, preferences.price_range)
        score += self.environment_score(place, preferences.preferred_environment)
        score += self.time_score(hour, preferences.time_preference)
        if place.business_status == "OPERATIONAL":
            score += 1

        data = place.model_dump(exclude=SCORE_FIELDS)
        return ScoredPlace(
            **data,
            personalized_score=score,
            matching_interests=matching,
            age_group_match=bool(priority_matches),
        )


personalization_engine = PersonalizationEngine()
