"""
Insights Orchestrator
Ties the geo cache, places adapter, preference store and personalization engine
together into one area insights response.
"""

import time
import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from area_insights.config import settings
from area_insights.exceptions import InternalError, ValidationError
from area_insights.schemas.insights import (
    AreaInsightsResponse, AreaStats, CategoryCount, InsightsFilters, PersonalizationSummary
)
from area_insights.schemas.places import Coordinates, Place, ScoredPlace
from area_insights.services.analytics_service import AnalyticsService, analytics_service
from area_insights.services.background import BackgroundDispatcher, background_dispatcher
from area_insights.services.geo_cache import GeoCache, geo_cache
from area_insights.services.personalization_service import (
    PersonalizationContext, PersonalizationEngine, personalization_engine
)
from area_insights.services.places_service import CATEGORY_QUERIES, PlacesLookupAdapter, places_adapter
from area_insights.services.preference_service import PreferenceStore, preference_store
from area_insights.services.visit_timing import VisitTimingAnalyzer, visit_timing
from area_insights.utils.logging import insights_logger
from area_insights.utils.metrics import metrics

logger = logging.getLogger(__name__)

# Per-category list sizes in the response
CATEGORY_LIMITS = {
    "landmarks": 5,
    "restaurants": 5,
    "attractions": 5,
    "entertainment": 3,
    "shopping": 3,
}

PRICE_BUCKETS = ("0", "1", "2", "3", "4")
POPULAR_CATEGORY_LIMIT = 5


def _format_validation_error(error: PydanticValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        messages.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(messages)


def validate_coordinates(coords: Union[Coordinates, Dict[str, Any], None]) -> Coordinates:
    if isinstance(coords, Coordinates):
        return coords
    if coords is None:
        raise ValidationError("Coordinates are required")
    try:
        return Coordinates.model_validate(coords)
    except PydanticValidationError as e:
        raise ValidationError(_format_validation_error(e)) from e


def validate_filters(filters: Union[InsightsFilters, Dict[str, Any], None]) -> Optional[InsightsFilters]:
    if filters is None or isinstance(filters, InsightsFilters):
        return filters
    try:
        return InsightsFilters.model_validate(filters)
    except PydanticValidationError as e:
        raise ValidationError(_format_validation_error(e)) from e


class InsightsService:
    """Request-level coordinator. Holds collaborators only, no per-request state."""

    def __init__(
        self,
        cache: Optional[GeoCache] = None,
        places: Optional[PlacesLookupAdapter] = None,
        preferences: Optional[PreferenceStore] = None,
        engine: Optional[PersonalizationEngine] = None,
        timing: Optional[VisitTimingAnalyzer] = None,
        analytics: Optional[AnalyticsService] = None,
        dispatcher: Optional[BackgroundDispatcher] = None,
    ):
        self.cache = cache or geo_cache
        self.places = places or places_adapter
        self.preferences = preferences or preference_store
        self.engine = engine or personalization_engine
        self.timing = timing or visit_timing
        self.analytics = analytics or analytics_service
        self.dispatcher = dispatcher or background_dispatcher

    async def get_area_insights(
        self,
        coords: Union[Coordinates, Dict[str, Any]],
        user_id: Optional[str] = None,
        filters: Union[InsightsFilters, Dict[str, Any], None] = None,
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AreaInsightsResponse:
        """Build personalized insights for the area around ``coords``.

        Raises ValidationError for bad coordinates or filters and
        InternalError for anything unexpected while building the response.
        Cache, provider and preference-store failures degrade instead.
        """
        start_time = time.time()
        coords = validate_coordinates(coords)
        filters = validate_filters(filters)
        now = now or datetime.now()

        try:
            cache_key = self.cache.key(coords)
            bundle = await self.cache.get(cache_key)
            from_cache = bundle is not None

            if from_cache:
                await self.cache.touch(cache_key)
            else:
                bundle = await self.places.fetch_area_bundle(coords)
                if len(bundle.failed_categories) < len(CATEGORY_QUERIES):
                    await self.cache.put(cache_key, bundle)
                else:
                    logger.warning(f"Every category lookup failed for {cache_key}, not caching")
            insights_logger.log_cache_lookup(cache_key, from_cache, coords.lat, coords.lng)

            preferences = await self.preferences.get(user_id)

            context = PersonalizationContext(current_time=now, filters=filters)
            personalized = {
                category: self.engine.personalize(getattr(bundle, category), preferences, context)
                for category in CATEGORY_QUERIES
            }

            all_places = [place for places in personalized.values() for place in places]
            top_limit = settings.top_recommendations_limit
            top_recommendations = self.engine.personalize(
                all_places,
                preferences,
                PersonalizationContext(current_time=now, max_results=top_limit)
            )[:top_limit]

            response = AreaInsightsResponse(
                coordinates=coords,
                search_radius=bundle.search_radius,
                **{
                    category: personalized[category][:limit]
                    for category, limit in CATEGORY_LIMITS.items()
                },
                top_recommendations=top_recommendations,
                peak_times=self.timing.peak_times(top_recommendations, preferences, now),
                best_visit_time=self.timing.best_visit_time(preferences, now),
                personalization_summary=PersonalizationSummary(
                    **self.engine.summarize(top_recommendations, preferences)
                ),
                area_stats=self.area_stats(all_places, top_recommendations),
                from_cache=from_cache,
                personalized=bool(user_id),
                processing_time_ms=round((time.time() - start_time) * 1000, 2),
            )

        except Exception as e:
            insights_logger.log_error(e, "area_insights", {"latitude": coords.lat, "longitude": coords.lng})
            raise InternalError("Failed to get area insights") from e

        self.dispatcher.submit(
            self.analytics.track_popular_area, coords, list(preferences.interests), len(all_places)
        )
        self.dispatcher.submit(
            self.analytics.log_event,
            "area_search",
            {
                "coordinates": coords.model_dump(),
                "result_count": len(all_places),
                "from_cache": from_cache,
                "processing_time_ms": response.processing_time_ms,
                "user_agent": user_agent,
            },
            user_id
        )

        metrics.insights_served.labels(
            from_cache=str(from_cache).lower(),
            personalized=str(response.personalized).lower()
        ).inc()
        insights_logger.log_insights_served(
            user_id, coords.lat, coords.lng, len(top_recommendations), from_cache, response.processing_time_ms
        )
        return response

    def area_stats(
        self,
        all_places: Sequence[Union[ScoredPlace, Place]],
        top_places: Sequence[Union[ScoredPlace, Place]],
    ) -> AreaStats:
        if top_places:
            average_rating = round(sum(place.rating or 0 for place in top_places) / len(top_places), 1)
        else:
            average_rating = 0.0

        distribution = {bucket: 0 for bucket in PRICE_BUCKETS}
        distribution["unknown"] = 0
        for place in top_places:
            bucket = str(place.price_level) if place.price_level is not None else "unknown"
            distribution[bucket if bucket in distribution else "unknown"] += 1

        categories = Counter(self.engine.primary_category(place.types) for place in top_places)

        return AreaStats(
            total_places_found=len(all_places),
            average_rating=average_rating,
            price_level_distribution=distribution,
            popular_categories=[
                CategoryCount(category=category, count=count)
                for category, count in categories.most_common(POPULAR_CATEGORY_LIMIT)
            ],
        )


insights_service = InsightsService()