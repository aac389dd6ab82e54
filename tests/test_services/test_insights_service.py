"""
Unit tests for the insights orchestrator.
"""

import pytest
from datetime import datetime
from unittest.mock import AsyncMock

from area_insights.exceptions import InternalError, ValidationError
from area_insights.schemas.insights import InsightsFilters
from area_insights.schemas.places import Coordinates
from area_insights.services.analytics_service import EVENTS_KEY, AnalyticsService
from area_insights.services.background import BackgroundDispatcher
from area_insights.services.geo_cache import CACHE_PREFIX, POPULAR_AREAS_KEY
from area_insights.services.insights_service import InsightsService, validate_coordinates
from area_insights.services.places_service import CATEGORY_QUERIES
from area_insights.services.visit_timing import VisitTimingAnalyzer

NOW = datetime(2024, 5, 14, 10, 30)


class BrokenTiming(VisitTimingAnalyzer):
    def peak_times(self, places, preferences, now=None):
        raise RuntimeError("timing tables unavailable")


class TestInsightsService:
    """Test cases for InsightsService."""

    async def test_first_call_misses_then_cache_hits(self, insights_service, dispatcher, nyc):
        """Repeated requests for the same rounded coordinate are served from cache."""
        # Act
        first = await insights_service.get_area_insights(nyc, now=NOW)
        second = await insights_service.get_area_insights({"lat": 40.71281, "lng": -74.00603}, now=NOW)
        await dispatcher.drain()

        # Assert
        assert first.from_cache is False
        assert second.from_cache is True
        assert first.personalized is False
        assert first.top_recommendations
        assert [p.place_id for p in first.top_recommendations] == [p.place_id for p in second.top_recommendations]
        assert len(insights_service.places.calls) == len(CATEGORY_QUERIES)

    async def test_default_preferences_drive_anonymous_ranking(self, insights_service, nyc):
        response = await insights_service.get_area_insights(nyc, now=NOW)

        factors = response.personalization_summary.personalization_factors
        assert factors["interests"] == ["restaurant", "tourist_attraction", "shopping_mall"]
        # restaurant tag match, adult priority and medium price all line up
        assert response.top_recommendations[0].name == "Corner Bistro"
        assert "Brooklyn Bridge" in {place.name for place in response.top_recommendations}

    async def test_response_shape(self, insights_service, nyc):
        """Lists are capped per category and ancillary sections are filled in."""
        # Act
        response = await insights_service.get_area_insights(nyc, now=NOW)

        # Assert
        assert response.coordinates == Coordinates(**nyc)
        assert response.search_radius == 3000
        assert len(response.landmarks) <= 5
        assert len(response.restaurants) <= 5
        assert len(response.attractions) <= 5
        assert len(response.entertainment) <= 3
        assert len(response.shopping) <= 3
        assert len(response.top_recommendations) <= 10
        scores = [place.personalized_score for place in response.top_recommendations]
        assert scores == sorted(scores, reverse=True)
        assert len(response.peak_times.hourly_activity) == 24
        assert response.peak_times.current_conditions == "Moderate Activity"
        assert response.best_visit_time.recommendation
        assert response.area_stats.total_places_found == 7
        assert response.area_stats.average_rating > 0
        assert sum(response.area_stats.price_level_distribution.values()) == len(response.top_recommendations)
        assert response.processing_time_ms >= 0

    async def test_stored_preferences_personalize(self, insights_service, preference_store, nyc):
        # Arrange
        await preference_store.save("night-owl", {"interests": ["nightlife"], "age_group": "young"})

        # Act
        response = await insights_service.get_area_insights(nyc, user_id="night-owl", now=NOW)

        # Assert
        assert response.personalized is True
        assert response.personalization_summary.personalization_factors["age_group"] == "young"
        assert response.top_recommendations[0].matching_interests

    async def test_background_tracking(self, insights_service, dispatcher, fake_redis, nyc):
        """Popularity and analytics writes happen off the request path."""
        # Act
        await insights_service.get_area_insights(nyc, user_agent="pytest", now=NOW)
        await dispatcher.drain()

        # Assert
        assert fake_redis.zsets[POPULAR_AREAS_KEY] == {"40.71_-74.01_1000": 1.0}
        assert len(fake_redis.lists[EVENTS_KEY]) == 1

    @pytest.mark.parametrize("coords", [
        {"lat": 90.0001, "lng": 0},
        {"lat": -90.5, "lng": 0},
        {"lat": 0, "lng": 180.0001},
        {"lat": "north", "lng": 0},
        {"lat": True, "lng": 0},
        {"lat": "40.7128", "lng": -74.006},
        {"lat": 10},
        None,
    ])
    async def test_invalid_coordinates_rejected(self, insights_service, coords):
        with pytest.raises(ValidationError):
            await insights_service.get_area_insights(coords, now=NOW)

    async def test_boundary_coordinates_accepted(self, insights_service):
        response = await insights_service.get_area_insights({"lat": 90, "lng": 180}, now=NOW)

        assert response.coordinates.lat == 90
        assert response.coordinates.lng == 180

    async def test_invalid_filters_rejected(self, insights_service, nyc):
        with pytest.raises(ValidationError):
            await insights_service.get_area_insights(nyc, filters={"min_rating": 7}, now=NOW)

    async def test_filters_apply_to_every_category(self, insights_service, nyc):
        response = await insights_service.get_area_insights(
            nyc, filters=InsightsFilters(min_rating=4.5), now=NOW
        )

        assert all(place.rating >= 4.5 for place in response.top_recommendations)
        assert [place.place_id for place in response.restaurants] == ["rs-1"]

    async def test_partial_provider_failure(self, make_places_adapter, geo_cache, preference_store,
                                            analytics, dispatcher, fake_redis, nyc):
        """A failing category empties its list without failing the request."""
        # Arrange
        service = InsightsService(
            cache=geo_cache, places=make_places_adapter(failing={"restaurant"}),
            preferences=preference_store, analytics=analytics, dispatcher=dispatcher
        )

        # Act
        response = await service.get_area_insights(nyc, now=NOW)

        # Assert
        assert response.restaurants == []
        assert response.attractions
        assert CACHE_PREFIX + geo_cache.key(Coordinates(**nyc)) in fake_redis.hashes

    async def test_total_failure_is_not_cached(self, make_places_adapter, geo_cache, preference_store,
                                               analytics, dispatcher, fake_redis, nyc):
        """When every category fails the empty bundle is not cached."""
        # Arrange
        service = InsightsService(
            cache=geo_cache, places=make_places_adapter(failing=set(CATEGORY_QUERIES.values())),
            preferences=preference_store, analytics=analytics, dispatcher=dispatcher
        )

        # Act
        first = await service.get_area_insights(nyc, now=NOW)
        second = await service.get_area_insights(nyc, now=NOW)

        # Assert
        assert first.from_cache is False and second.from_cache is False
        assert first.top_recommendations == []
        assert first.area_stats.total_places_found == 0
        assert not any(key.startswith(CACHE_PREFIX) for key in fake_redis.hashes)

    async def test_cache_outage_degrades_to_live_lookup(self, insights_service, dispatcher, fake_redis, nyc):
        # Arrange
        fake_redis.fail = True

        # Act
        response = await insights_service.get_area_insights(nyc, now=NOW)
        await dispatcher.drain()

        # Assert
        assert response.from_cache is False
        assert response.top_recommendations

    async def test_unexpected_failure_becomes_internal_error(self, geo_cache, places_adapter, preference_store,
                                                             analytics, dispatcher, nyc):
        """Failures while building the response surface as a generic error."""
        # Arrange
        service = InsightsService(
            cache=geo_cache, places=places_adapter, preferences=preference_store,
            timing=BrokenTiming(), analytics=analytics, dispatcher=dispatcher
        )

        # Act / Assert
        with pytest.raises(InternalError) as exc_info:
            await service.get_area_insights(nyc, now=NOW)

        assert exc_info.value.message == "Failed to get area insights"
        assert dispatcher.pending == 0

    def test_validate_coordinates_passthrough(self):
        coords = Coordinates(lat=1, lng=2)
        assert validate_coordinates(coords) is coords

    def test_area_stats(self, insights_service, make_place):
        # Arrange
        places = [
            make_place(types=["restaurant"], rating=4.0, price_level=1),
            make_place(types=["restaurant", "bar"], rating=5.0, price_level=1),
            make_place(types=["park"], rating=3.0),
        ]

        # Act
        stats = insights_service.area_stats(places + places, places)

        # Assert
        assert stats.total_places_found == 6
        assert stats.average_rating == 4.0
        assert stats.price_level_distribution["1"] == 2
        assert stats.price_level_distribution["unknown"] == 1
        assert stats.popular_categories[0].category == "restaurant"
        assert stats.popular_categories[0].count == 2

    def test_area_stats_empty(self, insights_service):
        stats = insights_service.area_stats([], [])

        assert stats.average_rating == 0.0
        assert stats.popular_categories == []


class TestInsightsTracking:
    """Fire-and-forget side effects of an insights request."""

    @pytest.fixture
    def mock_analytics(self):
        analytics = AsyncMock(spec=AnalyticsService)
        analytics.track_popular_area.return_value = "40.71_-74.01_1000"
        analytics.log_event.return_value = "event-1"
        return analytics

    @pytest.fixture
    def tracked_service(self, geo_cache, places_adapter, preference_store, mock_analytics, dispatcher):
        return InsightsService(
            cache=geo_cache, places=places_adapter, preferences=preference_store,
            analytics=mock_analytics, dispatcher=dispatcher
        )

    async def test_tracking_calls(self, tracked_service, mock_analytics, dispatcher, nyc):
        # Act
        response = await tracked_service.get_area_insights(nyc, user_id="u-9", user_agent="pytest", now=NOW)
        await dispatcher.drain()

        # Assert
        mock_analytics.track_popular_area.assert_awaited_once()
        coords, interests, result_count = mock_analytics.track_popular_area.await_args.args
        assert coords == Coordinates(**nyc)
        assert interests == ["restaurant", "tourist_attraction", "shopping_mall"]
        assert result_count == response.area_stats.total_places_found

        event_type, event_data, user_id = mock_analytics.log_event.await_args.args
        assert event_type == "area_search"
        assert event_data["from_cache"] is False
        assert event_data["user_agent"] == "pytest"
        assert user_id == "u-9"

    async def test_tracking_failures_do_not_affect_response(self, tracked_service, mock_analytics, dispatcher, nyc):
        """Background write errors are swallowed."""
        # Arrange
        mock_analytics.track_popular_area.side_effect = ConnectionError("redis down")
        mock_analytics.log_event.side_effect = ConnectionError("redis down")

        # Act
        response = await tracked_service.get_area_insights(nyc, now=NOW)
        await dispatcher.drain()

        # Assert
        assert response.top_recommendations
        assert dispatcher.pending == 0

    async def test_full_queue_drops_tracking(self, geo_cache, places_adapter, preference_store, mock_analytics, nyc):
        # Arrange
        service = InsightsService(
            cache=geo_cache, places=places_adapter, preferences=preference_store,
            analytics=mock_analytics, dispatcher=BackgroundDispatcher(max_pending=1)
        )

        # Act
        response = await service.get_area_insights(nyc, now=NOW)
        await service.dispatcher.drain()

        # Assert
        assert response.top_recommendations
        mock_analytics.track_popular_area.assert_awaited_once()
        mock_analytics.log_event.assert_not_awaited()
