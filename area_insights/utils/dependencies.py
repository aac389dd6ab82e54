"""
FastAPI dependency providers. Tests swap these through ``app.dependency_overrides``.
"""

from area_insights.services.analytics_service import AnalyticsService, analytics_service
from area_insights.services.background import BackgroundDispatcher, background_dispatcher
from area_insights.services.geo_cache import GeoCache, geo_cache
from area_insights.services.insights_service import InsightsService, insights_service
from area_insights.services.places_service import PlacesLookupAdapter, places_adapter
from area_insights.services.preference_service import PreferenceStore, preference_store
from area_insights.services.profile_service import ProfileInsights, profile_insights


def get_insights_service() -> InsightsService:
    return insights_service


def get_preference_store() -> PreferenceStore:
    return preference_store


def get_analytics_service() -> AnalyticsService:
    return analytics_service


def get_geo_cache() -> GeoCache:
    return geo_cache


def get_places_adapter() -> PlacesLookupAdapter:
    return places_adapter


def get_background_dispatcher() -> BackgroundDispatcher:
    return background_dispatcher


def get_profile_insights() -> ProfileInsights:
    return profile_insights
