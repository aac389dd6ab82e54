"""
Places Lookup Adapter
Wraps the external nearby-search provider and fans category queries out concurrently.
"""

import asyncio
import time
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from area_insights.config import settings
from area_insights.exceptions import PlacesLookupError
from area_insights.schemas.places import AreaBundle, Coordinates, Place
from area_insights.utils.logging import insights_logger
from area_insights.utils.metrics import metrics

logger = logging.getLogger(__name__)

# Bundle field -> provider type tag
CATEGORY_QUERIES = {
    "landmarks": "establishment",
    "restaurants": "restaurant",
    "attractions": "tourist_attraction",
    "entertainment": "night_club",
    "shopping": "shopping_mall",
}

SUCCESS_STATUSES = ("OK", "ZERO_RESULTS")

SEARCH_FIELDS = (
    "place_id,name,geometry,rating,user_ratings_total,price_level,"
    "types,vicinity,business_status,opening_hours"
)


class PlacesLookupAdapter:
    """Client for the provider's nearby-search endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_radius: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        max_results: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.google_places_api_key
        self.base_url = base_url or settings.places_base_url
        self.default_radius = default_radius or settings.places_search_radius
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds or settings.places_request_timeout_seconds)
        self.max_results = max_results or settings.max_places_per_category

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def status(self) -> Dict[str, Any]:
        return {
            "configured": self.is_configured(),
            "api_key": f"{self.api_key[:8]}..." if self.api_key else "Not set",
            "default_radius": self.default_radius,
            "max_results": self.max_results,
        }

    async def search_category(
        self,
        coords: Coordinates,
        category_tag: Optional[str] = None,
        radius: Optional[int] = None,
    ) -> List[Place]:
        """Run one nearby search. Raises PlacesLookupError on any non-success outcome."""
        if not self.is_configured():
            raise PlacesLookupError("REQUEST_DENIED", "Places API key is not configured")

        params = {
            "location": f"{coords.lat},{coords.lng}",
            "radius": radius or self.default_radius,
            "key": self.api_key,
            "fields": SEARCH_FIELDS,
        }
        if category_tag:
            params["type"] = category_tag

        start_time = time.time()
        try:
            data = await self._fetch_json(f"{self.base_url}/nearbysearch/json", params)
        except asyncio.TimeoutError:
            metrics.places_lookups_total.labels(category=category_tag or "any", status="TIMEOUT").inc()
            raise PlacesLookupError("TIMEOUT", "Places provider did not respond in time")
        except aiohttp.ClientError as e:
            metrics.places_lookups_total.labels(category=category_tag or "any", status="TRANSPORT_ERROR").inc()
            raise PlacesLookupError("TRANSPORT_ERROR", str(e))
        finally:
            metrics.places_lookup_duration.labels(category=category_tag or "any").observe(time.time() - start_time)

        status = data.get("status", "UNKNOWN_ERROR")
        metrics.places_lookups_total.labels(category=category_tag or "any", status=status).inc()
        if status not in SUCCESS_STATUSES:
            raise PlacesLookupError(status, data.get("error_message"))

        return self._parse_results(data.get("results") or [])

    async def fetch_area_bundle(self, coords: Coordinates) -> AreaBundle:
        """Search all categories concurrently; a failed category yields an empty list."""
        start_time = time.time()
        categories = list(CATEGORY_QUERIES)

        results = await asyncio.gather(
            *(self.search_category(coords, CATEGORY_QUERIES[category]) for category in categories),
            return_exceptions=True
        )

        bundle_lists: Dict[str, List[Place]] = {}
        failed_categories = []
        for category, result in zip(categories, results):
            if isinstance(result, BaseException):
                logger.warning(f"Failed to fetch {category}: {result}")
                bundle_lists[category] = []
                failed_categories.append(category)
            else:
                bundle_lists[category] = result[:self.max_results]

        insights_logger.log_places_lookup(
            coords.lat,
            coords.lng,
            {category: len(places) for category, places in bundle_lists.items()},
            failed_categories,
            (time.time() - start_time) * 1000
        )

        return AreaBundle(
            **bundle_lists,
            coordinates=coords,
            search_radius=self.default_radius,
            failed_categories=failed_categories
        )

    async def _fetch_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(url, params=params) as response:
                if response.status != 200:
                    return {
                        "status": f"HTTP_{response.status}",
                        "error_message": await response.text()
                    }
                return await response.json()

    def _parse_results(self, results: List[Dict[str, Any]]) -> List[Place]:
        places = []
        for raw in results:
            try:
                places.append(self._parse_place(raw))
            except (ValueError, TypeError, KeyError) as e:
                logger.warning(f"Skipping malformed place {raw.get('place_id', '?')}: {e}")
        return places

    def _parse_place(self, raw: Dict[str, Any]) -> Place:
        location = (raw.get("geometry") or {}).get("location")
        return Place(
            place_id=raw["place_id"],
            name=raw["name"],
            location=location,
            rating=raw.get("rating"),
            user_ratings_total=raw.get("user_ratings_total") or 0,
            price_level=raw.get("price_level"),
            types=raw.get("types") or [],
            vicinity=raw.get("vicinity"),
            business_status=raw.get("business_status"),
            opening_hours=raw.get("opening_hours"),
        )


places_adapter = PlacesLookupAdapter()
