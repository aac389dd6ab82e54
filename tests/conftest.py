"""
Test configuration and shared fixtures for the area insights test suite.
"""

import fnmatch
import pytest
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from area_insights.main import app
from area_insights.database import Base, init_db
from area_insights.schemas.places import Place
from area_insights.services.analytics_service import AnalyticsService
from area_insights.services.background import BackgroundDispatcher
from area_insights.services.geo_cache import GeoCache
from area_insights.services.insights_service import InsightsService
from area_insights.services.places_service import PlacesLookupAdapter
from area_insights.services.preference_service import PreferenceStore
from area_insights.services.redis_client import redis_client
from area_insights.utils import dependencies


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NYC = {"lat": 40.7128, "lng": -74.0060}


def _redis_slice(items: List[Any], start: int, end: int) -> List[Any]:
    """Redis range semantics: inclusive end, negative indexes count from the tail."""
    length = len(items)
    if start < 0:
        start = max(length + start, 0)
    if end < 0:
        end = length + end
    return items[start:end + 1]


class FakeRedis:
    """In-memory stand-in for the ``redis.asyncio`` client with decoded responses."""

    def __init__(self):
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.zsets: Dict[str, Dict[str, float]] = {}
        self.lists: Dict[str, List[str]] = {}
        self.expiries: Dict[str, int] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("Redis unavailable")

    def _stores(self):
        return (self.hashes, self.zsets, self.lists)

    async def ping(self):
        self._check()
        return True

    async def close(self):
        return None

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            for store in self._stores():
                if key in store:
                    del store[key]
                    removed += 1
            self.expiries.pop(key, None)
        return removed

    async def exists(self, key):
        self._check()
        return int(any(key in store for store in self._stores()))

    async def expire(self, key, seconds):
        self._check()
        self.expiries[key] = seconds
        return True

    async def keys(self, pattern="*"):
        self._check()
        names = set()
        for store in self._stores():
            names.update(store)
        return sorted(name for name in names if fnmatch.fnmatch(name, pattern))

    async def hgetall(self, key):
        self._check()
        return dict(self.hashes.get(key, {}))

    async def hset(self, key, field=None, value=None, mapping=None):
        self._check()
        target = self.hashes.setdefault(key, {})
        items = dict(mapping or {})
        if field is not None:
            items[field] = value
        added = len([name for name in items if name not in target])
        target.update({name: str(val) for name, val in items.items()})
        return added

    async def hincrby(self, key, field, amount=1):
        self._check()
        target = self.hashes.setdefault(key, {})
        target[field] = str(int(target.get(field, 0)) + amount)
        return int(target[field])

    async def zadd(self, key, mapping):
        self._check()
        target = self.zsets.setdefault(key, {})
        added = len([member for member in mapping if member not in target])
        target.update({member: float(score) for member, score in mapping.items()})
        return added

    async def zincrby(self, key, amount, member):
        self._check()
        target = self.zsets.setdefault(key, {})
        target[member] = target.get(member, 0.0) + amount
        return target[member]

    async def zrem(self, key, *members):
        self._check()
        target = self.zsets.get(key, {})
        removed = 0
        for member in members:
            if target.pop(member, None) is not None:
                removed += 1
        return removed

    async def zcard(self, key):
        self._check()
        return len(self.zsets.get(key, {}))

    def _ordered(self, key, reverse=False):
        ordered = sorted(self.zsets.get(key, {}).items(), key=lambda item: (item[1], item[0]))
        return list(reversed(ordered)) if reverse else ordered

    async def zrangebyscore(self, key, min_score, max_score):
        self._check()
        return [member for member, score in self._ordered(key) if float(min_score) <= score <= float(max_score)]

    async def zremrangebyscore(self, key, min_score, max_score):
        self._check()
        doomed = await self.zrangebyscore(key, min_score, max_score)
        return await self.zrem(key, *doomed)

    async def zrange(self, key, start, end, withscores=False):
        self._check()
        items = _redis_slice(self._ordered(key), start, end)
        return items if withscores else [member for member, _ in items]

    async def zrevrange(self, key, start, end, withscores=False):
        self._check()
        items = _redis_slice(self._ordered(key, reverse=True), start, end)
        return items if withscores else [member for member, _ in items]

    async def lpush(self, key, *values):
        self._check()
        target = self.lists.setdefault(key, [])
        for value in values:
            target.insert(0, str(value))
        return len(target)

    async def ltrim(self, key, start, end):
        self._check()
        if key in self.lists:
            self.lists[key] = _redis_slice(self.lists[key], start, end)
        return True

    async def lrange(self, key, start, end):
        self._check()
        return _redis_slice(self.lists.get(key, []), start, end)

    def pipeline(self, transaction=True):
        return FakePipeline(self)


class FakePipeline:
    """Queues commands and replays them against the fake on ``execute()``."""

    def __init__(self, redis):
        self.redis = redis
        self.commands: List[Any] = []
        self.executed: List[Any] = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.commands.append((name, args, kwargs))
            return self
        return queue

    async def execute(self):
        self.redis._check()
        results = []
        for name, args, kwargs in self.commands:
            results.append(await getattr(self.redis, name)(*args, **kwargs))
        self.executed.extend(self.commands)
        self.commands = []
        return results


class FakePlacesAdapter(PlacesLookupAdapter):
    """Places adapter whose provider responses are canned per category tag."""

    def __init__(self, responses: Optional[Dict[str, List[Dict]]] = None, failing: Iterable[str] = ()):
        super().__init__(
            api_key="test-key",
            base_url="https://places.test/api/place",
            default_radius=3000,
            timeout_seconds=1,
            max_results=10
        )
        self.responses = responses or {}
        self.failing = set(failing)
        self.calls: List[Dict[str, Any]] = []

    async def _fetch_json(self, url, params):
        self.calls.append(params)
        place_type = params.get("type")
        if place_type in self.failing:
            return {"status": "OVER_QUERY_LIMIT", "error_message": "Quota exceeded"}
        return {"status": "OK", "results": self.responses.get(place_type, [])}


def provider_place(
    place_id: str,
    name: str,
    types: List[str],
    rating: Optional[float] = 4.5,
    reviews: int = 300,
    price_level: Optional[int] = 2,
    business_status: str = "OPERATIONAL",
) -> Dict[str, Any]:
    """Raw nearby-search result row."""
    row = {
        "place_id": place_id,
        "name": name,
        "geometry": {"location": {"lat": 40.713, "lng": -74.006}},
        "rating": rating,
        "user_ratings_total": reviews,
        "types": types,
        "vicinity": "Lower Manhattan",
        "business_status": business_status,
        "opening_hours": {"open_now": True},
    }
    if price_level is not None:
        row["price_level"] = price_level
    return row


def default_provider_responses() -> Dict[str, List[Dict]]:
    return {
        "establishment": [
            provider_place("lm-1", "City Hall", ["city_hall", "establishment"], rating=4.4, reviews=900),
            provider_place("lm-2", "Old Library", ["library", "establishment"], rating=4.7, reviews=120),
        ],
        "restaurant": [
            provider_place("rs-1", "Joe's Pizza", ["restaurant", "food"], rating=4.6, reviews=5000, price_level=1),
            provider_place("rs-2", "Corner Bistro", ["restaurant", "bar"], rating=4.2, reviews=800, price_level=2),
        ],
        "tourist_attraction": [
            provider_place("at-1", "Brooklyn Bridge", ["tourist_attraction", "point_of_interest"], rating=4.8,
                           reviews=20000, price_level=None),
        ],
        "night_club": [
            provider_place("nc-1", "Late Club", ["night_club", "bar"], rating=3.9, reviews=250, price_level=3),
        ],
        "shopping_mall": [
            provider_place("sm-1", "Westfield", ["shopping_mall", "store"], rating=4.3, reviews=7000, price_level=3),
        ],
    }


@pytest.fixture(autouse=True)
def fake_redis():
    """Swap the shared Redis connection for an in-memory fake."""
    original = redis_client.redis
    fake = FakeRedis()
    redis_client.redis = fake
    yield fake
    redis_client.redis = original


@pytest.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    await init_db(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def preference_store(session_factory):
    return PreferenceStore(session_factory=session_factory)


@pytest.fixture
def geo_cache():
    return GeoCache(client=redis_client, ttl_hours=24)


@pytest.fixture
def analytics():
    return AnalyticsService(client=redis_client)


@pytest.fixture
def dispatcher():
    return BackgroundDispatcher(max_pending=10)


@pytest.fixture
def places_adapter():
    return FakePlacesAdapter(default_provider_responses())


@pytest.fixture
def make_places_adapter():
    """Factory for adapters with custom responses or failing categories."""
    def _make(responses=None, failing=()):
        return FakePlacesAdapter(default_provider_responses() if responses is None else responses, failing)
    return _make


@pytest.fixture
def insights_service(geo_cache, places_adapter, preference_store, analytics, dispatcher):
    return InsightsService(
        cache=geo_cache,
        places=places_adapter,
        preferences=preference_store,
        analytics=analytics,
        dispatcher=dispatcher
    )


@pytest.fixture
def make_place():
    """Factory for provider places with sensible defaults."""
    counter = {"n": 0}

    def _make(
        name: Optional[str] = None,
        types: Optional[List[str]] = None,
        rating: Optional[float] = 4.0,
        reviews: int = 150,
        price_level: Optional[int] = None,
        business_status: Optional[str] = "OPERATIONAL",
    ) -> Place:
        counter["n"] += 1
        return Place(
            place_id=f"place-{counter['n']}",
            name=name or f"Place {counter['n']}",
            location={"lat": 40.7128, "lng": -74.0060},
            rating=rating,
            user_ratings_total=reviews,
            price_level=price_level,
            types=types if types is not None else ["establishment"],
            business_status=business_status,
        )

    return _make


@pytest.fixture
async def test_client(insights_service, preference_store, analytics, dispatcher, geo_cache, places_adapter):
    """Create test client with dependency overrides."""
    app.dependency_overrides[dependencies.get_insights_service] = lambda: insights_service
    app.dependency_overrides[dependencies.get_preference_store] = lambda: preference_store
    app.dependency_overrides[dependencies.get_analytics_service] = lambda: analytics
    app.dependency_overrides[dependencies.get_background_dispatcher] = lambda: dispatcher
    app.dependency_overrides[dependencies.get_geo_cache] = lambda: geo_cache
    app.dependency_overrides[dependencies.get_places_adapter] = lambda: places_adapter

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    await dispatcher.drain()
    app.dependency_overrides.clear()


@pytest.fixture
def nyc():
    return dict(NYC)
