"""
Unit tests for the preference store.
"""

import pytest
from datetime import timedelta
from sqlalchemy.exc import OperationalError

from area_insights.exceptions import StorageError
from area_insights.models.user_preference import UserPreference
from area_insights.services.preference_service import PreferenceStore, default_preferences


class BrokenSession:
    """Session factory stand-in whose every use fails like an unreachable database."""

    def __call__(self):
        return self

    async def __aenter__(self):
        raise OperationalError("SELECT 1", {}, Exception("database unavailable"))

    async def __aexit__(self, *exc_info):
        return False


class TestPreferenceStore:
    """Test cases for PreferenceStore."""

    @pytest.fixture
    def broken_store(self):
        return PreferenceStore(session_factory=BrokenSession())

    async def test_get_without_user_returns_defaults(self, preference_store):
        """Anonymous lookups get the documented default record."""
        # Act
        record = await preference_store.get(None)

        # Assert
        assert record.is_default is True
        assert record.interests == ["restaurant", "tourist_attraction", "shopping_mall"]
        assert record.age_group == "adult"
        assert record.activity_types == ["sightseeing", "dining", "shopping"]
        assert record.preferred_environment == "mixed"
        assert record.price_range == "medium"
        assert record.time_preference == "flexible"

    async def test_get_unknown_user_returns_defaults(self, preference_store):
        record = await preference_store.get("nobody")

        assert record.is_default is True
        assert record.user_id == "nobody"

    async def test_save_creates_record(self, preference_store):
        """First save stores the merged record."""
        # Act
        saved = await preference_store.save("alice", {"interests": ["food", "culture"], "age_group": "young"})
        loaded = await preference_store.get("alice")

        # Assert
        assert saved.is_default is False
        assert loaded.is_default is False
        assert loaded.interests == ["food", "culture"]
        assert loaded.age_group == "young"
        assert loaded.price_range == "medium"

    async def test_partial_save_is_an_override(self, preference_store):
        """Saving one field leaves the others untouched and bumps updated_at."""
        # Arrange
        first = await preference_store.save("bob", {"interests": ["nature"], "price_range": "budget"})

        # Act
        second = await preference_store.save("bob", {"age_group": "senior"})
        loaded = await preference_store.get("bob")

        # Assert
        assert loaded.interests == ["nature"]
        assert loaded.price_range == "budget"
        assert loaded.age_group == "senior"
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at

    async def test_timestamps_are_utc_aware(self, preference_store):
        """Saved and reloaded records carry UTC offsets, so they stay comparable."""
        # Act
        saved = await preference_store.save("erin", {"interests": ["food"]})
        updated = await preference_store.save("erin", {"age_group": "family"})
        loaded = await preference_store.get("erin")

        # Assert
        for record in (saved, updated, loaded):
            assert record.created_at.utcoffset() == timedelta(0)
            assert record.updated_at.utcoffset() == timedelta(0)
        assert loaded.updated_at >= loaded.created_at

    async def test_save_ignores_unknown_and_empty_fields(self, preference_store):
        saved = await preference_store.save("carol", {"favourite_colour": "blue", "interests": None})

        assert saved.interests == ["restaurant", "tourist_attraction", "shopping_mall"]
        assert not hasattr(saved, "favourite_colour")

    async def test_delete_then_get_returns_defaults(self, preference_store):
        # Arrange
        await preference_store.save("dave", {"interests": ["fitness"]})

        # Act
        deleted = await preference_store.delete("dave")
        record = await preference_store.get("dave")

        # Assert
        assert deleted is True
        assert record.is_default is True
        assert record.interests == ["restaurant", "tourist_attraction", "shopping_mall"]

    async def test_delete_missing_returns_false(self, preference_store):
        assert await preference_store.delete("ghost") is False

    async def test_storage_failure_on_get_falls_back(self, broken_store):
        """Reads degrade to defaults when the database is unreachable."""
        record = await broken_store.get("erin")

        assert record.is_default is True
        assert record.user_id == "erin"

    async def test_storage_failure_on_save_raises(self, broken_store):
        with pytest.raises(StorageError):
            await broken_store.save("erin", {"age_group": "family"})

    async def test_storage_failure_on_delete_raises(self, broken_store):
        """Explicit deletions surface storage failures."""
        with pytest.raises(StorageError):
            await broken_store.delete("erin")

    async def test_invalid_stored_values_revert_to_defaults(self, preference_store, session_factory):
        """Rows written with values outside the enumerations still load."""
        # Arrange
        async with session_factory() as db:
            db.add(UserPreference(
                user_id="legacy",
                interests=["food"],
                age_group="teenager",
                activity_types=["dining"],
                preferred_environment="quiet",
                price_range="medium",
                time_preference="morning",
                group_size="solo",
                accessibility_needs=True,
            ))
            await db.commit()

        # Act
        record = await preference_store.get("legacy")

        # Assert
        assert record.age_group == "adult"
        assert record.interests == ["food"]
        assert record.preferred_environment == "quiet"
        assert record.accessibility_needs is True

    def test_default_preferences_helper(self):
        record = default_preferences("frank")

        assert record.user_id == "frank"
        assert record.is_default is True

    def test_available_options(self):
        options = PreferenceStore.available_options()

        assert "food" in options.interests
        assert options.age_groups == ["young", "adult", "senior", "family"]
        assert "family-friendly" in options.environments
        assert options.price_ranges == ["budget", "low", "medium", "comfortable", "luxury"]
        assert "flexible" in options.time_preferences
