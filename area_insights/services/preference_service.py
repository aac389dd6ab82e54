"""
Preference Store
Persists per-user preference records and falls back to defaults when none is stored.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from area_insights.database import AsyncSessionLocal
from area_insights.exceptions import StorageError
from area_insights.models.user_preference import UserPreference
from area_insights.schemas.preferences import AvailableOptions, PreferenceRecord, utc_now

logger = logging.getLogger(__name__)

PREFERENCE_FIELDS = (
    "interests", "age_group", "activity_types", "preferred_environment",
    "price_range", "time_preference", "group_size", "accessibility_needs",
)


def _as_utc(value: Optional[datetime]) -> datetime:
    """Backends without timezone support hand back naive UTC values."""
    if value is None:
        return utc_now()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def default_preferences(user_id: Optional[str] = None) -> PreferenceRecord:
    return PreferenceRecord(user_id=user_id, is_default=True)


class PreferenceStore:
    """Preference records backed by the ``user_preferences`` table."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or AsyncSessionLocal

    async def get(self, user_id: Optional[str] = None) -> PreferenceRecord:
        """Stored record for ``user_id``; defaults when absent or unreadable."""
        if not user_id:
            return default_preferences()

        try:
            async with self.session_factory() as db:
                row = await self._get_row(db, user_id)
        except Exception as e:
            logger.warning(f"Preference lookup failed for {user_id}, using defaults: {e}")
            return default_preferences(user_id)

        if row is None:
            return default_preferences(user_id)
        return self._to_record(row)

    async def save(self, user_id: str, partial: Dict[str, Any]) -> PreferenceRecord:
        """Merge ``partial`` over the stored (or default) record and persist it."""
        try:
            async with self.session_factory() as db:
                row = await self._get_row(db, user_id)
                base = self._to_record(row) if row is not None else default_preferences(user_id)

                merged = base.model_dump()
                merged.update({
                    field: value for field, value in partial.items()
                    if field in PREFERENCE_FIELDS and value is not None
                })
                merged.update(user_id=user_id, updated_at=utc_now(), is_default=False)
                record = PreferenceRecord(**merged)

                values = {field: getattr(record, field) for field in PREFERENCE_FIELDS}
                if row is None:
                    row = UserPreference(
                        user_id=user_id,
                        created_at=record.created_at,
                        updated_at=record.updated_at,
                        **values
                    )
                    db.add(row)
                else:
                    for field, value in values.items():
                        setattr(row, field, value)
                    row.updated_at = record.updated_at

                await db.commit()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to save preferences for {user_id}: {e}")
            raise StorageError("Failed to save user preferences") from e

        logger.info(f"Saved preferences for user: {user_id}")
        return record

    async def delete(self, user_id: str) -> bool:
        """Remove the stored record. Returns False when there was none."""
        try:
            async with self.session_factory() as db:
                row = await self._get_row(db, user_id)
                if row is None:
                    return False
                await db.delete(row)
                await db.commit()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to delete preferences for {user_id}: {e}")
            raise StorageError("Failed to delete user preferences") from e

        logger.info(f"Deleted preferences for user: {user_id}")
        return True

    @staticmethod
    def available_options() -> AvailableOptions:
        return AvailableOptions()

    async def _get_row(self, db, user_id: str) -> Optional[UserPreference]:
        result = await db.execute(
            select(UserPreference).where(UserPreference.user_id == user_id)
        )
        return result.scalars().first()

    @staticmethod
    def _to_record(row: UserPreference) -> PreferenceRecord:
        data = {field: getattr(row, field) for field in PREFERENCE_FIELDS}
        # Columns left NULL fall back to the record defaults
        data = {field: value for field, value in data.items() if value is not None}
        data.update(
            user_id=row.user_id,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )
        try:
            return PreferenceRecord(**data)
        except PydanticValidationError as e:
            # Stored values outside the current enumerations revert to defaults
            invalid = {error["loc"][0] for error in e.errors() if error["loc"]}
            logger.warning(f"Dropping invalid stored preference fields for {row.user_id}: {sorted(invalid)}")
            return PreferenceRecord(**{k: v for k, v in data.items() if k not in invalid})


preference_store = PreferenceStore()
