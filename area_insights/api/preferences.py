"""
User Preferences API Endpoints
CRUD for the preference profile that drives personalization.
"""

import uuid
from typing import Annotated
from fastapi import APIRouter, Depends, Path, status

from area_insights.schemas.preferences import (
    PreferenceCreateRequest,
    PreferenceDeleteResponse,
    PreferenceSaveResponse,
    PreferenceUpdateRequest,
    PreferencesResponse,
    ProfileInsightsResponse,
)
from area_insights.services.analytics_service import AnalyticsService
from area_insights.services.background import BackgroundDispatcher
from area_insights.services.preference_service import PreferenceStore
from area_insights.services.profile_service import ProfileInsights
from area_insights.utils.dependencies import (
    get_analytics_service,
    get_background_dispatcher,
    get_preference_store,
    get_profile_insights,
)

router = APIRouter()

UserId = Annotated[str, Path(min_length=1, max_length=128, description="User identifier")]


@router.get("/{user_id}", response_model=PreferencesResponse)
async def get_preferences(
    user_id: UserId,
    store: PreferenceStore = Depends(get_preference_store),
    analytics: AnalyticsService = Depends(get_analytics_service),
    dispatcher: BackgroundDispatcher = Depends(get_background_dispatcher)
):
    """
    Get a user's preferences and the options available for editing them.

    Users without a stored profile receive the defaults with `is_default` set.
    """
    preferences = await store.get(user_id)

    dispatcher.submit(
        analytics.log_event,
        "preferences_retrieved",
        {"has_custom_preferences": not preferences.is_default},
        user_id
    )

    return PreferencesResponse(
        preferences=preferences,
        available_options=store.available_options(),
        is_default=preferences.is_default
    )


@router.post("", response_model=PreferenceSaveResponse, status_code=status.HTTP_201_CREATED)
async def create_preferences(
    body: PreferenceCreateRequest,
    store: PreferenceStore = Depends(get_preference_store),
    analytics: AnalyticsService = Depends(get_analytics_service),
    dispatcher: BackgroundDispatcher = Depends(get_background_dispatcher)
):
    """
    Save preferences for a new user. A user id is generated when omitted.
    """
    user_id = body.user_id or str(uuid.uuid4())
    update = body.preferences.model_dump(exclude_unset=True)
    saved = await store.save(user_id, update)

    dispatcher.submit(
        analytics.log_event,
        "preferences_created",
        {
            "interests": saved.interests,
            "age_group": saved.age_group,
            "preferred_environment": saved.preferred_environment
        },
        user_id
    )

    return PreferenceSaveResponse(
        user_id=user_id,
        preferences=saved,
        message="Preferences saved successfully",
        operation="create"
    )


@router.put("/{user_id}", response_model=PreferenceSaveResponse)
async def update_preferences(
    body: PreferenceUpdateRequest,
    user_id: UserId,
    store: PreferenceStore = Depends(get_preference_store),
    analytics: AnalyticsService = Depends(get_analytics_service),
    dispatcher: BackgroundDispatcher = Depends(get_background_dispatcher)
):
    """
    Merge a partial update over the user's stored (or default) preferences.

    Fields that are not sent keep their current values.
    """
    update = body.preferences.model_dump(exclude_unset=True)
    saved = await store.save(user_id, update)

    dispatcher.submit(
        analytics.log_event,
        "preferences_updated",
        {"updated_fields": sorted(update), "age_group": saved.age_group},
        user_id
    )

    return PreferenceSaveResponse(
        user_id=user_id,
        preferences=saved,
        message="Preferences updated successfully",
        operation="update"
    )


@router.delete("/{user_id}", response_model=PreferenceDeleteResponse)
async def delete_preferences(
    user_id: UserId,
    store: PreferenceStore = Depends(get_preference_store),
    analytics: AnalyticsService = Depends(get_analytics_service),
    dispatcher: BackgroundDispatcher = Depends(get_background_dispatcher)
):
    """
    Delete a user's stored preferences. Later lookups return the defaults.
    """
    deleted = await store.delete(user_id)

    dispatcher.submit(analytics.log_event, "preferences_deleted", {"deleted": deleted}, user_id)

    return PreferenceDeleteResponse(
        user_id=user_id,
        deleted=deleted,
        message="Preferences deleted successfully" if deleted else "No stored preferences found"
    )


@router.get("/{user_id}/analytics", response_model=ProfileInsightsResponse)
async def get_preferences_analytics(
    user_id: UserId,
    store: PreferenceStore = Depends(get_preference_store),
    insights: ProfileInsights = Depends(get_profile_insights)
):
    """
    Derived insights about a user's profile: recommended categories,
    personality profile, optimal times and improvement suggestions.
    """
    preferences = await store.get(user_id)
    return insights.build(preferences)
