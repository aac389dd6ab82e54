"""
Profile insights derived from a stored preference record.
"""

from typing import Any, Dict, List

from area_insights.schemas.preferences import PreferenceRecord, ProfileInsightsResponse
from area_insights.services.preference_tables import AGE_GROUP_PROFILES

ADVENTURE_INTERESTS = ("nightlife", "entertainment", "fitness")
OUTDOOR_INTERESTS = ("nature", "fitness")
MAX_RECOMMENDED_CATEGORIES = 5


class ProfileInsights:

    def build(self, preferences: PreferenceRecord) -> ProfileInsightsResponse:
        return ProfileInsightsResponse(
            preferences=preferences,
            recommended_categories=self.recommended_categories(preferences),
            personality_profile=self.personality_profile(preferences),
            optimal_times=self.optimal_times(preferences),
            improvement_suggestions=self.improvement_suggestions(preferences),
        )

    def recommended_categories(self, preferences: PreferenceRecord) -> List[Dict[str, str]]:
        recommendations = []
        interests = preferences.interests

        if "food" in interests:
            recommendations.append({"category": "Fine Dining", "reason": "Based on your food interest"})
            recommendations.append({"category": "Local Cafes", "reason": "Discover hidden culinary gems"})

        if "culture" in interests:
            recommendations.append({"category": "Art Galleries", "reason": "Perfect for culture enthusiasts"})
            recommendations.append({"category": "Museums", "reason": "Rich cultural experiences"})

        if preferences.age_group == "young":
            recommendations.append({"category": "Nightlife", "reason": "Popular with your age group"})
            recommendations.append({"category": "Trendy Spots", "reason": "Hip and happening places"})

        return recommendations[:MAX_RECOMMENDED_CATEGORIES]

    def personality_profile(self, preferences: PreferenceRecord) -> Dict[str, str]:
        interests = set(preferences.interests)
        environment = preferences.preferred_environment

        if {"culture", "history"} <= interests:
            explorer_type = "Cultural Explorer"
        elif {"food", "nightlife"} <= interests:
            explorer_type = "Social Explorer"
        elif "nature" in interests and environment == "quiet":
            explorer_type = "Nature Seeker"
        else:
            explorer_type = "Balanced Explorer"

        if environment in ("busy", "trending"):
            social_style = "Social Butterfly"
        elif environment == "quiet":
            social_style = "Peaceful Wanderer"
        else:
            social_style = "Mixed"

        adventure_count = len(interests.intersection(ADVENTURE_INTERESTS))
        if adventure_count >= 2:
            adventure_level = "High Adventure"
        elif adventure_count == 0:
            adventure_level = "Relaxed Pace"
        else:
            adventure_level = "Moderate"

        return {
            "explorer_type": explorer_type,
            "social_style": social_style,
            "adventure_level": adventure_level,
        }

    def optimal_times(self, preferences: PreferenceRecord) -> Dict[str, Any]:
        profile = AGE_GROUP_PROFILES.get(preferences.age_group)
        quiet = preferences.preferred_environment == "quiet"

        return {
            "preferred_time": profile.time_preference if profile else "flexible",
            "best_days": ["Tuesday", "Wednesday", "Thursday"] if quiet else ["Friday", "Saturday", "Sunday"],
            "avoid_times": ["Late evening", "Early morning"] if preferences.age_group == "senior" else [],
            "seasonal_preferences": self.seasonal_preferences(preferences),
        }

    def seasonal_preferences(self, preferences: PreferenceRecord) -> Dict[str, str]:
        outdoor = any(interest in OUTDOOR_INTERESTS for interest in preferences.interests)
        return {
            "spring": "Outdoor activities and parks" if outdoor else "Indoor cultural events",
            "summer": "Outdoor dining and festivals" if outdoor else "Air-conditioned venues",
            "fall": "Museums and cozy cafes",
            "winter": "Indoor entertainment and warm restaurants",
        }

    def improvement_suggestions(self, preferences: PreferenceRecord) -> List[Dict[str, str]]:
        suggestions = []

        if len(preferences.interests) < 3:
            suggestions.append({
                "type": "diversify",
                "message": "Consider adding more interests to get more diverse recommendations",
            })

        if preferences.time_preference == "flexible":
            suggestions.append({
                "type": "timing",
                "message": "Set specific time preferences to get better crowd-level recommendations",
            })

        return suggestions


profile_insights = ProfileInsights()
