"""
Domain schemas package - Pydantic models for validation.
"""

from domain.schemas.window_schemas import MacroTargets, MealWindow, WindowDayResponse
from domain.schemas.profile_schemas import (
    NutritionGoal,
    UserProfile,
    ProfileUpsertRequest,
    NutritionTargets,
    CheckInRequest,
    MorningCheckIn,
)
from domain.schemas.meal_schemas import LogMealRequest, LoggedMeal
from domain.schemas.redistribution_schemas import (
    RedistributionTrigger,
    RedistributionImpact,
    RedistributionResult,
    ProposeRequest,
    CommitRequest,
    MealLoggedResponse,
    PatternInsight,
)
from domain.schemas.first_day_schemas import (
    FirstDayPlan,
    FirstDayRequest,
    FirstDayResponse,
)

__all__ = [
    # Window schemas
    "MacroTargets",
    "MealWindow",
    "WindowDayResponse",
    # Profile schemas
    "NutritionGoal",
    "UserProfile",
    "ProfileUpsertRequest",
    "NutritionTargets",
    "CheckInRequest",
    "MorningCheckIn",
    # Meal schemas
    "LogMealRequest",
    "LoggedMeal",
    # Redistribution schemas
    "RedistributionTrigger",
    "RedistributionImpact",
    "RedistributionResult",
    "ProposeRequest",
    "CommitRequest",
    "MealLoggedResponse",
    "PatternInsight",
    # First-day schemas
    "FirstDayPlan",
    "FirstDayRequest",
    "FirstDayResponse",
]
