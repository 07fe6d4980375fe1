"""
GoalProfile resolver: biometrics + goal -> daily calorie and macro totals.
"""

from __future__ import annotations

import logging
from typing import Optional

from app.config import settings
from domain.enums import ActivityLevel, GoalKind, Sex
from domain.reference_tables import MacroRatio, ReferenceTables, get_reference_tables
from domain.schemas.profile_schemas import NutritionTargets, UserProfile, goal_kind

logger = logging.getLogger("mealsync.goals")

KCAL_PER_POUND = 3500
KCAL_PER_G_PROTEIN = 4
KCAL_PER_G_CARBS = 4
KCAL_PER_G_FAT = 9


def macro_grams(calories: float, ratio: MacroRatio) -> tuple[float, float, float]:
    """Unrounded protein/carbs/fat grams for a calorie amount split by ``ratio``."""
    return (
        calories * ratio.protein / KCAL_PER_G_PROTEIN,
        calories * ratio.carbs / KCAL_PER_G_CARBS,
        calories * ratio.fat / KCAL_PER_G_FAT,
    )


class GoalService:
    """Pure calorie/macro arithmetic over a profile and the reference tables"""

    @staticmethod
    def bmr(weight_kg: float, height_cm: float, age: int, sex: Sex) -> float:
        """Mifflin-St Jeor; ``other`` is the mean of the male and female equations."""
        base = 10 * weight_kg + 6.25 * height_cm - 5 * age
        male = base + 5
        female = base - 161
        if sex == Sex.MALE:
            return male
        if sex == Sex.FEMALE:
            return female
        return (male + female) / 2

    @staticmethod
    def activity_multiplier(level: str, tables: ReferenceTables) -> float:
        try:
            activity = ActivityLevel(level)
        except ValueError:
            logger.warning(
                "Unknown activity level %r, using %s multiplier",
                level,
                tables.fallback_activity_level.value,
            )
            activity = tables.fallback_activity_level
        if activity not in tables.activity_multipliers:
            activity = tables.fallback_activity_level
        return tables.activity_multipliers[activity]

    @staticmethod
    def calorie_adjustment(goal, tables: ReferenceTables) -> float:
        """
        Daily surplus (+) or deficit (-) for a goal.

        Weight goals that carry a target and timeline use the weekly rate
        (capped at the table's safe maximum), converted at 3500 kcal/lb.
        Everything else takes the per-goal default from the tables.
        """
        kind = goal_kind(goal)
        target = getattr(goal, "target_pounds", None)
        weeks = getattr(goal, "timeline_weeks", None)

        if target and weeks:
            weekly = target / weeks
            if kind == GoalKind.WEIGHT_LOSS:
                weekly = min(weekly, tables.max_weekly_loss_lbs)
                return -weekly * KCAL_PER_POUND / 7
            if kind == GoalKind.MUSCLE_GAIN:
                weekly = min(weekly, tables.max_weekly_gain_lbs)
                return weekly * KCAL_PER_POUND / 7

        return float(tables.goal_calorie_adjustments[kind])

    @staticmethod
    def resolve_targets(
        profile: UserProfile,
        tables: Optional[ReferenceTables] = None,
        calorie_floor: Optional[int] = None,
    ) -> NutritionTargets:
        """
        Resolve daily totals for a profile.

        Explicit ``daily_*`` values on the profile win over computed ones.
        Calories never drop below the configured floor. Rounding happens once,
        on the returned values.
        """
        tables = tables or get_reference_tables()
        floor = settings.calorie_floor if calorie_floor is None else calorie_floor
        kind = goal_kind(profile.primary_goal)

        bmr = GoalService.bmr(profile.weight_kg, profile.height_cm, profile.age, profile.sex)
        tdee = bmr * GoalService.activity_multiplier(profile.activity_level, tables)
        adjustment = GoalService.calorie_adjustment(profile.primary_goal, tables)

        calories = float(profile.daily_calories) if profile.daily_calories else tdee + adjustment
        if calories < floor:
            logger.warning(
                "Calorie target %.0f for user %s below floor, raising to %d",
                calories,
                profile.user_id,
                floor,
            )
            calories = float(floor)

        protein, carbs, fat = macro_grams(calories, tables.goal_macro_ratios[kind])
        if profile.daily_protein is not None:
            protein = float(profile.daily_protein)
        if profile.daily_carbs is not None:
            carbs = float(profile.daily_carbs)
        if profile.daily_fat is not None:
            fat = float(profile.daily_fat)

        logger.info(
            "targets_resolved user_id=%s goal=%s bmr=%.1f tdee=%.1f kcal=%.0f",
            profile.user_id,
            kind.value,
            bmr,
            tdee,
            calories,
        )

        return NutritionTargets(
            daily_calories=round(calories),
            protein=round(protein),
            carbs=round(carbs),
            fat=round(fat),
            bmr=round(bmr, 1),
            tdee=round(tdee, 1),
            calorie_adjustment=round(adjustment, 1),
        )
