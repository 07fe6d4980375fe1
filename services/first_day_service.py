"""
First-day adapter: what is left of the day a user finishes onboarding on.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from app.config import settings
from domain.enums import WindowFlexibility, WindowPurpose
from domain.schemas.first_day_schemas import FirstDayPlan
from domain.schemas.profile_schemas import NutritionTargets, UserProfile
from domain.schemas.window_schemas import MacroTargets, MealWindow
from services.goal_service import GoalService
from services.window_service import WindowService, WindowSlot, apportion

logger = logging.getLogger("mealsync.first_day")

LAST_MEAL_BUFFER = timedelta(hours=3)
FIRST_WINDOW_DELAY = timedelta(minutes=30)
TOMORROW_FROM_HOUR = 20
MIN_HOURS_FOR_TODAY = 2.0
MIN_PRORATED_CALORIES = 200

# (minimum remaining hours, window count), checked in order
WINDOW_COUNT_STEPS = ((6.0, 3), (4.0, 2), (2.0, 1))

PURPOSE_CALORIE_WEIGHTS = {
    WindowPurpose.SUSTAINED_ENERGY: 0.35,
    WindowPurpose.METABOLIC_BOOST: 0.30,
    WindowPurpose.RECOVERY: 0.25,
    WindowPurpose.SLEEP_OPTIMIZATION: 0.20,
}


class FirstDayService:
    """Pure; the only notion of "now" is the ``current_time`` argument."""

    def __init__(self, window_service: Optional[WindowService] = None):
        self.window_service = window_service or WindowService()

    def plan_first_day(
        self,
        completion_time: datetime,
        profile: UserProfile,
        current_time: datetime,
        targets: Optional[NutritionTargets] = None,
    ) -> FirstDayPlan:
        """
        Decide how many windows still fit today and how many calories they carry.

        Remaining time runs from the later of completion and current time to
        three hours before tonight's bedtime. From 20:00 on, or with under two
        hours left, today is skipped and tomorrow's plan is shown at full
        daily targets.
        """
        targets = targets or GoalService.resolve_targets(profile, self.window_service.tables)
        reference = max(completion_time, current_time)

        sleep_t = profile.typical_sleep_time or settings.default_sleep_time
        wake_t = profile.typical_wake_time or settings.default_wake_time
        bedtime = datetime.combine(reference.date(), sleep_t)
        if bedtime <= reference:
            bedtime += timedelta(days=1)
        last_meal = bedtime - LAST_MEAL_BUFFER

        remaining_hours = max(0.0, (last_meal - reference).total_seconds() / 3600)
        waking = (
            datetime.combine(reference.date(), sleep_t) - datetime.combine(reference.date(), wake_t)
        ).total_seconds() / 3600
        if waking <= 0:
            waking += 24

        show_tomorrow = reference.hour >= TOMORROW_FROM_HOUR or remaining_hours < MIN_HOURS_FOR_TODAY
        count = 0 if show_tomorrow else self._window_count(remaining_hours)
        purposes = self._purposes(count, reference.hour)

        if show_tomorrow:
            calories = targets.daily_calories
            macros = MacroTargets(protein=targets.protein, carbs=targets.carbs, fat=targets.fat)
        else:
            calories = self.pro_rated(targets.daily_calories, remaining_hours, waking)
            fraction = calories / targets.daily_calories if targets.daily_calories else 0.0
            macros = MacroTargets(
                protein=round(targets.protein * fraction),
                carbs=round(targets.carbs * fraction),
                fat=round(targets.fat * fraction),
            )

        plan = FirstDayPlan(
            number_of_windows=count,
            show_tomorrow_plan=show_tomorrow,
            remaining_hours=round(remaining_hours, 2),
            pro_rated_calories=calories,
            pro_rated_macros=macros,
            purposes=purposes,
            window_names=self._names(count, reference.hour),
        )
        logger.info(
            "first_day_planned user_id=%s at=%s windows=%d tomorrow=%s remaining_h=%.2f kcal=%d",
            profile.user_id,
            reference.isoformat(timespec="minutes"),
            count,
            show_tomorrow,
            remaining_hours,
            calories,
        )
        return plan

    @staticmethod
    def pro_rated(daily_calories: int, remaining_hours: float, waking_hours: float) -> int:
        """Daily calories scaled by the remaining share of the waking day, clamped to [200, daily]."""
        if remaining_hours <= 0 or waking_hours <= 0:
            return 0
        value = round(daily_calories * remaining_hours / waking_hours)
        return min(max(MIN_PRORATED_CALORIES, value), daily_calories)

    def build_windows(
        self, plan: FirstDayPlan, profile: UserProfile, current_time: datetime
    ) -> List[MealWindow]:
        """Concrete windows for today's remaining plan, starting half an hour from now."""
        if plan.show_tomorrow_plan or plan.number_of_windows == 0:
            return []

        n = plan.number_of_windows
        span_start = current_time + FIRST_WINDOW_DELAY
        remaining = timedelta(hours=plan.remaining_hours)
        span_end = max(current_time + remaining, span_start + timedelta(hours=n))

        slots = [
            WindowSlot(
                share=PURPOSE_CALORIE_WEIGHTS.get(p, 0.25),
                purpose=p,
                flexibility=(
                    WindowFlexibility.STRICT
                    if p == WindowPurpose.SLEEP_OPTIMIZATION
                    else WindowFlexibility.MODERATE
                ),
                name=name,
            )
            for p, name in zip(plan.purposes, plan.window_names)
        ]
        times = self.window_service.place(slots, span_start, span_end)
        shares = [s.share for s in slots]
        protein = apportion(plan.pro_rated_macros.protein, shares)
        carbs = apportion(plan.pro_rated_macros.carbs, shares)
        fat = apportion(plan.pro_rated_macros.fat, shares)
        partial = NutritionTargets(
            daily_calories=plan.pro_rated_calories,
            protein=sum(protein),
            carbs=sum(carbs),
            fat=sum(fat),
            bmr=0.0,
            tdee=0.0,
            calorie_adjustment=0.0,
        )
        windows = self.window_service.build_windows(
            profile.user_id,
            current_time.date(),
            slots,
            times,
            partial,
            id_salt="first_day",
        )
        self.window_service.validate(windows)
        return windows

    # ---------- helpers ----------

    @staticmethod
    def _window_count(remaining_hours: float) -> int:
        for minimum, count in WINDOW_COUNT_STEPS:
            if remaining_hours >= minimum:
                return count
        return 0

    @staticmethod
    def _purposes(count: int, hour: int) -> List[WindowPurpose]:
        P = WindowPurpose
        if count == 3:
            if hour < 12:
                return [P.SUSTAINED_ENERGY, P.METABOLIC_BOOST, P.RECOVERY]
            return [P.METABOLIC_BOOST, P.SUSTAINED_ENERGY, P.SLEEP_OPTIMIZATION]
        if count == 2:
            if hour < 16:
                return [P.SUSTAINED_ENERGY, P.RECOVERY]
            return [P.SUSTAINED_ENERGY, P.SLEEP_OPTIMIZATION]
        if count == 1:
            return [P.SUSTAINED_ENERGY] if hour < 18 else [P.SLEEP_OPTIMIZATION]
        return []

    @staticmethod
    def _names(count: int, hour: int) -> List[str]:
        if count == 3:
            if hour < 12:
                return ["Late Breakfast", "Lunch", "Dinner"]
            return ["Late Lunch", "Afternoon Snack", "Dinner"]
        if count == 2:
            if hour < 16:
                return ["Lunch", "Dinner"]
            return ["Early Dinner", "Evening Snack"]
        if count == 1:
            return ["Lunch & Afternoon"] if hour < 18 else ["Light Evening Meal"]
        return []
