"""
Decides when logged meals warrant a redistribution proposal.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from domain.enums import EatingPattern, TriggerKind
from domain.reference_tables import ReferenceTables, get_reference_tables
from domain.schemas.meal_schemas import LoggedMeal
from domain.schemas.redistribution_schemas import PatternInsight, RedistributionTrigger
from domain.schemas.window_schemas import MealWindow

logger = logging.getLogger("mealsync.triggers")

MIN_PATTERN_HISTORY = 5


class TriggerService:
    def __init__(self, tables: Optional[ReferenceTables] = None):
        self.tables = tables or get_reference_tables()

    @staticmethod
    def match_window(meal_time: datetime, windows: Sequence[MealWindow]) -> Optional[MealWindow]:
        """Window containing the meal, else the nearest one whose grace period covers it."""
        for w in windows:
            if w.contains(meal_time):
                return w
        candidates = [w for w in windows if w.contains_with_buffer(meal_time)]
        if not candidates:
            return None

        def distance(w: MealWindow) -> float:
            if meal_time < w.start_time:
                return (w.start_time - meal_time).total_seconds()
            return (meal_time - w.end_time).total_seconds()

        return min(candidates, key=distance)

    def evaluate_meal(
        self,
        window: MealWindow,
        window_meals: Sequence[LoggedMeal],
        meal_time: datetime,
        now: datetime,
    ) -> Optional[RedistributionTrigger]:
        """
        Trigger for the latest meal in ``window``, if any.

        Meals outside the window's grace period are early/late consumption.
        Otherwise the window total is compared against its effective target;
        a deviation above the threshold is over- or under-consumption, the
        latter only once the window has closed.
        """
        if meal_time < window.start_time and not window.contains_with_buffer(meal_time):
            return RedistributionTrigger(kind=TriggerKind.EARLY_CONSUMPTION, window_id=window.id)
        if meal_time >= window.end_time and not window.contains_with_buffer(meal_time):
            return RedistributionTrigger(kind=TriggerKind.LATE_CONSUMPTION, window_id=window.id)

        target = window.effective_calories
        if target <= 0:
            return None
        consumed = sum(m.calories for m in window_meals)
        deviation = (consumed - target) / target
        if abs(deviation) <= self.tables.redistribution.deviation_threshold:
            return None

        percent = round(abs(deviation) * 100)
        if deviation > 0:
            logger.info("Window %s over target by %d%%", window.id, percent)
            return RedistributionTrigger(
                kind=TriggerKind.OVERCONSUMPTION, window_id=window.id, percent=percent
            )
        if window.is_past(now):
            logger.info("Window %s under target by %d%%", window.id, percent)
            return RedistributionTrigger(
                kind=TriggerKind.UNDERCONSUMPTION, window_id=window.id, percent=percent
            )
        return None

    @staticmethod
    def detect_missed_windows(
        windows: Sequence[MealWindow], meals: Sequence[LoggedMeal], now: datetime
    ) -> List[MealWindow]:
        """Closed windows (grace period included) with no meal that are not marked fasted."""
        missed = []
        for w in windows:
            if w.is_marked_as_fasted or not w.is_past(now) or w.contains_with_buffer(now):
                continue
            eaten = any(
                m.window_id == w.id or (m.window_id is None and w.contains_with_buffer(m.timestamp))
                for m in meals
            )
            if not eaten:
                missed.append(w)
        return missed

    @staticmethod
    def analyze_pattern(history: Sequence[TriggerKind]) -> Optional[PatternInsight]:
        """Recurring deviation across recent triggers; needs at least five entries."""
        total = len(history)
        if total < MIN_PATTERN_HISTORY:
            return None
        over = sum(1 for k in history if k == TriggerKind.OVERCONSUMPTION)
        under = sum(1 for k in history if k == TriggerKind.UNDERCONSUMPTION)
        missed = sum(1 for k in history if k == TriggerKind.MISSED_WINDOW)
        if over > total / 2:
            return PatternInsight(
                pattern=EatingPattern.CONSISTENT_OVEREATING, occurrences=over, sample_size=total
            )
        if under > total / 2:
            return PatternInsight(
                pattern=EatingPattern.CONSISTENT_UNDEREATING, occurrences=under, sample_size=total
            )
        if missed > total / 3:
            return PatternInsight(
                pattern=EatingPattern.FREQUENT_MISSED_WINDOWS, occurrences=missed, sample_size=total
            )
        return None
