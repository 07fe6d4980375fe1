"""
Day-boundary normalization for window sets.

Two anomalies are recognised:

* a window set whose earliest start lies more than ``threshold_hours`` ahead
  of ``now`` was computed against the wrong calendar day; the whole set moves
  back exactly 24 hours;
* a window whose end falls on the next calendar day crosses midnight; that is
  valid (night-shift schedules) and is left alone.

Only a one-day slip is corrected. A set that would still be more than the
threshold ahead after the shift is returned untouched, which keeps
``normalize`` idempotent.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from app.config import settings
from domain.schemas.window_schemas import MacroTargets, MealWindow

ONE_DAY = timedelta(hours=24)


def needs_day_shift(
    windows: Iterable[MealWindow], now: datetime, threshold_hours: Optional[float] = None
) -> bool:
    threshold = timedelta(
        hours=settings.wrong_day_threshold_hours if threshold_hours is None else threshold_hours
    )
    starts = [w.start_time for w in windows]
    if not starts:
        return False
    lead = min(starts) - now
    return threshold < lead <= threshold + ONE_DAY


def normalize(
    windows: Iterable[MealWindow], now: datetime, threshold_hours: Optional[float] = None
) -> List[MealWindow]:
    """Return the set shifted back one day if it was planned for tomorrow, else unchanged."""
    windows = list(windows)
    if not needs_day_shift(windows, now, threshold_hours):
        return windows
    return [w.shifted(-ONE_DAY) for w in windows]


def crosses_midnight(window: MealWindow) -> bool:
    return window.crosses_midnight


def split_at_midnight(window: MealWindow) -> Tuple[MealWindow, ...]:
    """
    Split a midnight-crossing window into a before/after pair for display.

    Targets are prorated by duration; the second part gets a derived id and
    the next day as its anchor. Windows that stay on one day come back as a
    one-tuple.
    """
    if not window.crosses_midnight:
        return (window,)

    midnight = datetime.combine(window.end_time.date(), datetime.min.time())
    total = (window.end_time - window.start_time).total_seconds()
    share = (midnight - window.start_time).total_seconds() / total

    def part(value: int) -> Tuple[int, int]:
        first = round(value * share)
        return first, value - first

    cal_a, cal_b = part(window.target_calories)
    p_a, p_b = part(window.target_macros.protein)
    c_a, c_b = part(window.target_macros.carbs)
    f_a, f_b = part(window.target_macros.fat)

    before = window.model_copy(
        update={
            "end_time": midnight,
            "target_calories": cal_a,
            "target_macros": MacroTargets(protein=p_a, carbs=c_a, fat=f_a),
        }
    )
    after = window.model_copy(
        update={
            "id": uuid.uuid5(window.id, "after-midnight"),
            "start_time": midnight,
            "day_date": midnight.date(),
            "target_calories": cal_b,
            "target_macros": MacroTargets(protein=p_b, carbs=c_b, fat=f_b),
        }
    )
    return before, after
