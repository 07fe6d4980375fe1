"""
Window generator: one day's ordered, non-overlapping eating windows.

Every goal maps to a strategy record in the reference tables (window shares,
purposes, flexibilities, span offsets). A single partitioning routine lays any
strategy out over the usable eating span, compressing to fewer, wider windows
when the span is short and falling back to one catch-all window when there is
no usable span at all.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from app.config import settings
from app.exceptions import ServiceValidationError
from domain.enums import WindowFlexibility, WindowPurpose, WindowType
from domain.reference_tables import GoalStrategy, ReferenceTables, get_reference_tables
from domain.schemas.profile_schemas import (
    MorningCheckIn,
    NutritionTargets,
    UserProfile,
    goal_kind,
)
from domain.schemas.window_schemas import MacroTargets, MealWindow
from services.goal_service import GoalService

logger = logging.getLogger("mealsync.windows")

WINDOW_NAMESPACE = uuid.UUID("6f1c2a4e-9b7d-4c3e-8a55-3d2f7e0b9c41")
CATCH_ALL_NAME = "All-Day Window"


@dataclass
class WindowSlot:
    """One entry of a (possibly compressed) strategy before it gets times"""

    share: float
    purpose: WindowPurpose
    flexibility: WindowFlexibility
    name: Optional[str] = None


def apportion(total: int, shares: Sequence[float]) -> List[int]:
    """
    Split an integer total by shares using largest-remainder rounding.

    The parts always sum to ``total`` exactly; shares are normalized first.
    """
    if not shares:
        return []
    weight = sum(shares)
    if weight <= 0:
        raise ServiceValidationError("Cannot apportion over zero total share")
    raw = [total * s / weight for s in shares]
    parts = [math.floor(r) for r in raw]
    leftover = total - sum(parts)
    order = sorted(range(len(raw)), key=lambda i: raw[i] - parts[i], reverse=True)
    for i in order[:leftover]:
        parts[i] += 1
    return parts


def window_name(start: datetime, purpose: WindowPurpose) -> str:
    if purpose == WindowPurpose.PREWORKOUT:
        return "Pre-Workout"
    if purpose == WindowPurpose.POSTWORKOUT:
        return "Post-Workout"
    hour = start.hour + start.minute / 60
    if hour < 5:
        return "Night Meal"
    if hour < 10:
        return "Breakfast"
    if hour < 11.5:
        return "Late Breakfast"
    if hour < 14:
        return "Lunch"
    if hour < 16.5:
        return "Afternoon Snack"
    if hour < 18.5:
        return "Early Dinner"
    if hour < 20.5:
        return "Dinner"
    return "Evening Meal"


class WindowService:
    """Deterministic generator; no clock reads, no I/O."""

    def __init__(
        self,
        tables: Optional[ReferenceTables] = None,
        default_wake: Optional[time] = None,
        default_sleep: Optional[time] = None,
    ):
        self.tables = tables or get_reference_tables()
        self.default_wake = default_wake or settings.default_wake_time
        self.default_sleep = default_sleep or settings.default_sleep_time

    # ---------- public API ----------

    def generate(
        self,
        day: date,
        profile: UserProfile,
        check_in: Optional[MorningCheckIn] = None,
        targets: Optional[NutritionTargets] = None,
    ) -> List[MealWindow]:
        """
        Build the window set for ``day``.

        Args:
            day: calendar day the windows are anchored to
            profile: user profile (goal, typical wake/sleep, meal-hour bounds)
            check_in: today's check-in; its wake/bedtime override the profile
            targets: precomputed daily totals, resolved from the profile if omitted

        Returns:
            Windows ordered by start time, non-overlapping, whose calories sum
            to ``targets.daily_calories``.
        """
        targets = targets or GoalService.resolve_targets(profile, self.tables)
        strategy = self.tables.strategy_for(goal_kind(profile.primary_goal))
        wake, sleep = self.resolve_day_bounds(day, profile, check_in)
        span_start, span_end = self.usable_span(wake, sleep, strategy, profile)
        span_minutes = (span_end - span_start).total_seconds() / 60
        policy = self.tables.scheduling

        if span_minutes < policy.min_viable_span_minutes:
            logger.warning(
                "Usable span for user %s on %s is %.0f min, using a single catch-all window",
                profile.user_id,
                day,
                span_minutes,
            )
            start, end = self.catch_all_bounds(wake, sleep, span_start)
            slots = [
                WindowSlot(
                    share=1.0,
                    purpose=WindowPurpose.SUSTAINED_ENERGY,
                    flexibility=WindowFlexibility.FLEXIBLE,
                    name=CATCH_ALL_NAME,
                )
            ]
            times = [(start, end)]
        else:
            count = self.window_count(len(strategy.window_percentages), span_minutes)
            slots = self.combine_slots(strategy, count)
            compressed = count < len(strategy.window_percentages)
            times = self.place(slots, span_start, span_end, compressed)
            if compressed:
                logger.info(
                    "Span of %.0f min for user %s compressed %s to %d windows",
                    span_minutes,
                    profile.user_id,
                    strategy.name,
                    count,
                )

        windows = self.build_windows(
            profile.user_id,
            day,
            slots,
            times,
            targets,
            use_purpose_macros=strategy.purpose_macros,
            id_salt=strategy.name,
        )
        self.validate(windows)
        logger.info(
            "windows_generated user_id=%s day=%s strategy=%s count=%d kcal=%d",
            profile.user_id,
            day,
            strategy.name,
            len(windows),
            sum(w.target_calories for w in windows),
        )
        return windows

    def resolve_day_bounds(
        self, day: date, profile: UserProfile, check_in: Optional[MorningCheckIn] = None
    ) -> Tuple[datetime, datetime]:
        """Wake and sleep datetimes; sleep at or before wake rolls to the next day."""
        if check_in is not None:
            wake = check_in.wake_time
        else:
            wake = datetime.combine(day, profile.typical_wake_time or self.default_wake)

        if check_in is not None and check_in.planned_bedtime is not None:
            sleep = check_in.planned_bedtime
        else:
            sleep = datetime.combine(wake.date(), profile.typical_sleep_time or self.default_sleep)

        while sleep <= wake:
            sleep += timedelta(days=1)
        return wake, sleep

    def usable_span(
        self, wake: datetime, sleep: datetime, strategy: GoalStrategy, profile: UserProfile
    ) -> Tuple[datetime, datetime]:
        start = wake + timedelta(minutes=strategy.lead_offset_minutes)
        end = sleep - timedelta(minutes=strategy.trailing_buffer_minutes)

        # Observed meal-hour bounds tighten the span when they fall inside the waking day
        if profile.earliest_meal_hour is not None:
            earliest = datetime.combine(wake.date(), time(profile.earliest_meal_hour))
            if wake <= earliest < end:
                start = max(start, earliest)
        if profile.latest_meal_hour is not None:
            latest = datetime.combine(wake.date(), time(profile.latest_meal_hour))
            if latest < wake:
                latest += timedelta(days=1)
            latest_end = latest + timedelta(hours=1)
            if start < latest_end <= sleep:
                end = min(end, latest_end)
        return start, end

    def window_count(self, full_count: int, span_minutes: float) -> int:
        """
        Number of windows that fit in the span; never grows as the span shrinks.

        >= full_span_hours keeps the strategy's count, the compressed band caps
        it, anything shorter gets one window. The count is further reduced
        while each window could not get ``min_window_minutes``.
        """
        policy = self.tables.scheduling
        hours = span_minutes / 60
        if hours >= policy.full_span_hours:
            count = full_count
        elif hours >= policy.compressed_span_hours:
            count = min(full_count, policy.compressed_window_count)
        else:
            count = 1
        while count > 1 and span_minutes / count - policy.window_gap_minutes < policy.min_window_minutes:
            count -= 1
        return count

    def combine_slots(self, strategy: GoalStrategy, count: int) -> List[WindowSlot]:
        """Merge contiguous strategy entries into ``count`` groups; the largest share leads."""
        entries = list(
            zip(strategy.window_percentages, strategy.purpose_sequence, strategy.flexibility_sequence)
        )
        n = len(entries)
        count = max(1, min(count, n))
        if count == n:
            return [WindowSlot(share=s, purpose=p, flexibility=f) for s, p, f in entries]

        slots: List[WindowSlot] = []
        base, extra = divmod(n, count)
        cursor = 0
        for i in range(count):
            size = base + (1 if i < extra else 0)
            group = entries[cursor : cursor + size]
            cursor += size
            lead = max(group, key=lambda e: e[0])
            slots.append(
                WindowSlot(
                    share=sum(e[0] for e in group),
                    purpose=lead[1],
                    flexibility=lead[2],
                )
            )
        return slots

    def place(
        self,
        slots: Sequence[WindowSlot],
        span_start: datetime,
        span_end: datetime,
        compressed: bool = False,
    ) -> List[Tuple[datetime, datetime]]:
        """
        Give each slot a start and end inside the span.

        Full layouts anchor the first window at the span start and the last at
        the span end, spacing starts evenly and sizing each window by purpose.
        Compressed layouts split the span into equal slots so the merged
        windows get the whole room.
        """
        n = len(slots)
        gap = self.tables.scheduling.window_gap_minutes
        span = int((span_end - span_start).total_seconds() // 60)
        slot_len = span // n

        if n == 1:
            duration = span if compressed else min(self.tables.duration_for(slots[0].purpose), span)
            return [(span_start, span_start + timedelta(minutes=duration))]

        if compressed:
            offsets = [i * slot_len for i in range(n)]
            durations = [slot_len - gap] * (n - 1) + [span - offsets[-1]]
        else:
            last = min(self.tables.duration_for(slots[-1].purpose), slot_len)
            step = (span - last) / (n - 1)
            offsets = [int(round(i * step)) for i in range(n - 1)] + [span - last]
            durations = [self.tables.duration_for(s.purpose) for s in slots[:-1]] + [last]

        times: List[Tuple[datetime, datetime]] = []
        for i in range(n):
            start_off = offsets[i]
            end_off = start_off + durations[i]
            if i < n - 1:
                end_off = min(end_off, offsets[i + 1] - gap)
            end_off = min(end_off, span)
            times.append(
                (span_start + timedelta(minutes=start_off), span_start + timedelta(minutes=end_off))
            )
        return times

    def catch_all_bounds(
        self, wake: datetime, sleep: datetime, span_start: datetime
    ) -> Tuple[datetime, datetime]:
        """Whatever time remains before sleep, or a fixed-length window if none does."""
        policy = self.tables.scheduling
        start = max(wake, min(span_start, sleep - timedelta(minutes=policy.catch_all_minutes)))
        if (sleep - start).total_seconds() / 60 >= policy.min_window_minutes:
            return start, sleep
        return start, start + timedelta(minutes=policy.catch_all_minutes)

    def build_windows(
        self,
        user_id: UUID,
        day: date,
        slots: Sequence[WindowSlot],
        times: Sequence[Tuple[datetime, datetime]],
        targets: NutritionTargets,
        use_purpose_macros: bool = False,
        id_salt: str = "",
    ) -> List[MealWindow]:
        """Attach targets, names and ids to placed slots."""
        shares = [s.share for s in slots]
        calories = apportion(targets.daily_calories, shares)
        protein = apportion(targets.protein, self._macro_shares(slots, "protein", use_purpose_macros))
        carbs = apportion(targets.carbs, self._macro_shares(slots, "carbs", use_purpose_macros))
        fat = apportion(targets.fat, self._macro_shares(slots, "fat", use_purpose_macros))
        grams = [MacroTargets(protein=p, carbs=c, fat=f) for p, c, f in zip(protein, carbs, fat)]

        windows: List[MealWindow] = []
        for index, (slot, (start, end)) in enumerate(zip(slots, times)):
            windows.append(
                MealWindow(
                    id=uuid.uuid5(WINDOW_NAMESPACE, f"{user_id}:{day.isoformat()}:{id_salt}:{index}"),
                    name=slot.name or window_name(start, slot.purpose),
                    start_time=start,
                    end_time=end,
                    day_date=day,
                    target_calories=calories[index],
                    target_macros=grams[index],
                    purpose=slot.purpose,
                    flexibility=slot.flexibility,
                    type=self._window_type(slot),
                )
            )
        return windows

    @staticmethod
    def validate(windows: Sequence[MealWindow]) -> None:
        """Raise if any window is empty or two windows overlap."""
        for w in windows:
            if w.start_time >= w.end_time:
                raise ServiceValidationError(
                    f"Generated window {w.name} is empty", details={"window_id": str(w.id)}
                )
        ordered = sorted(windows, key=lambda w: w.start_time)
        for a, b in zip(ordered, ordered[1:]):
            if a.end_time > b.start_time:
                raise ServiceValidationError(
                    f"Generated windows {a.name} and {b.name} overlap",
                    details={"first": str(a.id), "second": str(b.id)},
                )

    # ---------- helpers ----------

    def _macro_shares(
        self, slots: Sequence[WindowSlot], macro: str, weighted: bool
    ) -> List[float]:
        """
        Per-window split of one daily macro total.

        Weighted by purpose, each window's calorie share is scaled by its
        purpose ratio for ``macro``; apportion renormalizes, so the grams still
        sum to the daily total.
        """
        if not weighted:
            return [s.share for s in slots]
        ratios = self.tables.purpose_macro_ratios
        return [s.share * getattr(ratios[s.purpose], macro) for s in slots]

    def _window_type(self, slot: WindowSlot) -> WindowType:
        snack_below = self.tables.scheduling.snack_share_below
        if slot.purpose == WindowPurpose.SLEEP_OPTIMIZATION:
            return WindowType.LIGHT
        if slot.purpose == WindowPurpose.POSTWORKOUT and slot.share < snack_below:
            return WindowType.SHAKE
        if slot.share < snack_below:
            return WindowType.SNACK
        return WindowType.REGULAR
