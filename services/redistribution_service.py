"""
Redistribution engine: proposes moving calories between the remaining windows
of a day after a missed, late, early, over- or under-eaten window.

``propose`` never mutates its inputs. It returns a ``RedistributionResult``
whose ``adjusted_windows`` carry the overlay fields; ``apply_proposal`` writes
those overlays onto a window set and ``reset_to_plan`` removes them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from domain.enums import ImpactSeverity, TriggerKind, WindowFlexibility
from domain.reference_tables import ReferenceTables, get_reference_tables
from domain.schemas.meal_schemas import LoggedMeal
from domain.schemas.redistribution_schemas import (
    RedistributionImpact,
    RedistributionResult,
    RedistributionTrigger,
)
from domain.schemas.window_schemas import MacroTargets, MealWindow
from services.trigger_service import TriggerService

logger = logging.getLogger("mealsync.redistribution")

HIGH_IMPACT_CALORIES = 500
MEDIUM_IMPACT_CALORIES = 250
MIN_CONFIDENCE = 0.5

EDUCATIONAL_TIPS = {
    TriggerKind.MISSED_WINDOW: "Spreading missed calories over the next meals keeps energy steady instead of one oversized dinner.",
    TriggerKind.OVERCONSUMPTION: "A bigger meal is fine; trimming the next windows slightly keeps the day on target without skipping food.",
    TriggerKind.UNDERCONSUMPTION: "Small additions to upcoming meals are easier to eat than one large catch-up meal.",
    TriggerKind.EARLY_CONSUMPTION: "Eating earlier than planned shifts hunger forward; the next windows absorb the difference.",
    TriggerKind.LATE_CONSUMPTION: "Late meals crowd the evening; lighter later windows protect sleep quality.",
    TriggerKind.LATE_CHECK_IN: "A later start compresses the day; the remaining windows now carry the morning's share.",
}


def meals_in_window(window: MealWindow, meals: Sequence[LoggedMeal]) -> List[LoggedMeal]:
    """Meals explicitly linked to the window, or eaten inside it when unlinked."""
    return [
        m
        for m in meals
        if m.window_id == window.id or (m.window_id is None and window.contains(m.timestamp))
    ]


def impact_for(adjusted: Sequence[MealWindow], original: Dict[UUID, MealWindow]) -> RedistributionImpact:
    total = 0
    for w in adjusted:
        before = original[w.id].effective_calories if w.id in original else w.target_calories
        total += abs(w.effective_calories - before)
    if total > HIGH_IMPACT_CALORIES:
        severity = ImpactSeverity.HIGH
    elif total > MEDIUM_IMPACT_CALORIES:
        severity = ImpactSeverity.MEDIUM
    else:
        severity = ImpactSeverity.LOW
    return RedistributionImpact(
        total_calories_affected=total, windows_affected=len(adjusted), severity=severity
    )


class RedistributionService:
    """Proximity-weighted redistribution bounded by window flexibility."""

    def __init__(self, tables: Optional[ReferenceTables] = None):
        self.tables = tables or get_reference_tables()
        self.policy = self.tables.redistribution

    # ---------- propose ----------

    def propose(
        self,
        trigger: RedistributionTrigger,
        current_windows: Sequence[MealWindow],
        meals: Sequence[LoggedMeal],
        now: datetime,
        bedtime: Optional[datetime] = None,
    ) -> Optional[RedistributionResult]:
        """
        Compute a redistribution proposal, or None when nothing should change.

        Args:
            trigger: what happened
            current_windows: the day's windows as currently stored
            meals: meals logged today
            now: evaluation time
            bedtime: tonight's bedtime; windows ending inside the pre-sleep
                buffer are not loaded with extra calories

        Returns:
            A proposal whose ``adjusted_windows`` only contains windows that change.
        """
        by_id = {w.id: w for w in current_windows}
        source = by_id.get(trigger.window_id) if trigger.window_id else None
        if trigger.window_id is not None and source is None:
            logger.warning("Trigger %s references unknown window %s", trigger.kind.value, trigger.window_id)
            return None
        if source is None and trigger.kind != TriggerKind.LATE_CHECK_IN:
            logger.warning("Trigger %s names no window", trigger.kind.value)
            return None
        if trigger.kind == TriggerKind.MISSED_WINDOW and not TriggerService.detect_missed_windows(
            [source], meals, now
        ):
            logger.info("Window %s is not missed at %s", source.id, now.isoformat())
            return None

        delta = self._delta(trigger, source, current_windows, meals)
        if abs(delta) < self.policy.min_redistribution_calories:
            logger.info("Redistribution skipped: delta %.0f kcal below threshold", delta)
            return None

        eligible = self._eligible(current_windows, meals, now, bedtime, source)
        if not eligible:
            logger.info("Redistribution skipped: no eligible windows after %s", now.isoformat())
            return None

        allocation = self._allocate(delta, eligible, now)
        reason = self._reason_label(trigger)
        adjusted: List[MealWindow] = []
        ratios: List[float] = []
        for window in eligible:
            change = allocation.get(window.id, 0)
            if change == 0:
                continue
            old = window.effective_calories
            new = old + change
            macros = self._scale_macros(window, new)
            pct = round(abs(change) / old * 100) if old else 100
            direction = "Increased" if change > 0 else "Reduced"
            adjusted.append(
                window.with_overlay(new, macros, f"{direction} by {pct}% to account for {reason}")
            )
            ratios.append(new / old if old else 1.0)

        if not adjusted:
            return None

        moved = sum(allocation.values())
        if moved != round(delta):
            logger.info(
                "Redistribution placed %d of %.0f kcal; window bounds absorbed the rest", moved, delta
            )

        confidence = 1.0 - sum(abs(r - 1.0) for r in ratios) / len(ratios)
        result = RedistributionResult(
            trigger=trigger,
            adjusted_windows=adjusted,
            explanation=self._explanation(trigger, source, delta, len(adjusted)),
            confidence=round(min(1.0, max(MIN_CONFIDENCE, confidence)), 2),
            educational_tip=EDUCATIONAL_TIPS.get(trigger.kind),
            impact=impact_for(adjusted, by_id),
        )
        logger.info(
            "redistribution_proposed trigger=%s delta=%.0f windows=%d severity=%s",
            trigger.kind.value,
            delta,
            len(adjusted),
            result.impact.severity.value,
        )
        return result

    # ---------- commit / undo ----------

    def apply_proposal(
        self, windows: Sequence[MealWindow], result: RedistributionResult
    ) -> List[MealWindow]:
        """
        Write a proposal's overlays onto ``windows``.

        Only ``adjusted_calories``, ``adjusted_macros`` and ``redistribution_reason``
        change; times and original targets are kept. Macros are rescaled from
        the stored window rather than taken from the proposal. Strict windows
        and windows missing from ``windows`` are skipped.
        """
        overlays = {w.id: w for w in result.adjusted_windows}
        applied: List[MealWindow] = []
        for window in windows:
            proposal = overlays.get(window.id)
            if proposal is None:
                applied.append(window)
                continue
            if window.flexibility == WindowFlexibility.STRICT:
                logger.warning("Ignoring overlay for strict window %s", window.id)
                applied.append(window)
                continue
            calories = proposal.effective_calories
            applied.append(
                window.with_overlay(
                    calories,
                    self._scale_macros(window, calories),
                    proposal.redistribution_reason or self._reason_label(result.trigger),
                )
            )
        return applied

    def overlay_problems(
        self,
        windows: Sequence[MealWindow],
        meals: Sequence[LoggedMeal],
        result: RedistributionResult,
    ) -> List[Dict[str, str]]:
        """
        Reasons ``result`` cannot be applied to ``windows`` as they are stored now.

        Every overlay must name a stored, non-strict window and stay inside that
        window's bounds. The net change may not go the other way from, or beyond,
        what the trigger frees up or removes.
        """
        by_id = {w.id: w for w in windows}
        problems: List[Dict[str, str]] = []
        moved = 0
        for proposed in result.adjusted_windows:
            stored = by_id.get(proposed.id)
            if stored is None:
                problems.append({"window_id": str(proposed.id), "problem": "not planned"})
                continue
            if stored.flexibility == WindowFlexibility.STRICT:
                problems.append({"window_id": str(proposed.id), "problem": "strict"})
                continue
            low, high = self._bounds(stored)
            calories = proposed.effective_calories
            if not low <= calories <= high:
                problems.append(
                    {
                        "window_id": str(proposed.id),
                        "problem": f"{calories} kcal outside {low}-{high}",
                    }
                )
            moved += calories - stored.effective_calories

        trigger = result.trigger
        source = by_id.get(trigger.window_id) if trigger.window_id else None
        if source is None and trigger.kind != TriggerKind.LATE_CHECK_IN:
            problems.append({"window_id": str(trigger.window_id), "problem": "trigger window not planned"})
            return problems

        delta = round(self._delta(trigger, source, windows, meals))
        # per-window rounding may overshoot by about a calorie per window
        tolerance = len(result.adjusted_windows)
        if moved * delta < 0 or abs(moved) > abs(delta) + tolerance:
            problems.append({"problem": f"net change {moved} kcal exceeds available {delta} kcal"})
        return problems

    @staticmethod
    def reset_to_plan(window: MealWindow) -> MealWindow:
        return window.without_overlay()

    # ---------- internals ----------

    def _delta(
        self,
        trigger: RedistributionTrigger,
        source: Optional[MealWindow],
        windows: Sequence[MealWindow],
        meals: Sequence[LoggedMeal],
    ) -> float:
        """Calories to add to (+) or remove from (-) the remaining windows."""
        kind = trigger.kind
        if kind == TriggerKind.MISSED_WINDOW:
            if source.is_marked_as_fasted or meals_in_window(source, meals):
                return 0.0
            return float(source.effective_calories)

        if kind == TriggerKind.LATE_CHECK_IN:
            cutoff = trigger.check_in_time
            return float(
                sum(
                    w.effective_calories
                    for w in windows
                    if w.end_time <= cutoff
                    and not w.is_marked_as_fasted
                    and not meals_in_window(w, meals)
                )
            )

        consumed = sum(m.calories for m in meals_in_window(source, meals))
        target = source.effective_calories
        if kind == TriggerKind.OVERCONSUMPTION:
            return -float(max(0, consumed - target))
        if kind == TriggerKind.UNDERCONSUMPTION:
            return float(max(0, target - consumed))
        # early / late consumption: whatever the deviation from target is
        return float(target - consumed)

    def _eligible(
        self,
        windows: Sequence[MealWindow],
        meals: Sequence[LoggedMeal],
        now: datetime,
        bedtime: Optional[datetime],
        source: Optional[MealWindow],
    ) -> List[MealWindow]:
        cutoff = bedtime - timedelta(minutes=self.policy.bedtime_buffer_minutes) if bedtime else None
        eligible = []
        for w in sorted(windows, key=lambda x: x.start_time):
            if source is not None and w.id == source.id:
                continue
            if not w.is_upcoming(now) or w.is_marked_as_fasted:
                continue
            if w.flexibility == WindowFlexibility.STRICT:
                continue
            if meals_in_window(w, meals):
                continue
            if cutoff is not None and w.end_time > cutoff:
                continue
            eligible.append(w)
        return eligible

    def _weights(self, windows: Sequence[MealWindow], now: datetime) -> Dict[UUID, float]:
        """Proximity weight x purpose modifier x flexibility share, floored and normalized."""
        offsets = [(w.start_time - now).total_seconds() for w in windows]
        span = max(offsets) if offsets else 0.0
        raw: Dict[UUID, float] = {}
        for w, offset in zip(windows, offsets):
            proximity = 1.0 - offset / span if span > 0 else 1.0
            weight = proximity
            weight *= self.policy.purpose_modifiers.get(w.purpose, 1.0)
            weight *= self.policy.flexibility_shares.get(w.flexibility, 1.0)
            raw[w.id] = max(self.policy.min_weight, weight)
        total = sum(raw.values())
        return {k: v / total for k, v in raw.items()}

    def _bounds(self, window: MealWindow) -> tuple[int, int]:
        current = window.effective_calories
        low = self.policy.min_window_calories
        high = self.policy.max_window_calories
        if window.flexibility == WindowFlexibility.MODERATE:
            limit = self.policy.moderate_change_limit
            low = max(low, int(current * (1 - limit)))
            high = min(high, int(current * (1 + limit)))
        # never force a window across a bound it already sits outside of
        return min(low, current), max(high, current)

    def _allocate(self, delta: float, windows: Sequence[MealWindow], now: datetime) -> Dict[UUID, int]:
        """
        Split ``delta`` over ``windows`` by weight, respecting per-window bounds.

        Whatever a bound clips is re-offered to windows with headroom on the
        next pass.
        """
        remaining = round(delta)
        changes: Dict[UUID, int] = {w.id: 0 for w in windows}
        open_windows = list(windows)

        for _ in range(self.policy.passes):
            if remaining == 0 or not open_windows:
                break
            weights = self._weights(open_windows, now)
            shares = {w.id: weights[w.id] * remaining for w in open_windows}
            placed = 0
            still_open = []
            for w in open_windows:
                low, high = self._bounds(w)
                current = w.effective_calories + changes[w.id]
                wanted = current + round(shares[w.id])
                clipped = min(high, max(low, wanted))
                changes[w.id] += clipped - current
                placed += clipped - current
                if clipped == wanted:
                    still_open.append(w)
            remaining -= placed
            open_windows = still_open

        return {k: v for k, v in changes.items() if v != 0}

    def _scale_macros(self, window: MealWindow, new_calories: int) -> MacroTargets:
        base = window.effective_macros
        old = window.effective_calories
        ratio = new_calories / old if old else 1.0
        protein = max(base.protein * ratio, base.protein * self.policy.protein_preservation)
        return MacroTargets(
            protein=min(round(protein), max(self.policy.max_protein_per_window, base.protein)),
            carbs=min(round(base.carbs * ratio), max(self.policy.max_carbs_per_window, base.carbs)),
            fat=min(round(base.fat * ratio), max(self.policy.max_fat_per_window, base.fat)),
        )

    @staticmethod
    def _reason_label(trigger: RedistributionTrigger) -> str:
        labels = {
            TriggerKind.MISSED_WINDOW: "missed window",
            TriggerKind.OVERCONSUMPTION: "overconsumption",
            TriggerKind.UNDERCONSUMPTION: "underconsumption",
            TriggerKind.EARLY_CONSUMPTION: "early meal",
            TriggerKind.LATE_CONSUMPTION: "late meal",
            TriggerKind.LATE_CHECK_IN: "late check-in",
        }
        return labels[trigger.kind]

    @staticmethod
    def _explanation(
        trigger: RedistributionTrigger, source: Optional[MealWindow], delta: float, count: int
    ) -> str:
        kcal = abs(round(delta))
        name = source.name if source is not None else "earlier windows"
        kind = trigger.kind
        if kind == TriggerKind.MISSED_WINDOW:
            return f"You missed {name}, so its {kcal} calories were spread across your next {count} window(s)."
        if kind == TriggerKind.OVERCONSUMPTION:
            pct = f" ({trigger.percent}% over)" if trigger.percent is not None else ""
            return f"{name} ran {kcal} calories over target{pct}; your next {count} window(s) were trimmed to balance the day."
        if kind == TriggerKind.UNDERCONSUMPTION:
            pct = f" ({trigger.percent}% under)" if trigger.percent is not None else ""
            return f"{name} came in {kcal} calories under target{pct}; your next {count} window(s) were increased."
        if kind == TriggerKind.EARLY_CONSUMPTION:
            return f"You ate before {name} opened; {kcal} calories were rebalanced over your next {count} window(s)."
        if kind == TriggerKind.LATE_CONSUMPTION:
            return f"You ate after {name} closed; {kcal} calories were rebalanced over your next {count} window(s)."
        return f"You checked in late, so {kcal} calories from windows that already passed moved to your remaining {count} window(s)."
