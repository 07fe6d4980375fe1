from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, model_validator

from domain.enums import WindowFlexibility, WindowPurpose, WindowType

# Grace minutes a meal may fall outside its window and still count toward it
FLEXIBILITY_BUFFER_MINUTES = {
    WindowFlexibility.STRICT: 15,
    WindowFlexibility.MODERATE: 30,
    WindowFlexibility.FLEXIBLE: 60,
}

# Without a following window, a window this late is still worth eating in
LATE_BUT_DOABLE_HOURS = 2.0


class MacroTargets(BaseModel):
    """Macro grams for one window or one day"""

    protein: int = Field(0, ge=0, description="Protein grams")
    carbs: int = Field(0, ge=0, description="Carbohydrate grams")
    fat: int = Field(0, ge=0, description="Fat grams")

    model_config = {"from_attributes": True}

    @property
    def total_calories(self) -> int:
        return self.protein * 4 + self.carbs * 4 + self.fat * 9


class MealWindow(BaseModel):
    """
    A contiguous eating interval with calorie/macro targets.

    The ``adjusted_*`` overlay, when present, supersedes the original targets;
    the targets themselves are never rewritten so a window can be reset to plan.
    """

    id: UUID
    name: str
    start_time: datetime
    end_time: datetime
    day_date: date = Field(..., description="Calendar day this window was planned for")
    target_calories: int = Field(..., ge=0)
    target_macros: MacroTargets
    purpose: WindowPurpose
    flexibility: WindowFlexibility
    type: WindowType = WindowType.REGULAR
    adjusted_calories: Optional[int] = Field(None, ge=0)
    adjusted_macros: Optional[MacroTargets] = None
    redistribution_reason: Optional[str] = None
    is_marked_as_fasted: bool = False

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def check_bounds(self):
        if self.start_time >= self.end_time:
            raise ValueError(
                f"window {self.name} must start before it ends ({self.start_time} >= {self.end_time})"
            )
        return self

    # ---------- effective values ----------

    @computed_field
    @property
    def effective_calories(self) -> int:
        return self.adjusted_calories if self.adjusted_calories is not None else self.target_calories

    @computed_field
    @property
    def effective_macros(self) -> MacroTargets:
        return self.adjusted_macros if self.adjusted_macros is not None else self.target_macros

    @property
    def is_adjusted(self) -> bool:
        return self.adjusted_calories is not None or self.adjusted_macros is not None

    def with_overlay(self, calories: int, macros: MacroTargets, reason: str) -> "MealWindow":
        return self.model_copy(
            update={
                "adjusted_calories": calories,
                "adjusted_macros": macros,
                "redistribution_reason": reason,
            }
        )

    def without_overlay(self) -> "MealWindow":
        return self.model_copy(
            update={
                "adjusted_calories": None,
                "adjusted_macros": None,
                "redistribution_reason": None,
            }
        )

    def shifted(self, delta: timedelta) -> "MealWindow":
        """Copy with both timestamps moved by ``delta``; ``day_date`` stays the anchor."""
        return self.model_copy(
            update={"start_time": self.start_time + delta, "end_time": self.end_time + delta}
        )

    # ---------- time helpers ----------

    @property
    def duration_minutes(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 60

    @property
    def crosses_midnight(self) -> bool:
        return self.end_time.date() != self.start_time.date()

    @property
    def time_buffer_minutes(self) -> int:
        return FLEXIBILITY_BUFFER_MINUTES[self.flexibility]

    def contains(self, ts: datetime) -> bool:
        return self.start_time <= ts < self.end_time

    def contains_with_buffer(self, ts: datetime) -> bool:
        grace = timedelta(minutes=self.time_buffer_minutes)
        return self.start_time - grace <= ts < self.end_time + grace

    def is_active(self, now: datetime) -> bool:
        return self.contains(now)

    def is_past(self, now: datetime) -> bool:
        return now >= self.end_time

    def is_upcoming(self, now: datetime) -> bool:
        return now < self.start_time

    def hours_late(self, now: datetime) -> float:
        if now <= self.end_time:
            return 0.0
        return (now - self.end_time).total_seconds() / 3600

    def is_late_but_doable(self, now: datetime, next_window: Optional["MealWindow"] = None) -> bool:
        """Past its end, but still before the next window (or under two hours late)."""
        if not self.is_past(now):
            return False
        if next_window is not None:
            return now < next_window.start_time
        return self.hours_late(now) < LATE_BUT_DOABLE_HOURS


class WindowDayResponse(BaseModel):
    """Window set for one user/day"""

    user_id: UUID
    day: date
    windows: List[MealWindow]
    total_calories: int = Field(..., description="Sum of effective calories across windows")
    normalized: bool = Field(
        False, description="True when the set was shifted back a day on load"
    )
