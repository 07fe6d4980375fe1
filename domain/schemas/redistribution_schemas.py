from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from domain.enums import EatingPattern, ImpactSeverity, TriggerKind
from domain.schemas.meal_schemas import LoggedMeal
from domain.schemas.window_schemas import MealWindow

WINDOW_TRIGGERS = {
    TriggerKind.MISSED_WINDOW,
    TriggerKind.OVERCONSUMPTION,
    TriggerKind.UNDERCONSUMPTION,
    TriggerKind.EARLY_CONSUMPTION,
    TriggerKind.LATE_CONSUMPTION,
}


class RedistributionTrigger(BaseModel):
    """What happened that may warrant moving calories between windows"""

    kind: TriggerKind
    window_id: Optional[UUID] = Field(None, description="Window the event happened in")
    percent: Optional[int] = Field(
        None, ge=0, description="Deviation from target for over/under consumption"
    )
    check_in_time: Optional[datetime] = Field(None, description="Late check-in time")

    @model_validator(mode="after")
    def check_payload(self):
        if self.kind in WINDOW_TRIGGERS and self.window_id is None:
            raise ValueError(f"{self.kind.value} trigger requires window_id")
        if self.kind == TriggerKind.LATE_CHECK_IN and self.check_in_time is None:
            raise ValueError("late_check_in trigger requires check_in_time")
        return self


class RedistributionImpact(BaseModel):
    total_calories_affected: int
    windows_affected: int
    severity: ImpactSeverity


class RedistributionResult(BaseModel):
    """A proposal; nothing is persisted until the caller commits it"""

    trigger: RedistributionTrigger
    adjusted_windows: List[MealWindow]
    explanation: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    educational_tip: Optional[str] = None
    impact: RedistributionImpact


class ProposeRequest(BaseModel):
    trigger: RedistributionTrigger
    now: Optional[datetime] = Field(None, description="Evaluation time; defaults to server time")
    bedtime: Optional[datetime] = Field(None, description="Tonight's bedtime, if known")


class CommitRequest(BaseModel):
    proposal: RedistributionResult


class MealLoggedResponse(BaseModel):
    meal: LoggedMeal
    trigger: Optional[RedistributionTrigger] = None
    proposal: Optional[RedistributionResult] = None


class PatternInsight(BaseModel):
    pattern: EatingPattern
    occurrences: int
    sample_size: int
