from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from domain.enums import WindowPurpose
from domain.schemas.window_schemas import MacroTargets, MealWindow


class FirstDayPlan(BaseModel):
    """How much of the onboarding day is still plannable"""

    number_of_windows: int = Field(..., ge=0)
    show_tomorrow_plan: bool
    remaining_hours: float = Field(..., ge=0)
    pro_rated_calories: int = Field(..., ge=0)
    pro_rated_macros: MacroTargets
    purposes: List[WindowPurpose]
    window_names: List[str] = Field(default_factory=list)


class FirstDayRequest(BaseModel):
    completion_time: datetime = Field(..., description="When onboarding finished")
    current_time: Optional[datetime] = Field(None, description="Defaults to server time")


class FirstDayResponse(BaseModel):
    plan: FirstDayPlan
    windows: List[MealWindow] = Field(default_factory=list)
