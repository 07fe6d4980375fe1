from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class LogMealRequest(BaseModel):
    """Schema for logging a consumed meal"""

    name: str = Field(..., min_length=1, max_length=200)
    timestamp: datetime = Field(..., description="When the meal was eaten")
    calories: int = Field(..., ge=0)
    protein: int = Field(0, ge=0)
    carbs: int = Field(0, ge=0)
    fat: int = Field(0, ge=0)
    window_id: Optional[UUID] = Field(
        None, description="Window the meal belongs to; matched by time when omitted"
    )


class LoggedMeal(BaseModel):
    """A meal the user actually ate"""

    id: UUID
    user_id: UUID
    name: str
    timestamp: datetime
    calories: int
    protein: int = 0
    carbs: int = 0
    fat: int = 0
    window_id: Optional[UUID] = None

    model_config = {"from_attributes": True}
