from __future__ import annotations

from datetime import date, datetime, time
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from domain.enums import ActivityLevel, GoalKind, Sex

CM_PER_INCH = 2.54
KG_PER_LB = 0.453592


# =============================================================================
# Goal variants
# =============================================================================


class WeightLossGoal(BaseModel):
    kind: Literal["weight_loss"] = "weight_loss"
    target_pounds: Optional[float] = Field(None, gt=0, description="Pounds to lose")
    timeline_weeks: Optional[int] = Field(None, gt=0, description="Weeks to reach the target")


class MuscleGainGoal(BaseModel):
    kind: Literal["muscle_gain"] = "muscle_gain"
    target_pounds: Optional[float] = Field(None, gt=0, description="Pounds to gain")
    timeline_weeks: Optional[int] = Field(None, gt=0, description="Weeks to reach the target")


class MaintainWeightGoal(BaseModel):
    kind: Literal["maintain_weight"] = "maintain_weight"


class PerformanceFocusGoal(BaseModel):
    kind: Literal["performance_focus"] = "performance_focus"


class BetterSleepGoal(BaseModel):
    kind: Literal["better_sleep"] = "better_sleep"


class OverallWellbeingGoal(BaseModel):
    kind: Literal["overall_wellbeing"] = "overall_wellbeing"


class AthleticPerformanceGoal(BaseModel):
    kind: Literal["athletic_performance"] = "athletic_performance"
    sport: str = Field(..., min_length=1, description="Sport the athlete trains for")


NutritionGoal = Annotated[
    Union[
        WeightLossGoal,
        MuscleGainGoal,
        MaintainWeightGoal,
        PerformanceFocusGoal,
        BetterSleepGoal,
        OverallWellbeingGoal,
        AthleticPerformanceGoal,
    ],
    Field(discriminator="kind"),
]


def goal_kind(goal) -> GoalKind:
    return GoalKind(goal.kind)


# =============================================================================
# Profile
# =============================================================================


class UserProfile(BaseModel):
    """Biometrics, goal and daily rhythm of one user"""

    user_id: UUID
    name: Optional[str] = None
    age: int = Field(..., ge=13, le=120)
    sex: Sex
    height_cm: float = Field(..., gt=0)
    weight_kg: float = Field(..., gt=0)
    activity_level: str = Field(
        default=ActivityLevel.SEDENTARY.value,
        description="One of the ActivityLevel values; unknown values fall back to sedentary",
    )
    primary_goal: NutritionGoal
    daily_calories: Optional[int] = Field(None, gt=0, description="Explicit calorie target override")
    daily_protein: Optional[int] = Field(None, ge=0)
    daily_carbs: Optional[int] = Field(None, ge=0)
    daily_fat: Optional[int] = Field(None, ge=0)
    typical_wake_time: Optional[time] = None
    typical_sleep_time: Optional[time] = None
    earliest_meal_hour: Optional[int] = Field(None, ge=0, le=23)
    latest_meal_hour: Optional[int] = Field(None, ge=0, le=23)
    onboarding_completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProfileUpsertRequest(BaseModel):
    """Create or replace a profile; imperial height/weight are converted on the way in"""

    name: Optional[str] = None
    age: int = Field(..., ge=13, le=120)
    sex: Sex
    height_cm: Optional[float] = Field(None, gt=0)
    height_inches: Optional[float] = Field(None, gt=0)
    weight_kg: Optional[float] = Field(None, gt=0)
    weight_lbs: Optional[float] = Field(None, gt=0)
    activity_level: str = ActivityLevel.SEDENTARY.value
    primary_goal: NutritionGoal
    daily_calories: Optional[int] = Field(None, gt=0)
    daily_protein: Optional[int] = Field(None, ge=0)
    daily_carbs: Optional[int] = Field(None, ge=0)
    daily_fat: Optional[int] = Field(None, ge=0)
    typical_wake_time: Optional[time] = None
    typical_sleep_time: Optional[time] = None
    earliest_meal_hour: Optional[int] = Field(None, ge=0, le=23)
    latest_meal_hour: Optional[int] = Field(None, ge=0, le=23)
    onboarding_completed_at: Optional[datetime] = None

    @model_validator(mode="after")
    def convert_imperial(self):
        if self.height_cm is None:
            if self.height_inches is None:
                raise ValueError("height_cm or height_inches is required")
            self.height_cm = round(self.height_inches * CM_PER_INCH, 1)
        if self.weight_kg is None:
            if self.weight_lbs is None:
                raise ValueError("weight_kg or weight_lbs is required")
            self.weight_kg = round(self.weight_lbs * KG_PER_LB, 1)
        return self

    def to_profile(self, user_id: UUID) -> UserProfile:
        data = self.model_dump(exclude={"height_inches", "weight_lbs"})
        return UserProfile(user_id=user_id, **data)


class NutritionTargets(BaseModel):
    """Daily calorie and macro totals derived from a profile"""

    daily_calories: int
    protein: int
    carbs: int
    fat: int
    bmr: float = Field(..., description="Basal metabolic rate, kcal/day")
    tdee: float = Field(..., description="Total daily energy expenditure, kcal/day")
    calorie_adjustment: float = Field(..., description="Goal surplus (+) or deficit (-)")


# =============================================================================
# Check-ins
# =============================================================================


class CheckInRequest(BaseModel):
    wake_time: datetime = Field(..., description="Actual wake time today")
    planned_bedtime: Optional[datetime] = Field(None, description="Planned bedtime tonight")


class MorningCheckIn(BaseModel):
    """Today's actual wake time and planned bedtime"""

    user_id: UUID
    day: date
    wake_time: datetime
    planned_bedtime: Optional[datetime] = None

    model_config = {"from_attributes": True}
