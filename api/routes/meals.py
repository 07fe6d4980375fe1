"""Meal logging routes"""

from datetime import date, datetime
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
import logging

from api.dependencies import get_now, get_scheduling_service
from domain.schemas.meal_schemas import LoggedMeal, LogMealRequest
from domain.schemas.redistribution_schemas import MealLoggedResponse
from services.scheduling_service import SchedulingService

router = APIRouter(prefix="/meals", tags=["Meals"])
logger = logging.getLogger("mealsync.api.meals")


@router.post("/{user_id}", response_model=MealLoggedResponse, status_code=status.HTTP_201_CREATED)
def log_meal(
    user_id: UUID,
    meal: LogMealRequest,
    now: datetime = Depends(get_now),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """
    Log a meal against the day's windows.
    The response carries a redistribution proposal when the meal deviates
    enough from its window; nothing is applied until it is committed.
    """
    return service.log_meal(user_id, meal, now)


@router.get("/{user_id}/{day}", response_model=List[LoggedMeal])
def get_meals(
    user_id: UUID,
    day: date,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Meals logged on a day."""
    return service.get_meals(user_id, day)
