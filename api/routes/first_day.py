"""First-day (onboarding) planning routes"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
import logging

from api.dependencies import get_scheduling_service
from domain.schemas.first_day_schemas import FirstDayRequest, FirstDayResponse
from services.scheduling_service import SchedulingService

router = APIRouter(prefix="/first-day", tags=["First Day"])
logger = logging.getLogger("mealsync.api.first_day")


@router.post("/{user_id}", response_model=FirstDayResponse)
def plan_first_day(
    user_id: UUID,
    request: FirstDayRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Plan the remainder of the onboarding day, or tomorrow when it is too late."""
    now = request.current_time or datetime.now()
    logger.info("first_day_requested user_id=%s completion=%s", user_id, request.completion_time)
    return service.plan_first_day(user_id, request.completion_time, now)
