"""Profile routes (body metrics, goal, schedule, morning check-ins)"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
import logging

from api.dependencies import get_scheduling_service
from domain.schemas.profile_schemas import (
    CheckInRequest,
    MorningCheckIn,
    NutritionTargets,
    ProfileUpsertRequest,
    UserProfile,
)
from services.scheduling_service import SchedulingService

router = APIRouter(prefix="/profiles", tags=["Profiles"])
logger = logging.getLogger("mealsync.api.profiles")


@router.get("/{user_id}", response_model=UserProfile)
def get_profile(user_id: UUID, service: SchedulingService = Depends(get_scheduling_service)):
    """Get a user's scheduling profile."""
    return service.get_profile(user_id)


@router.put("/{user_id}", response_model=UserProfile)
def upsert_profile(
    user_id: UUID,
    profile_data: ProfileUpsertRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """
    Create or replace a profile.
    Returns 201 with a Location header when the profile is new.
    """
    profile, created = service.upsert_profile(user_id, profile_data)
    if created:
        headers = {"Location": f"/profiles/{profile.user_id}"}
        return Response(
            content=profile.model_dump_json(),
            status_code=status.HTTP_201_CREATED,
            media_type="application/json",
            headers=headers,
        )
    return profile


@router.get("/{user_id}/targets", response_model=NutritionTargets)
def get_targets(user_id: UUID, service: SchedulingService = Depends(get_scheduling_service)):
    """Daily calorie and macro targets resolved from the profile."""
    return service.resolve_targets(user_id)


@router.put("/{user_id}/check-ins/{day}", response_model=MorningCheckIn)
def save_check_in(
    user_id: UUID,
    day: date,
    check_in: CheckInRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Record today's actual wake time and planned bedtime."""
    return service.save_check_in(user_id, day, check_in)
