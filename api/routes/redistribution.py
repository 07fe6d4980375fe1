"""Redistribution proposal and commit routes"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
import logging

from api.dependencies import get_now, get_scheduling_service
from domain.schemas.redistribution_schemas import (
    CommitRequest,
    PatternInsight,
    ProposeRequest,
    RedistributionResult,
)
from domain.schemas.window_schemas import MealWindow, WindowDayResponse
from services.scheduling_service import SchedulingService

router = APIRouter(prefix="/redistribution", tags=["Redistribution"])
logger = logging.getLogger("mealsync.api.redistribution")


@router.post("/{user_id}/{day}/propose", response_model=Optional[RedistributionResult])
def propose(
    user_id: UUID,
    day: date,
    request: ProposeRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """
    Compute an advisory proposal for a trigger.
    Answers 204 when nothing needs to move.
    """
    now = request.now or datetime.now()
    result = service.propose_redistribution(user_id, day, request.trigger, now, request.bedtime)
    if result is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return result


@router.post("/{user_id}/{day}/commit", response_model=WindowDayResponse)
def commit(
    user_id: UUID,
    day: date,
    request: CommitRequest,
    accept: bool = Query(True, description="False records a declined proposal"),
    now: datetime = Depends(get_now),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Apply an accepted proposal; a declined one is only recorded."""
    if not accept:
        service.reject_redistribution(user_id, day, request.proposal)
        windows, _ = service.load_windows(user_id, day, now)
    else:
        windows = service.commit_redistribution(user_id, day, request.proposal)
    return WindowDayResponse(
        user_id=user_id,
        day=day,
        windows=windows,
        total_calories=sum(w.effective_calories for w in windows),
    )


@router.get("/{user_id}/{day}/missed", response_model=List[MealWindow])
def missed_windows(
    user_id: UUID,
    day: date,
    now: datetime = Depends(get_now),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Closed windows with nothing logged and not marked fasted."""
    return service.missed_windows(user_id, day, now)


@router.get("/{user_id}/pattern", response_model=Optional[PatternInsight])
def eating_pattern(user_id: UUID, service: SchedulingService = Depends(get_scheduling_service)):
    """Recurring deviation across the user's recent redistributions, if any."""
    return service.eating_pattern(user_id)
