"""Meal window routes"""

from datetime import date, datetime
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
import logging

from api.dependencies import get_now, get_scheduling_service
from domain.schemas.window_schemas import MealWindow, WindowDayResponse
from services.scheduling_service import SchedulingService

router = APIRouter(prefix="/windows", tags=["Windows"])
logger = logging.getLogger("mealsync.api.windows")


def _day_response(user_id: UUID, day: date, windows: List[MealWindow], normalized: bool = False):
    return WindowDayResponse(
        user_id=user_id,
        day=day,
        windows=windows,
        total_calories=sum(w.effective_calories for w in windows),
        normalized=normalized,
    )


@router.post("/{user_id}/{day}/generate", response_model=WindowDayResponse)
def generate_windows(
    user_id: UUID,
    day: date,
    replace: bool = Query(False, description="Discard an existing window set"),
    now: datetime = Depends(get_now),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """
    Generate the day's windows.
    An existing set is returned untouched (200) unless ``replace`` is set;
    a freshly generated set answers 201.
    """
    windows, created = service.generate_day(user_id, day, now, replace=replace)
    body = _day_response(user_id, day, windows)
    if created:
        return Response(
            content=body.model_dump_json(),
            status_code=status.HTTP_201_CREATED,
            media_type="application/json",
        )
    return body


@router.get("/{user_id}/{day}", response_model=WindowDayResponse)
def get_windows(
    user_id: UUID,
    day: date,
    now: datetime = Depends(get_now),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Stored windows for the day, corrected if they were planned a day ahead."""
    windows, normalized = service.load_windows(user_id, day, now)
    return _day_response(user_id, day, windows, normalized)


@router.post("/{user_id}/{day}/{window_id}/fasted", response_model=MealWindow)
def mark_fasted(
    user_id: UUID,
    day: date,
    window_id: UUID,
    fasted: bool = Query(True),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Mark a window as intentionally skipped (or clear the mark)."""
    return service.set_fasted(user_id, day, window_id, fasted)


@router.post("/{user_id}/{day}/{window_id}/reset", response_model=MealWindow)
def reset_window(
    user_id: UUID,
    day: date,
    window_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Drop the redistribution overlay and restore the planned targets."""
    return service.reset_window(user_id, day, window_id)
