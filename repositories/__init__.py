"""
Repositories package - Data access layer.
"""

from repositories.base import BaseRepository
from repositories.profile_repository import ProfileRepository, CheckInRepository
from repositories.window_repository import (
    WindowRepository,
    RedistributionEventRepository,
)
from repositories.meal_repository import MealRepository

__all__ = [
    "BaseRepository",
    "ProfileRepository",
    "CheckInRepository",
    "WindowRepository",
    "RedistributionEventRepository",
    "MealRepository",
]
