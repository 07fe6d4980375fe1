"""Services package - Business logic layer"""

from services.goal_service import GoalService
from services.window_service import WindowService
from services.first_day_service import FirstDayService
from services.redistribution_service import RedistributionService
from services.trigger_service import TriggerService
from services.scheduling_service import SchedulingService, DayLockRegistry, day_locks

# Note: day_boundary contains utility functions, not a class

__all__ = [
    "GoalService",
    "WindowService",
    "FirstDayService",
    "RedistributionService",
    "TriggerService",
    "SchedulingService",
    "DayLockRegistry",
    "day_locks",
]
