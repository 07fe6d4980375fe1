"""
Domain models package - SQLAlchemy ORM models.
"""

from domain.models.database import (
    Base,
    engine,
    SessionLocal,
    init_database,
    get_db_session,
)
from domain.models.profile import UserProfileRecord
from domain.models.window import MealWindowRecord, RedistributionEventRecord
from domain.models.meal import LoggedMealRecord, MorningCheckInRecord

__all__ = [
    # Database
    "Base",
    "engine",
    "SessionLocal",
    "init_database",
    "get_db_session",
    # Profile models
    "UserProfileRecord",
    # Window models
    "MealWindowRecord",
    "RedistributionEventRecord",
    # Meal models
    "LoggedMealRecord",
    "MorningCheckInRecord",
]
