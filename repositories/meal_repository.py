"""
Meal Repository - Data access layer for logged meals
"""

from datetime import date, datetime, time, timedelta
from typing import List
from uuid import UUID
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import LoggedMealRecord


class MealRepository(BaseRepository[LoggedMealRecord]):
    """Repository for logged meal data access"""

    def __init__(self, db: Session):
        super().__init__(db, LoggedMealRecord)

    def get_between(self, user_id: UUID, start: datetime, end: datetime) -> List[LoggedMealRecord]:
        """Meals eaten in [start, end), oldest first"""
        return (
            self.db.query(LoggedMealRecord)
            .filter(
                LoggedMealRecord.user_id == user_id,
                LoggedMealRecord.eaten_at >= start,
                LoggedMealRecord.eaten_at < end,
            )
            .order_by(LoggedMealRecord.eaten_at)
            .all()
        )

    def get_for_day(self, user_id: UUID, day: date) -> List[LoggedMealRecord]:
        """Meals eaten on a calendar day"""
        start = datetime.combine(day, time.min)
        return self.get_between(user_id, start, start + timedelta(days=1))
