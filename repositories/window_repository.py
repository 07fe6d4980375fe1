"""
Window Repository - Data access layer for meal windows and redistribution history
"""

from datetime import date
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import MealWindowRecord, RedistributionEventRecord


class WindowRepository(BaseRepository[MealWindowRecord]):
    """Repository for meal window data access"""

    def __init__(self, db: Session):
        super().__init__(db, MealWindowRecord)

    def get_for_day(self, user_id: UUID, day: date) -> List[MealWindowRecord]:
        """Get a user's windows for a day, ordered by start time"""
        return (
            self.db.query(MealWindowRecord)
            .filter(MealWindowRecord.user_id == user_id, MealWindowRecord.day_date == day)
            .order_by(MealWindowRecord.start_time, MealWindowRecord.position)
            .all()
        )

    def get_for_user(self, window_id: UUID, user_id: UUID) -> Optional[MealWindowRecord]:
        """Get a window by ID for a specific user"""
        return (
            self.db.query(MealWindowRecord)
            .filter(MealWindowRecord.window_id == window_id, MealWindowRecord.user_id == user_id)
            .first()
        )

    def delete_day(self, user_id: UUID, day: date) -> int:
        """Delete a user's windows for a day without committing; returns the row count"""
        return (
            self.db.query(MealWindowRecord)
            .filter(MealWindowRecord.user_id == user_id, MealWindowRecord.day_date == day)
            .delete(synchronize_session="fetch")
        )


class RedistributionEventRepository(BaseRepository[RedistributionEventRecord]):
    """Repository for accepted/rejected redistribution proposals"""

    def __init__(self, db: Session):
        super().__init__(db, RedistributionEventRecord)

    def recent_for_user(self, user_id: UUID, limit: int = 20) -> List[RedistributionEventRecord]:
        """Most recent events first"""
        return (
            self.db.query(RedistributionEventRecord)
            .filter(RedistributionEventRecord.user_id == user_id)
            .order_by(RedistributionEventRecord.created_at.desc())
            .limit(limit)
            .all()
        )
