"""
Profile Repository - Data access layer for user profiles and check-ins
"""

from datetime import date
from typing import Optional, Tuple
from uuid import UUID
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import UserProfileRecord, MorningCheckInRecord


class ProfileRepository(BaseRepository[UserProfileRecord]):
    """Repository for user profile data access"""

    def __init__(self, db: Session):
        super().__init__(db, UserProfileRecord)

    def get_or_new(self, user_id: UUID) -> Tuple[UserProfileRecord, bool]:
        """Existing record, or an unsaved one; the flag is True when new"""
        record = self.get_by_id(user_id)
        if record is not None:
            return record, False
        return UserProfileRecord(user_id=user_id), True


class CheckInRepository(BaseRepository[MorningCheckInRecord]):
    """Repository for morning check-in data access"""

    def __init__(self, db: Session):
        super().__init__(db, MorningCheckInRecord)

    def get_for_day(self, user_id: UUID, day: date) -> Optional[MorningCheckInRecord]:
        """Get the check-in a user submitted for a day"""
        return (
            self.db.query(MorningCheckInRecord)
            .filter(MorningCheckInRecord.user_id == user_id, MorningCheckInRecord.day == day)
            .first()
        )
