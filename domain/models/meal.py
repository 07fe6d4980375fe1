"""
Logged meals and morning check-ins.
"""

from sqlalchemy import (
    Column,
    Text,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class LoggedMealRecord(Base):
    """A meal the user actually ate"""

    __tablename__ = "logged_meal"

    meal_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("user_profile.user_id", ondelete="CASCADE"), nullable=False
    )
    name = Column(Text, nullable=False)
    eaten_at = Column(DateTime, nullable=False, index=True)
    calories = Column(Integer, nullable=False)
    protein = Column(Integer, nullable=False, default=0)
    carbs = Column(Integer, nullable=False, default=0)
    fat = Column(Integer, nullable=False, default=0)
    window_id = Column(Uuid)  # no FK: window sets are replaced wholesale on regeneration
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("UserProfileRecord", back_populates="meals")


class MorningCheckInRecord(Base):
    """Actual wake time and planned bedtime for one day"""

    __tablename__ = "morning_check_in"

    check_in_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("user_profile.user_id", ondelete="CASCADE"), nullable=False
    )
    day = Column(Date, nullable=False)
    wake_time = Column(DateTime, nullable=False)
    planned_bedtime = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("UserProfileRecord", back_populates="check_ins")

    __table_args__ = (UniqueConstraint("user_id", "day", name="uq_check_in_user_day"),)
