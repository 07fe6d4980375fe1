"""
Meal window and redistribution history models.
"""

from sqlalchemy import (
    Column,
    Text,
    Integer,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class MealWindowRecord(Base):
    """One planned eating window; adjusted_* columns hold the redistribution overlay"""

    __tablename__ = "meal_window"

    window_id = Column(Uuid, primary_key=True)
    user_id = Column(
        Uuid, ForeignKey("user_profile.user_id", ondelete="CASCADE"), nullable=False
    )
    day_date = Column(Date, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    name = Column(Text, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    target_calories = Column(Integer, nullable=False)
    target_protein = Column(Integer, nullable=False)
    target_carbs = Column(Integer, nullable=False)
    target_fat = Column(Integer, nullable=False)
    purpose = Column(Text, nullable=False)
    flexibility = Column(Text, nullable=False)
    window_type = Column(Text, nullable=False)
    adjusted_calories = Column(Integer)
    adjusted_protein = Column(Integer)
    adjusted_carbs = Column(Integer)
    adjusted_fat = Column(Integer)
    redistribution_reason = Column(Text)
    is_marked_as_fasted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("UserProfileRecord", back_populates="windows")

    __table_args__ = (Index("ix_meal_window_user_day", "user_id", "day_date"),)


class RedistributionEventRecord(Base):
    """Accepted or rejected redistribution proposals, kept for pattern analysis"""

    __tablename__ = "redistribution_event"

    event_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid, ForeignKey("user_profile.user_id", ondelete="CASCADE"), nullable=False
    )
    day_date = Column(Date, nullable=False)
    trigger_kind = Column(Text, nullable=False)
    window_id = Column(Uuid)
    percent = Column(Integer)
    accepted = Column(Boolean, nullable=False)
    calories_affected = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
