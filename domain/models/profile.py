"""
User profile model.
"""

from sqlalchemy import Column, Text, Integer, Float, Time, DateTime, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from domain.models.database import Base


class UserProfileRecord(Base):
    """Biometrics, goal and daily rhythm of a user"""

    __tablename__ = "user_profile"

    user_id = Column(Uuid, primary_key=True)
    name = Column(Text)
    age = Column(Integer, nullable=False)
    sex = Column(Text, nullable=False)
    height_cm = Column(Float, nullable=False)
    weight_kg = Column(Float, nullable=False)
    activity_level = Column(Text, nullable=False)
    primary_goal = Column(JSON, nullable=False)  # tagged NutritionGoal payload
    daily_calories = Column(Integer)
    daily_protein = Column(Integer)
    daily_carbs = Column(Integer)
    daily_fat = Column(Integer)
    typical_wake_time = Column(Time)
    typical_sleep_time = Column(Time)
    earliest_meal_hour = Column(Integer)
    latest_meal_hour = Column(Integer)
    onboarding_completed_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    windows = relationship(
        "MealWindowRecord", back_populates="user", cascade="all, delete-orphan"
    )
    meals = relationship(
        "LoggedMealRecord", back_populates="user", cascade="all, delete-orphan"
    )
    check_ins = relationship(
        "MorningCheckInRecord", back_populates="user", cascade="all, delete-orphan"
    )
