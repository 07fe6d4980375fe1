"""
Profile domain mappers.
Handles transformation between ORM records and schemas for profile and check-in entities.
"""

from domain.enums import Sex
from domain.models import MorningCheckInRecord, UserProfileRecord
from domain.schemas.profile_schemas import MorningCheckIn, UserProfile


class ProfileMapper:
    """Mapper for profile transformations."""

    @staticmethod
    def to_schema(record: UserProfileRecord) -> UserProfile:
        """
        Convert UserProfileRecord ORM model to UserProfile.

        The JSON goal column is validated back into the tagged goal variant.
        """
        return UserProfile(
            user_id=record.user_id,
            name=record.name,
            age=record.age,
            sex=Sex(record.sex),
            height_cm=record.height_cm,
            weight_kg=record.weight_kg,
            activity_level=record.activity_level,
            primary_goal=record.primary_goal,
            daily_calories=record.daily_calories,
            daily_protein=record.daily_protein,
            daily_carbs=record.daily_carbs,
            daily_fat=record.daily_fat,
            typical_wake_time=record.typical_wake_time,
            typical_sleep_time=record.typical_sleep_time,
            earliest_meal_hour=record.earliest_meal_hour,
            latest_meal_hour=record.latest_meal_hour,
            onboarding_completed_at=record.onboarding_completed_at,
        )

    @staticmethod
    def apply_to_record(profile: UserProfile, record: UserProfileRecord) -> UserProfileRecord:
        record.name = profile.name
        record.age = profile.age
        record.sex = profile.sex.value
        record.height_cm = profile.height_cm
        record.weight_kg = profile.weight_kg
        record.activity_level = profile.activity_level
        record.primary_goal = profile.primary_goal.model_dump(mode="json")
        record.daily_calories = profile.daily_calories
        record.daily_protein = profile.daily_protein
        record.daily_carbs = profile.daily_carbs
        record.daily_fat = profile.daily_fat
        record.typical_wake_time = profile.typical_wake_time
        record.typical_sleep_time = profile.typical_sleep_time
        record.earliest_meal_hour = profile.earliest_meal_hour
        record.latest_meal_hour = profile.latest_meal_hour
        record.onboarding_completed_at = profile.onboarding_completed_at
        return record


class CheckInMapper:
    """Mapper for morning check-ins."""

    @staticmethod
    def to_schema(record: MorningCheckInRecord) -> MorningCheckIn:
        return MorningCheckIn(
            user_id=record.user_id,
            day=record.day,
            wake_time=record.wake_time,
            planned_bedtime=record.planned_bedtime,
        )
