"""
Window and meal domain mappers.
Handles transformation between ORM records and schemas for window-related entities.
"""

from typing import Optional
from uuid import UUID

from domain.enums import WindowFlexibility, WindowPurpose, WindowType
from domain.models import LoggedMealRecord, MealWindowRecord
from domain.schemas.meal_schemas import LoggedMeal
from domain.schemas.window_schemas import MacroTargets, MealWindow


class WindowMapper:
    """Mapper for window transformations."""

    @staticmethod
    def to_schema(record: MealWindowRecord) -> MealWindow:
        """
        Convert MealWindowRecord ORM model to MealWindow.

        The adjusted_* columns become the overlay only when the calorie
        column is set; macros without calories are treated as no overlay.
        """
        adjusted_macros: Optional[MacroTargets] = None
        if record.adjusted_calories is not None:
            adjusted_macros = MacroTargets(
                protein=record.adjusted_protein or 0,
                carbs=record.adjusted_carbs or 0,
                fat=record.adjusted_fat or 0,
            )
        return MealWindow(
            id=record.window_id,
            name=record.name,
            start_time=record.start_time,
            end_time=record.end_time,
            day_date=record.day_date,
            target_calories=record.target_calories,
            target_macros=MacroTargets(
                protein=record.target_protein,
                carbs=record.target_carbs,
                fat=record.target_fat,
            ),
            purpose=WindowPurpose(record.purpose),
            flexibility=WindowFlexibility(record.flexibility),
            type=WindowType(record.window_type),
            adjusted_calories=record.adjusted_calories,
            adjusted_macros=adjusted_macros,
            redistribution_reason=record.redistribution_reason,
            is_marked_as_fasted=bool(record.is_marked_as_fasted),
        )

    @staticmethod
    def apply_to_record(window: MealWindow, record: MealWindowRecord) -> MealWindowRecord:
        """Copy every mutable field of ``window`` onto an existing record."""
        record.name = window.name
        record.start_time = window.start_time
        record.end_time = window.end_time
        record.day_date = window.day_date
        record.target_calories = window.target_calories
        record.target_protein = window.target_macros.protein
        record.target_carbs = window.target_macros.carbs
        record.target_fat = window.target_macros.fat
        record.purpose = window.purpose.value
        record.flexibility = window.flexibility.value
        record.window_type = window.type.value
        record.adjusted_calories = window.adjusted_calories
        overlay = window.adjusted_macros
        record.adjusted_protein = overlay.protein if overlay else None
        record.adjusted_carbs = overlay.carbs if overlay else None
        record.adjusted_fat = overlay.fat if overlay else None
        record.redistribution_reason = window.redistribution_reason
        record.is_marked_as_fasted = window.is_marked_as_fasted
        return record

    @staticmethod
    def to_record(window: MealWindow, user_id: UUID, position: int) -> MealWindowRecord:
        record = MealWindowRecord(window_id=window.id, user_id=user_id, position=position)
        return WindowMapper.apply_to_record(window, record)


class MealMapper:
    """Mapper for logged meals."""

    @staticmethod
    def to_schema(record: LoggedMealRecord) -> LoggedMeal:
        return LoggedMeal(
            id=record.meal_id,
            user_id=record.user_id,
            name=record.name,
            timestamp=record.eaten_at,
            calories=record.calories,
            protein=record.protein,
            carbs=record.carbs,
            fat=record.fat,
            window_id=record.window_id,
        )
