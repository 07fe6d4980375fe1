"""
Domain mappers package.
Handles transformation between ORM records and schemas.
"""

from domain.mappers.profile_mapper import ProfileMapper, CheckInMapper
from domain.mappers.window_mapper import WindowMapper, MealMapper

__all__ = ["ProfileMapper", "CheckInMapper", "WindowMapper", "MealMapper"]
