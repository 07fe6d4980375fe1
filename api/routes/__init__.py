"""API routes package"""

from . import health, profiles, windows, first_day, meals, redistribution

__all__ = ["health", "profiles", "windows", "first_day", "meals", "redistribution"]
