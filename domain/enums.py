"""
Domain enums for MealSync application.
Contains all enumeration types used across the domain models.
"""

import enum


class GoalKind(str, enum.Enum):
    """Primary nutrition goal variants"""

    WEIGHT_LOSS = "weight_loss"
    MUSCLE_GAIN = "muscle_gain"
    MAINTAIN_WEIGHT = "maintain_weight"
    PERFORMANCE_FOCUS = "performance_focus"
    BETTER_SLEEP = "better_sleep"
    OVERALL_WELLBEING = "overall_wellbeing"
    ATHLETIC_PERFORMANCE = "athletic_performance"


class ActivityLevel(str, enum.Enum):
    """Physical activity levels"""

    SEDENTARY = "sedentary"
    LIGHTLY_ACTIVE = "lightly_active"
    MODERATELY_ACTIVE = "moderately_active"
    VERY_ACTIVE = "very_active"
    EXTREMELY_ACTIVE = "extremely_active"


class Sex(str, enum.Enum):
    """Biological sex used by the BMR formula"""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class WindowPurpose(str, enum.Enum):
    """Behavioral role of an eating window"""

    METABOLIC_BOOST = "metabolic_boost"
    SUSTAINED_ENERGY = "sustained_energy"
    RECOVERY = "recovery"
    PREWORKOUT = "preworkout"
    POSTWORKOUT = "postworkout"
    FOCUS_BOOST = "focus_boost"
    SLEEP_OPTIMIZATION = "sleep_optimization"


class WindowFlexibility(str, enum.Enum):
    """How far redistribution may move or resize a window"""

    STRICT = "strict"
    MODERATE = "moderate"
    FLEXIBLE = "flexible"


class WindowType(str, enum.Enum):
    """Kind of meal expected in a window"""

    REGULAR = "regular"
    SNACK = "snack"
    SHAKE = "shake"
    LIGHT = "light"


class TriggerKind(str, enum.Enum):
    """Events that can start a redistribution"""

    MISSED_WINDOW = "missed_window"
    OVERCONSUMPTION = "overconsumption"
    UNDERCONSUMPTION = "underconsumption"
    EARLY_CONSUMPTION = "early_consumption"
    LATE_CONSUMPTION = "late_consumption"
    LATE_CHECK_IN = "late_check_in"


class EatingPattern(str, enum.Enum):
    """Recurring deviations found in a user's trigger history"""

    CONSISTENT_OVEREATING = "consistent_overeating"
    CONSISTENT_UNDEREATING = "consistent_undereating"
    FREQUENT_MISSED_WINDOWS = "frequent_missed_windows"


class ImpactSeverity(str, enum.Enum):
    """Size of a redistribution proposal"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
