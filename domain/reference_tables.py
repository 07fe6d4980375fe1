"""
Goal, activity and window-purpose reference tables.

Everything the scheduling services treat as configuration data lives here:
activity multipliers, per-goal macro ratios and calorie adjustments, the
goal -> window strategy table, purpose durations and the numeric policies of
the generator and the redistribution engine. The defaults can be replaced
wholesale by a JSON document (``REFERENCE_TABLES_PATH``) without touching
generation logic.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from app.config import settings
from app.exceptions import ServiceValidationError
from domain.enums import (
    ActivityLevel,
    GoalKind,
    WindowFlexibility,
    WindowPurpose,
)

logger = logging.getLogger("mealsync.reference_tables")

# Allowed share of calories per macro
PROTEIN_RANGE = (0.15, 0.50)
CARBS_RANGE = (0.15, 0.60)
FAT_RANGE = (0.15, 0.50)
RATIO_TOLERANCE = 0.01


class MacroRatio(BaseModel):
    """Share of calories coming from each macro"""

    protein: float = Field(..., description="Protein share of calories")
    carbs: float = Field(..., description="Carbohydrate share of calories")
    fat: float = Field(..., description="Fat share of calories")


class GoalStrategy(BaseModel):
    """Window layout for one goal: percentage split, purposes and span offsets"""

    name: str
    window_percentages: List[float]
    purpose_sequence: List[WindowPurpose]
    flexibility_sequence: List[WindowFlexibility]
    lead_offset_minutes: int = Field(
        default=30, ge=0, description="Minutes after waking before the first window may open"
    )
    trailing_buffer_minutes: int = Field(
        default=90, ge=0, description="Minutes before sleep when the last window must close"
    )
    purpose_macros: bool = Field(
        default=False,
        description="Weight each window's share of the daily grams by its purpose macro ratio",
    )

    @model_validator(mode="after")
    def check_shape(self):
        n = len(self.window_percentages)
        if n == 0:
            raise ValueError(f"strategy {self.name} has no windows")
        if len(self.purpose_sequence) != n or len(self.flexibility_sequence) != n:
            raise ValueError(
                f"strategy {self.name}: percentages, purposes and flexibilities must have equal length"
            )
        if any(p <= 0 for p in self.window_percentages):
            raise ValueError(f"strategy {self.name} has a non-positive window share")
        if abs(sum(self.window_percentages) - 1.0) > RATIO_TOLERANCE:
            raise ValueError(f"strategy {self.name} percentages must sum to 1.0")
        return self


class SchedulingPolicy(BaseModel):
    """Numeric knobs of the window generator"""

    full_span_hours: float = 6.0
    compressed_span_hours: float = 3.0
    compressed_window_count: int = 2
    min_viable_span_minutes: int = 45
    min_window_minutes: int = 30
    window_gap_minutes: int = 15
    catch_all_minutes: int = 60
    snack_share_below: float = 0.18


class RedistributionPolicy(BaseModel):
    """Numeric knobs of the redistribution engine"""

    min_window_calories: int = 200
    max_window_calories: int = 1000
    protein_preservation: float = 0.70
    bedtime_buffer_minutes: int = 180
    deviation_threshold: float = 0.25
    max_protein_per_window: int = 60
    max_carbs_per_window: int = 120
    max_fat_per_window: int = 50
    moderate_change_limit: float = 0.30
    min_redistribution_calories: int = 50
    min_weight: float = 0.1
    passes: int = 3
    purpose_modifiers: Dict[WindowPurpose, float] = Field(
        default_factory=lambda: {
            WindowPurpose.PREWORKOUT: 0.8,
            WindowPurpose.POSTWORKOUT: 0.8,
            WindowPurpose.SLEEP_OPTIMIZATION: 0.5,
            WindowPurpose.METABOLIC_BOOST: 1.2,
        }
    )
    flexibility_shares: Dict[WindowFlexibility, float] = Field(
        default_factory=lambda: {
            WindowFlexibility.FLEXIBLE: 1.5,
            WindowFlexibility.MODERATE: 1.0,
            WindowFlexibility.STRICT: 0.0,
        }
    )


def _default_strategies() -> Dict[str, GoalStrategy]:
    P = WindowPurpose
    F = WindowFlexibility
    return {
        "intermittent_fasting": GoalStrategy(
            name="intermittent_fasting",
            window_percentages=[0.40, 0.20, 0.40],
            purpose_sequence=[P.METABOLIC_BOOST, P.SUSTAINED_ENERGY, P.RECOVERY],
            flexibility_sequence=[F.MODERATE, F.FLEXIBLE, F.MODERATE],
            lead_offset_minutes=300,
            trailing_buffer_minutes=180,
        ),
        "frequent_feeding": GoalStrategy(
            name="frequent_feeding",
            window_percentages=[0.20, 0.15, 0.25, 0.15, 0.25],
            purpose_sequence=[
                P.METABOLIC_BOOST,
                P.PREWORKOUT,
                P.POSTWORKOUT,
                P.SUSTAINED_ENERGY,
                P.RECOVERY,
            ],
            flexibility_sequence=[F.MODERATE, F.STRICT, F.STRICT, F.FLEXIBLE, F.MODERATE],
            lead_offset_minutes=30,
            trailing_buffer_minutes=120,
        ),
        "performance_timed": GoalStrategy(
            name="performance_timed",
            window_percentages=[0.25, 0.20, 0.30, 0.25],
            purpose_sequence=[P.SUSTAINED_ENERGY, P.PREWORKOUT, P.POSTWORKOUT, P.RECOVERY],
            flexibility_sequence=[F.MODERATE, F.STRICT, F.STRICT, F.MODERATE],
            lead_offset_minutes=30,
            trailing_buffer_minutes=120,
            purpose_macros=True,
        ),
        "sleep_aligned": GoalStrategy(
            name="sleep_aligned",
            window_percentages=[0.30, 0.35, 0.15, 0.20],
            purpose_sequence=[
                P.METABOLIC_BOOST,
                P.SUSTAINED_ENERGY,
                P.FOCUS_BOOST,
                P.SLEEP_OPTIMIZATION,
            ],
            flexibility_sequence=[F.MODERATE, F.MODERATE, F.FLEXIBLE, F.STRICT],
            lead_offset_minutes=30,
            trailing_buffer_minutes=210,
        ),
        "balanced": GoalStrategy(
            name="balanced",
            window_percentages=[0.25, 0.35, 0.15, 0.25],
            purpose_sequence=[
                P.METABOLIC_BOOST,
                P.SUSTAINED_ENERGY,
                P.FOCUS_BOOST,
                P.RECOVERY,
            ],
            flexibility_sequence=[F.MODERATE, F.MODERATE, F.FLEXIBLE, F.MODERATE],
            lead_offset_minutes=30,
            trailing_buffer_minutes=90,
        ),
    }


class ReferenceTables(BaseModel):
    """All lookup tables consumed by the goal resolver, generator and redistribution engine"""

    activity_multipliers: Dict[ActivityLevel, float] = Field(
        default_factory=lambda: {
            ActivityLevel.SEDENTARY: 1.2,
            ActivityLevel.LIGHTLY_ACTIVE: 1.375,
            ActivityLevel.MODERATELY_ACTIVE: 1.55,
            ActivityLevel.VERY_ACTIVE: 1.725,
            ActivityLevel.EXTREMELY_ACTIVE: 1.9,
        }
    )
    fallback_activity_level: ActivityLevel = Field(
        default=ActivityLevel.SEDENTARY,
        description="Multiplier used when a profile carries an unknown activity level",
    )
    goal_macro_ratios: Dict[GoalKind, MacroRatio] = Field(
        default_factory=lambda: {
            GoalKind.WEIGHT_LOSS: MacroRatio(protein=0.35, carbs=0.30, fat=0.35),
            GoalKind.MUSCLE_GAIN: MacroRatio(protein=0.30, carbs=0.45, fat=0.25),
            GoalKind.PERFORMANCE_FOCUS: MacroRatio(protein=0.25, carbs=0.50, fat=0.25),
            GoalKind.ATHLETIC_PERFORMANCE: MacroRatio(protein=0.25, carbs=0.50, fat=0.25),
            GoalKind.BETTER_SLEEP: MacroRatio(protein=0.30, carbs=0.35, fat=0.35),
            GoalKind.OVERALL_WELLBEING: MacroRatio(protein=0.30, carbs=0.40, fat=0.30),
            GoalKind.MAINTAIN_WEIGHT: MacroRatio(protein=0.30, carbs=0.40, fat=0.30),
        }
    )
    goal_calorie_adjustments: Dict[GoalKind, int] = Field(
        default_factory=lambda: {
            GoalKind.WEIGHT_LOSS: -500,
            GoalKind.MUSCLE_GAIN: 250,
            GoalKind.PERFORMANCE_FOCUS: 100,
            GoalKind.ATHLETIC_PERFORMANCE: 100,
            GoalKind.BETTER_SLEEP: 0,
            GoalKind.OVERALL_WELLBEING: 0,
            GoalKind.MAINTAIN_WEIGHT: 0,
        }
    )
    max_weekly_loss_lbs: float = 2.0
    max_weekly_gain_lbs: float = 1.0
    goal_strategies: Dict[GoalKind, str] = Field(
        default_factory=lambda: {
            GoalKind.WEIGHT_LOSS: "intermittent_fasting",
            GoalKind.MUSCLE_GAIN: "frequent_feeding",
            GoalKind.PERFORMANCE_FOCUS: "performance_timed",
            GoalKind.ATHLETIC_PERFORMANCE: "performance_timed",
            GoalKind.BETTER_SLEEP: "sleep_aligned",
            GoalKind.OVERALL_WELLBEING: "balanced",
            GoalKind.MAINTAIN_WEIGHT: "balanced",
        }
    )
    strategies: Dict[str, GoalStrategy] = Field(default_factory=_default_strategies)
    purpose_durations: Dict[WindowPurpose, int] = Field(
        default_factory=lambda: {
            WindowPurpose.SUSTAINED_ENERGY: 120,
            WindowPurpose.RECOVERY: 120,
            WindowPurpose.METABOLIC_BOOST: 105,
            WindowPurpose.SLEEP_OPTIMIZATION: 105,
            WindowPurpose.FOCUS_BOOST: 60,
            WindowPurpose.PREWORKOUT: 60,
            WindowPurpose.POSTWORKOUT: 60,
        }
    )
    purpose_macro_ratios: Dict[WindowPurpose, MacroRatio] = Field(
        default_factory=lambda: {
            WindowPurpose.PREWORKOUT: MacroRatio(protein=0.20, carbs=0.60, fat=0.20),
            WindowPurpose.POSTWORKOUT: MacroRatio(protein=0.40, carbs=0.45, fat=0.15),
            WindowPurpose.METABOLIC_BOOST: MacroRatio(protein=0.30, carbs=0.40, fat=0.30),
            WindowPurpose.SUSTAINED_ENERGY: MacroRatio(protein=0.25, carbs=0.45, fat=0.30),
            WindowPurpose.SLEEP_OPTIMIZATION: MacroRatio(protein=0.30, carbs=0.25, fat=0.45),
            WindowPurpose.FOCUS_BOOST: MacroRatio(protein=0.30, carbs=0.40, fat=0.30),
            WindowPurpose.RECOVERY: MacroRatio(protein=0.35, carbs=0.40, fat=0.25),
        }
    )
    scheduling: SchedulingPolicy = Field(default_factory=SchedulingPolicy)
    redistribution: RedistributionPolicy = Field(default_factory=RedistributionPolicy)

    def strategy_for(self, goal: GoalKind) -> GoalStrategy:
        return self.strategies[self.goal_strategies[goal]]

    def duration_for(self, purpose: WindowPurpose) -> int:
        return self.purpose_durations.get(purpose, 60)

    def validate_tables(self) -> "ReferenceTables":
        """
        Check cross-table consistency.

        Raises:
            ServiceValidationError: if a goal has no strategy or ratio row, a
                strategy name is unknown, or a macro ratio is out of range.
        """
        for goal in GoalKind:
            if goal not in self.goal_strategies:
                raise ServiceValidationError(
                    f"No window strategy configured for goal {goal.value}",
                    code="REFERENCE_TABLES",
                )
            if self.goal_strategies[goal] not in self.strategies:
                raise ServiceValidationError(
                    f"Goal {goal.value} points at unknown strategy {self.goal_strategies[goal]}",
                    code="REFERENCE_TABLES",
                )
            if goal not in self.goal_calorie_adjustments:
                raise ServiceValidationError(
                    f"No calorie adjustment configured for goal {goal.value}",
                    code="REFERENCE_TABLES",
                )
            if goal not in self.goal_macro_ratios:
                raise ServiceValidationError(
                    f"No macro ratio configured for goal {goal.value}",
                    code="REFERENCE_TABLES",
                )
            validate_macro_ratio(self.goal_macro_ratios[goal], label=goal.value)
        for purpose, ratio in self.purpose_macro_ratios.items():
            validate_macro_ratio(ratio, label=purpose.value)
        return self


def validate_macro_ratio(ratio: MacroRatio, label: str = "ratio") -> None:
    """Reject ratio sets that do not sum to one or fall outside sane per-macro bounds."""
    values = {"protein": ratio.protein, "carbs": ratio.carbs, "fat": ratio.fat}
    total = sum(values.values())
    if abs(total - 1.0) > RATIO_TOLERANCE:
        raise ServiceValidationError(
            f"Macro ratio {label} sums to {total:.3f}, expected 1.0",
            details=values,
            code="MACRO_RATIO",
        )
    if any(v < 0 for v in values.values()):
        raise ServiceValidationError(
            f"Macro ratio {label} has a negative share", details=values, code="MACRO_RATIO"
        )
    for name, (low, high) in (
        ("protein", PROTEIN_RANGE),
        ("carbs", CARBS_RANGE),
        ("fat", FAT_RANGE),
    ):
        if not low <= values[name] <= high:
            raise ServiceValidationError(
                f"Macro ratio {label}: {name} share {values[name]:.2f} outside {low:.2f}-{high:.2f}",
                details=values,
                code="MACRO_RATIO",
            )


def load_reference_tables(path: Optional[str] = None) -> ReferenceTables:
    """Build tables from defaults, or from a JSON document when a path is given."""
    if not path:
        return ReferenceTables().validate_tables()

    source = Path(path)
    try:
        tables = ReferenceTables.model_validate_json(source.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ServiceValidationError(
            f"Reference tables file {path} does not exist", code="REFERENCE_TABLES"
        )
    except ValidationError as e:
        raise ServiceValidationError(
            f"Reference tables file {path} is invalid",
            details={"errors": e.errors(include_url=False)},
            code="REFERENCE_TABLES",
        )
    logger.info("Loaded reference tables from %s", path)
    return tables.validate_tables()


@lru_cache(maxsize=1)
def get_reference_tables() -> ReferenceTables:
    """Process-wide tables, honoring ``settings.reference_tables_path``."""
    return load_reference_tables(settings.reference_tables_path)
