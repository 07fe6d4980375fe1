"""
Tests for the goal resolver: BMR, activity multipliers, goal adjustments,
overrides and the calorie floor.
"""

import logging

import pytest

from domain.enums import Sex
from domain.reference_tables import get_reference_tables
from services.goal_service import GoalService, macro_grams
from test_fixtures import make_profile


def test_bmr_mifflin_st_jeor_by_sex():
    """
    Test the BMR equation for each sex.

    Verifies:
    - male adds 5, female subtracts 161
    - "other" is the mean of both
    """
    male = GoalService.bmr(80, 180, 30, Sex.MALE)
    female = GoalService.bmr(80, 180, 30, Sex.FEMALE)
    other = GoalService.bmr(80, 180, 30, Sex.OTHER)

    assert male == pytest.approx(1780.0)
    assert female == pytest.approx(1614.0)
    assert other == pytest.approx((male + female) / 2)


def test_resolve_targets_weight_loss_persona():
    """
    Test Sarah's targets: 1 lb/week loss on a moderately active TDEE.

    Verifies:
    - bmr and tdee are reported unrounded to one decimal
    - the weekly rate becomes a 500 kcal deficit
    - macros follow the weight-loss ratio
    """
    targets = GoalService.resolve_targets(make_profile("sarah"))

    assert targets.bmr == pytest.approx(1420.2, abs=0.1)
    assert targets.tdee == pytest.approx(2201.4, abs=0.1)
    assert targets.calorie_adjustment == pytest.approx(-500.0)
    assert targets.daily_calories == 1701
    assert targets.protein == 149
    assert targets.carbs == 128
    assert targets.fat == 66


def test_resolve_targets_muscle_gain_surplus():
    """
    Test Michael's targets: half a pound a week of gain.

    Verifies:
    - surplus is 0.5 * 3500 / 7 = 250 kcal
    """
    targets = GoalService.resolve_targets(make_profile("michael"))

    assert targets.calorie_adjustment == pytest.approx(250.0)
    assert targets.daily_calories == 3312


def test_weekly_loss_rate_is_capped():
    """
    Test an aggressive timeline.

    Verifies:
    - 30 lbs in 5 weeks is capped at 2 lbs/week (-1000 kcal/day)
    """
    tables = get_reference_tables()
    profile = make_profile(
        "sarah", primary_goal={"kind": "weight_loss", "target_pounds": 30, "timeline_weeks": 5}
    )

    assert GoalService.calorie_adjustment(profile.primary_goal, tables) == pytest.approx(-1000.0)


def test_goal_without_timeline_uses_table_default():
    """
    Test goals that carry no rate.

    Verifies:
    - weight loss without a timeline uses the table deficit
    - performance goals get a small surplus
    """
    tables = get_reference_tables()
    loss = make_profile("sarah", primary_goal={"kind": "weight_loss"})
    athlete = make_profile(
        "michael", primary_goal={"kind": "athletic_performance", "sport": "rowing"}
    )

    assert GoalService.calorie_adjustment(loss.primary_goal, tables) == -500
    assert GoalService.calorie_adjustment(athlete.primary_goal, tables) == 100


def test_calorie_floor_applies(caplog):
    """
    Test a small, older, sedentary profile on a deficit.

    Verifies:
    - the computed target below 1200 kcal is raised to the floor
    - a warning is logged
    """
    profile = make_profile(
        "emma",
        age=70,
        height_cm=150,
        weight_kg=45,
        activity_level="sedentary",
        primary_goal={"kind": "weight_loss"},
    )

    with caplog.at_level(logging.WARNING, logger="mealsync.goals"):
        targets = GoalService.resolve_targets(profile)

    assert targets.daily_calories == 1200
    assert "below floor" in caplog.text


def test_explicit_overrides_win():
    """
    Test explicit daily values on the profile.

    Verifies:
    - daily_calories replaces the computed value
    - daily_protein replaces the computed grams; other macros follow the ratio
    """
    profile = make_profile("sarah", daily_calories=2000, daily_protein=150)
    targets = GoalService.resolve_targets(profile)

    assert targets.daily_calories == 2000
    assert targets.protein == 150
    assert targets.carbs == 150
    assert targets.fat == 78


def test_unknown_activity_level_falls_back(caplog):
    """
    Test an activity level not in the tables.

    Verifies:
    - the sedentary multiplier is used
    - a warning names the unknown value
    """
    tables = get_reference_tables()

    with caplog.at_level(logging.WARNING, logger="mealsync.goals"):
        multiplier = GoalService.activity_multiplier("couch_potato", tables)

    assert multiplier == pytest.approx(1.2)
    assert "couch_potato" in caplog.text


def test_macro_grams_unrounded():
    """
    Test the gram conversion helper.

    Verifies:
    - 4/4/9 kcal per gram, no rounding
    """
    ratio = get_reference_tables().goal_macro_ratios["maintain_weight"]
    protein, carbs, fat = macro_grams(1000, ratio)

    assert protein == pytest.approx(75.0)
    assert carbs == pytest.approx(100.0)
    assert fat == pytest.approx(33.333, abs=0.001)
