"""
Tests for the first-day adapter.

A 2000 kcal/day profile waking at 07:00 and sleeping at 23:00 completes
onboarding at different times of day; the plan must shrink step-wise and hand
over to tomorrow's plan late in the evening.
"""

import pytest

from domain.enums import WindowFlexibility, WindowPurpose
from domain.schemas.profile_schemas import NutritionTargets
from services.first_day_service import FirstDayService
from test_fixtures import at, make_profile


@pytest.fixture
def service() -> FirstDayService:
    return FirstDayService()


@pytest.fixture
def profile():
    return make_profile("emma", daily_calories=2000)


def plan_at(service, profile, hour):
    return service.plan_first_day(at(hour), profile, at(hour))


def test_morning_completion_gets_three_windows(service, profile):
    """
    Test onboarding finished at 09:00.

    Verifies:
    - three windows, today's plan shown
    - more than ten hours remain before the last-meal cutoff
    - calories are prorated below the daily target
    """
    plan = plan_at(service, profile, 9)

    assert plan.number_of_windows == 3
    assert plan.show_tomorrow_plan is False
    assert plan.remaining_hours > 10
    assert 200 <= plan.pro_rated_calories < 2000
    assert plan.window_names == ["Late Breakfast", "Lunch", "Dinner"]


def test_afternoon_completion(service, profile):
    """
    Test onboarding finished at 14:00.

    Verifies:
    - two or three windows
    - more than five hours remain
    """
    plan = plan_at(service, profile, 14)

    assert plan.number_of_windows in {2, 3}
    assert plan.remaining_hours > 5
    assert plan.show_tomorrow_plan is False


def test_evening_completion(service, profile):
    """
    Test onboarding finished at 19:00.

    Verifies:
    - at most one window and at most three hours left
    """
    plan = plan_at(service, profile, 19)

    assert plan.number_of_windows in {0, 1}
    assert plan.remaining_hours <= 3


def test_late_completion_shows_tomorrow_at_full_targets(service, profile):
    """
    Test onboarding finished at 21:00.

    Verifies:
    - no windows today, tomorrow's plan shown
    - tomorrow's calories are the full daily target, not prorated
    """
    plan = plan_at(service, profile, 21)

    assert plan.number_of_windows == 0
    assert plan.show_tomorrow_plan is True
    assert plan.pro_rated_calories == 2000
    assert plan.purposes == []


def test_window_count_never_grows_later_in_the_day(service, profile):
    counts = [plan_at(service, profile, hour).number_of_windows for hour in range(8, 23)]

    assert all(a >= b for a, b in zip(counts, counts[1:]))


def test_reference_time_is_the_later_of_completion_and_now(service, profile):
    """
    Test a plan requested some time after onboarding finished.

    Verifies:
    - remaining hours run from the current time, not the completion time
    """
    plan = service.plan_first_day(at(9), profile, at(15))

    assert plan.remaining_hours == pytest.approx(5.0)


def test_pro_rated_clamps():
    """
    Test the prorating helper.

    Verifies:
    - no remaining time gives zero
    - tiny remainders are raised to 200 kcal
    - nothing exceeds the daily target
    """
    assert FirstDayService.pro_rated(2000, 0, 16) == 0
    assert FirstDayService.pro_rated(2000, 1, 16) == 200
    assert FirstDayService.pro_rated(2000, 8, 16) == 1000
    assert FirstDayService.pro_rated(2000, 20, 16) == 2000


def test_build_windows_for_morning_plan(service, profile):
    """
    Test concrete windows for a 09:00 completion.

    Verifies:
    - the first window opens 30 minutes after completion
    - the last closes by the 20:00 last-meal cutoff
    - calories sum to the prorated amount
    """
    plan = plan_at(service, profile, 9)
    windows = service.build_windows(plan, profile, at(9))

    assert len(windows) == 3
    assert windows[0].start_time == at(9, 30)
    assert windows[-1].end_time <= at(20)
    assert sum(w.target_calories for w in windows) == plan.pro_rated_calories
    for a, b in zip(windows, windows[1:]):
        assert a.end_time <= b.start_time


def test_build_windows_afternoon_sleep_window_is_strict(service, profile):
    plan = plan_at(service, profile, 14)
    windows = service.build_windows(plan, profile, at(14))
    last = windows[-1]

    assert last.purpose == WindowPurpose.SLEEP_OPTIMIZATION
    assert last.flexibility == WindowFlexibility.STRICT
    assert all(w.start_time < w.end_time for w in windows)


def test_build_windows_empty_when_showing_tomorrow(service, profile):
    plan = plan_at(service, profile, 21)

    assert service.build_windows(plan, profile, at(21)) == []


def test_resolved_targets_are_used_as_given(service, profile):
    """
    Test passing targets resolved elsewhere.

    Verifies:
    - tomorrow's plan carries the given totals instead of the profile's
    """
    targets = NutritionTargets(
        daily_calories=2600, protein=160, carbs=300, fat=80, bmr=1500.0, tdee=2300.0,
        calorie_adjustment=300.0,
    )

    plan = service.plan_first_day(at(21), profile, at(21), targets=targets)

    assert plan.show_tomorrow_plan is True
    assert plan.pro_rated_calories == 2600
    assert plan.pro_rated_macros.protein == 160
