"""
Integration tests for the scheduling coordinator with a real (in-memory
SQLite) database session.

Covers:
- profile upsert and check-ins
- generate-if-empty and replace semantics
- wrong-day correction on load, persisted once
- meal logging with a redistribution proposal, commit, reject and reset
- first-day planning for today and for tomorrow
"""

import gc
import logging
import uuid
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from app.exceptions import ConflictError, NotFoundError
from domain.enums import TriggerKind, WindowFlexibility
from domain.mappers import WindowMapper
from domain.schemas.meal_schemas import LogMealRequest
from domain.schemas.profile_schemas import CheckInRequest, ProfileUpsertRequest
from domain.schemas.redistribution_schemas import RedistributionTrigger
from services.scheduling_service import DayLockRegistry, SchedulingService
from test_constants import TEST_DAY
from test_fixtures import at, db_session, make_window, profile_payload


def create_user(service: SchedulingService, profile_type: str = "emma", **overrides):
    user_id = uuid.uuid4()
    body = ProfileUpsertRequest(**profile_payload(profile_type, **overrides))
    service.upsert_profile(user_id, body)
    return user_id


def test_upsert_profile_create_then_update(db_session: Session):
    """
    Test creating and updating a profile.

    Verifies:
    - first upsert reports created
    - second upsert updates in place
    - the goal round-trips through the JSON column
    """
    service = SchedulingService(db_session)
    user_id = uuid.uuid4()

    profile, created = service.upsert_profile(
        user_id, ProfileUpsertRequest(**profile_payload("sarah"))
    )
    assert created is True
    assert profile.primary_goal.kind == "weight_loss"
    assert profile.primary_goal.target_pounds == 15

    profile, created = service.upsert_profile(
        user_id, ProfileUpsertRequest(**profile_payload("sarah", weight_kg=70.0))
    )
    assert created is False
    assert service.get_profile(user_id).weight_kg == 70.0


def test_imperial_profile_is_converted(db_session: Session):
    service = SchedulingService(db_session)
    payload = profile_payload("michael")
    payload.pop("height_cm")
    payload.pop("weight_kg")
    payload.update(height_inches=70, weight_lbs=180)

    profile, _ = service.upsert_profile(uuid.uuid4(), ProfileUpsertRequest(**payload))

    assert profile.height_cm == pytest.approx(177.8)
    assert profile.weight_kg == pytest.approx(81.6)


def test_unknown_profile_raises(db_session: Session):
    with pytest.raises(NotFoundError):
        SchedulingService(db_session).get_profile(uuid.uuid4())


def test_generate_only_when_empty(db_session: Session):
    """
    Test repeated generation for the same day.

    Verifies:
    - the first call creates and stores the windows
    - a second call returns the stored set without regenerating
    - replace=True regenerates
    """
    service = SchedulingService(db_session)
    user_id = create_user(service, daily_calories=2000)

    windows, created = service.generate_day(user_id, TEST_DAY, at(6))
    assert created is True
    assert sum(w.target_calories for w in windows) == 2000

    again, created = service.generate_day(user_id, TEST_DAY, at(6))
    assert created is False
    assert [w.id for w in again] == [w.id for w in windows]

    _, created = service.generate_day(user_id, TEST_DAY, at(6), replace=True)
    assert created is True
    assert len(service.load_windows(user_id, TEST_DAY, at(6))[0]) == len(windows)


def test_check_in_shapes_generated_day(db_session: Session):
    service = SchedulingService(db_session)
    user_id = create_user(service, daily_calories=2000)
    service.save_check_in(
        user_id, TEST_DAY, CheckInRequest(wake_time=at(9), planned_bedtime=at(23, 30))
    )

    windows, _ = service.generate_day(user_id, TEST_DAY, at(9))

    assert windows[0].start_time == at(9, 30)
    assert service.get_check_in(user_id, TEST_DAY).wake_time == at(9)


def test_wrong_day_set_is_corrected_on_load(db_session: Session, caplog):
    """
    Test a stored set whose times belong to the following day.

    Verifies:
    - load shifts it back 24 hours and reports the correction
    - a warning is logged
    - the correction is persisted, so the next load changes nothing
    """
    service = SchedulingService(db_session)
    user_id = create_user(service)
    tomorrow = TEST_DAY + timedelta(days=1)
    stored = [
        make_window("Breakfast", at(8, day=tomorrow), at(9, 30, day=tomorrow), day=TEST_DAY),
        make_window("Lunch", at(12, day=tomorrow), at(13, 30, day=tomorrow), day=TEST_DAY),
    ]
    for position, window in enumerate(stored):
        db_session.add(WindowMapper.to_record(window, user_id, position))
    db_session.commit()

    with caplog.at_level(logging.WARNING, logger="mealsync.scheduling"):
        windows, shifted = service.load_windows(user_id, TEST_DAY, at(7))

    assert shifted is True
    assert windows[0].start_time == at(8)
    assert windows[0].day_date == TEST_DAY
    assert "shifted back 24h" in caplog.text

    windows_again, shifted_again = service.load_windows(user_id, TEST_DAY, at(7))
    assert shifted_again is False
    assert windows_again == windows


def test_future_day_is_not_normalized(db_session: Session):
    """
    Test generating tomorrow's plan the evening before.

    Verifies:
    - a set requested for a future date keeps that date's times
    """
    service = SchedulingService(db_session)
    user_id = create_user(service, "sarah")
    tomorrow = TEST_DAY + timedelta(days=1)

    windows, _ = service.generate_day(user_id, tomorrow, at(17))

    assert all(w.start_time.date() == tomorrow for w in windows)


def test_log_meal_commit_and_reset(db_session: Session):
    """
    Test the full overconsumption flow.

    Verifies:
    - logging a large meal matches it to its window and proposes a reduction
    - the proposal is not applied until committed
    - commit stores the overlay and records an accepted event
    - reset restores the planned targets
    """
    service = SchedulingService(db_session)
    user_id = create_user(service, daily_calories=2000)
    windows, _ = service.generate_day(user_id, TEST_DAY, at(6))
    first = windows[0]

    response = service.log_meal(
        user_id,
        LogMealRequest(
            name="pizza dinner",
            timestamp=first.start_time + timedelta(minutes=20),
            calories=first.target_calories * 2,
        ),
        first.start_time + timedelta(minutes=30),
    )

    assert response.meal.window_id == first.id
    assert response.trigger.kind == TriggerKind.OVERCONSUMPTION
    assert response.proposal is not None
    stored, _ = service.load_windows(user_id, TEST_DAY, at(6))
    assert not any(w.is_adjusted for w in stored)

    committed = service.commit_redistribution(user_id, TEST_DAY, response.proposal)
    adjusted = [w for w in committed if w.is_adjusted]
    assert adjusted
    assert all(w.effective_calories < w.target_calories for w in adjusted)
    assert service.events.recent_for_user(user_id)[0].accepted is True

    restored = service.reset_window(user_id, TEST_DAY, adjusted[0].id)
    assert restored.is_adjusted is False
    assert restored.effective_calories == adjusted[0].target_calories


def test_commit_rejects_unknown_and_strict_windows(db_session: Session):
    """
    Test commits that no longer fit the stored day.

    Verifies:
    - a proposal naming a window that is not stored raises ConflictError
    - a proposal naming a strict window raises ConflictError
    """
    service = SchedulingService(db_session)
    user_id = create_user(service, "michael", primary_goal={"kind": "performance_focus"})
    windows, _ = service.generate_day(user_id, TEST_DAY, at(5))
    source = windows[0]
    trigger = RedistributionTrigger(kind=TriggerKind.MISSED_WINDOW, window_id=source.id)
    proposal = service.propose_redistribution(
        user_id, TEST_DAY, trigger, source.end_time + timedelta(hours=1), bedtime=at(23, 30)
    )
    assert proposal is not None

    stale = proposal.model_copy(
        update={"adjusted_windows": [make_window("Ghost", at(15), at(16))]}
    )
    with pytest.raises(ConflictError):
        service.commit_redistribution(user_id, TEST_DAY, stale)

    strict = next(w for w in windows if w.flexibility == WindowFlexibility.STRICT)
    forced = proposal.model_copy(
        update={"adjusted_windows": [strict.with_overlay(100, strict.target_macros, "forced")]}
    )
    with pytest.raises(ConflictError):
        service.commit_redistribution(user_id, TEST_DAY, forced)


def test_commit_rejects_overlay_outside_window_bounds(db_session: Session):
    """
    Test committing a proposal whose moderate lunch was changed to 5000 kcal.

    Verifies:
    - the commit raises ConflictError listing the problems
    - no overlay is stored and no accepted event is recorded
    """
    service = SchedulingService(db_session)
    user_id = create_user(service, daily_calories=2000)
    windows, _ = service.generate_day(user_id, TEST_DAY, at(6))
    trigger = RedistributionTrigger(kind=TriggerKind.MISSED_WINDOW, window_id=windows[0].id)
    proposal = service.propose_redistribution(
        user_id, TEST_DAY, trigger, windows[0].end_time + timedelta(hours=1)
    )
    first = proposal.adjusted_windows[0]
    forged = proposal.model_copy(
        update={
            "adjusted_windows": [first.model_copy(update={"adjusted_calories": 5000})]
            + proposal.adjusted_windows[1:]
        }
    )

    with pytest.raises(ConflictError) as exc:
        service.commit_redistribution(user_id, TEST_DAY, forged)

    assert exc.value.details["problems"]
    stored, _ = service.load_windows(user_id, TEST_DAY, at(6))
    assert not any(w.is_adjusted for w in stored)
    assert service.events.recent_for_user(user_id) == []


def test_reject_records_event_without_applying(db_session: Session):
    service = SchedulingService(db_session)
    user_id = create_user(service, daily_calories=2000)
    windows, _ = service.generate_day(user_id, TEST_DAY, at(6))
    trigger = RedistributionTrigger(kind=TriggerKind.MISSED_WINDOW, window_id=windows[0].id)
    proposal = service.propose_redistribution(
        user_id, TEST_DAY, trigger, windows[0].end_time + timedelta(hours=1)
    )
    assert proposal is not None

    service.reject_redistribution(user_id, TEST_DAY, proposal)

    assert service.events.recent_for_user(user_id)[0].accepted is False
    stored, _ = service.load_windows(user_id, TEST_DAY, at(6))
    assert not any(w.is_adjusted for w in stored)


def test_fasted_window_is_not_reported_missed(db_session: Session):
    service = SchedulingService(db_session)
    user_id = create_user(service, daily_calories=2000)
    windows, _ = service.generate_day(user_id, TEST_DAY, at(6))
    after_first = windows[1].start_time

    assert [w.id for w in service.missed_windows(user_id, TEST_DAY, after_first)] == [windows[0].id]

    service.set_fasted(user_id, TEST_DAY, windows[0].id, True)
    assert service.missed_windows(user_id, TEST_DAY, after_first) == []


def test_window_lookup_checks_day(db_session: Session):
    service = SchedulingService(db_session)
    user_id = create_user(service)
    windows, _ = service.generate_day(user_id, TEST_DAY, at(6))

    with pytest.raises(NotFoundError):
        service.set_fasted(user_id, TEST_DAY + timedelta(days=1), windows[0].id, True)


def test_first_day_today_stores_windows(db_session: Session):
    """
    Test onboarding at 09:00.

    Verifies:
    - today's prorated windows are stored
    - onboarding completion is recorded on the profile
    """
    service = SchedulingService(db_session)
    user_id = create_user(service, daily_calories=2000)

    response = service.plan_first_day(user_id, at(9), at(9))

    assert response.plan.number_of_windows == 3
    assert len(response.windows) == 3
    stored, _ = service.load_windows(user_id, TEST_DAY, at(9))
    assert [w.id for w in stored] == [w.id for w in response.windows]
    assert service.get_profile(user_id).onboarding_completed_at == at(9)


def test_first_day_late_generates_tomorrow(db_session: Session):
    """
    Test onboarding at 21:00.

    Verifies:
    - tomorrow's windows are generated at the full daily target
    """
    service = SchedulingService(db_session)
    user_id = create_user(service, daily_calories=2000)

    response = service.plan_first_day(user_id, at(21), at(21))

    assert response.plan.show_tomorrow_plan is True
    assert sum(w.target_calories for w in response.windows) == 2000
    assert all(w.day_date == TEST_DAY + timedelta(days=1) for w in response.windows)


def test_day_lock_is_per_user_and_day():
    """
    Test the lock registry.

    Verifies:
    - the same user/day always gets the same lock
    - different days get different locks
    - holding a lock blocks a second holder
    """
    registry = DayLockRegistry()
    user_id = uuid.uuid4()

    assert registry.lock_for(user_id, TEST_DAY) is registry.lock_for(user_id, TEST_DAY)
    assert registry.lock_for(user_id, TEST_DAY) is not registry.lock_for(
        user_id, TEST_DAY + timedelta(days=1)
    )

    with registry.hold(user_id, TEST_DAY):
        acquired = registry.lock_for(user_id, TEST_DAY).acquire(blocking=False)
        assert acquired is False
    lock = registry.lock_for(user_id, TEST_DAY)
    assert lock.acquire(blocking=False) is True
    lock.release()


def test_day_locks_are_dropped_when_unused():
    """
    Test that the registry does not keep a lock per day forever.

    Verifies:
    - a lock stays registered while someone references it
    - it is gone once the last reference is released
    """
    registry = DayLockRegistry()
    user_id = uuid.uuid4()

    lock = registry.lock_for(user_id, TEST_DAY)
    for offset in range(1, 4):
        with registry.hold(user_id, TEST_DAY + timedelta(days=offset)):
            pass
    gc.collect()
    assert len(registry) == 1

    del lock
    gc.collect()
    assert len(registry) == 0

