"""
HTTP-level tests for the MealSync API.

Every request that depends on the clock passes an explicit ``now`` so the
suite runs on the fixed test day regardless of the wall clock.
"""

import uuid
from datetime import timedelta

from domain.enums import ImpactSeverity, TriggerKind
from domain.mappers import WindowMapper
from domain.models import SessionLocal
from domain.schemas.redistribution_schemas import (
    RedistributionImpact,
    RedistributionResult,
    RedistributionTrigger,
)
from test_constants import TEST_DAY
from test_fixtures import at, client, make_window, profile_payload


def iso(value) -> str:
    return value.isoformat()


def create_profile(profile_type: str = "emma", **overrides) -> uuid.UUID:
    user_id = uuid.uuid4()
    payload = profile_payload(profile_type, daily_calories=2000, **overrides)
    response = client.put(f"/profiles/{user_id}", json=payload)
    assert response.status_code == 201
    return user_id


def generate(user_id, now=None):
    return client.post(
        f"/windows/{user_id}/{TEST_DAY}/generate",
        params={"now": iso(now or at(6))},
    )


def test_health_check():
    response = client.get("/health-check")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["service"] == "MealSync"


def test_profile_create_then_update():
    """
    Test PUT /profiles/{user_id}.

    Verifies:
    - a new profile answers 201 with a Location header
    - replacing it answers 200
    - GET returns the stored profile
    """
    user_id = uuid.uuid4()

    response = client.put(f"/profiles/{user_id}", json=profile_payload("sarah"))
    assert response.status_code == 201
    assert response.headers["location"] == f"/profiles/{user_id}"

    response = client.put(f"/profiles/{user_id}", json=profile_payload("sarah", age=35))
    assert response.status_code == 200
    assert response.json()["age"] == 35

    response = client.get(f"/profiles/{user_id}")
    assert response.status_code == 200
    assert response.json()["primary_goal"]["kind"] == "weight_loss"


def test_unknown_profile_is_404():
    response = client.get(f"/profiles/{uuid.uuid4()}")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "NOT_FOUND"


def test_invalid_profile_is_422():
    response = client.put(f"/profiles/{uuid.uuid4()}", json=profile_payload("sarah", age=5))

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_targets_and_check_in():
    user_id = create_profile()

    targets = client.get(f"/profiles/{user_id}/targets")
    assert targets.status_code == 200
    assert targets.json()["daily_calories"] == 2000

    check_in = client.put(
        f"/profiles/{user_id}/check-ins/{TEST_DAY}",
        json={"wake_time": iso(at(8)), "planned_bedtime": iso(at(23))},
    )
    assert check_in.status_code == 200
    assert check_in.json()["wake_time"] == iso(at(8))


def test_generate_then_return_existing():
    """
    Test POST /windows/{user_id}/{day}/generate.

    Verifies:
    - the first call creates the set (201)
    - the second returns the stored set (200) with the same ids
    - GET returns the same windows, not normalized
    """
    user_id = create_profile()

    first = generate(user_id)
    assert first.status_code == 201
    body = first.json()
    assert body["total_calories"] == 2000
    assert len(body["windows"]) == 4

    second = generate(user_id)
    assert second.status_code == 200
    assert [w["id"] for w in second.json()["windows"]] == [w["id"] for w in body["windows"]]

    stored = client.get(f"/windows/{user_id}/{TEST_DAY}", params={"now": iso(at(6))})
    assert stored.status_code == 200
    assert stored.json()["normalized"] is False
    assert len(stored.json()["windows"]) == 4


def test_generate_for_unknown_profile_is_404():
    assert generate(uuid.uuid4()).status_code == 404


def test_fasted_and_missed():
    """
    Test marking a window fasted.

    Verifies:
    - a closed window with nothing logged is reported missed
    - once marked fasted it is no longer reported
    """
    user_id = create_profile()
    windows = generate(user_id).json()["windows"]
    breakfast_id = windows[0]["id"]
    after_breakfast = iso(at(11))

    missed = client.get(
        f"/redistribution/{user_id}/{TEST_DAY}/missed", params={"now": after_breakfast}
    )
    assert [w["id"] for w in missed.json()] == [breakfast_id]

    fasted = client.post(f"/windows/{user_id}/{TEST_DAY}/{breakfast_id}/fasted")
    assert fasted.status_code == 200
    assert fasted.json()["is_marked_as_fasted"] is True

    missed = client.get(
        f"/redistribution/{user_id}/{TEST_DAY}/missed", params={"now": after_breakfast}
    )
    assert missed.json() == []


def test_unknown_window_is_404():
    user_id = create_profile()
    generate(user_id)

    response = client.post(f"/windows/{user_id}/{TEST_DAY}/{uuid.uuid4()}/reset")

    assert response.status_code == 404


def test_log_meal_commit_and_reset():
    """
    Test the overconsumption flow over HTTP.

    Verifies:
    - logging a double portion answers 201 with a proposal
    - the meal is listed for the day
    - committing the proposal adjusts later windows
    - reset restores one of them
    """
    user_id = create_profile()
    windows = generate(user_id).json()["windows"]
    breakfast = windows[0]
    eaten_at = at(7, 50)

    logged = client.post(
        f"/meals/{user_id}",
        params={"now": iso(at(8))},
        json={
            "name": "pancake stack",
            "timestamp": iso(eaten_at),
            "calories": breakfast["target_calories"] * 2,
        },
    )
    assert logged.status_code == 201
    body = logged.json()
    assert body["meal"]["window_id"] == breakfast["id"]
    assert body["trigger"]["kind"] == TriggerKind.OVERCONSUMPTION.value
    assert body["proposal"] is not None

    meals = client.get(f"/meals/{user_id}/{TEST_DAY}")
    assert [m["name"] for m in meals.json()] == ["pancake stack"]

    committed = client.post(
        f"/redistribution/{user_id}/{TEST_DAY}/commit", json={"proposal": body["proposal"]}
    )
    assert committed.status_code == 200
    adjusted = [w for w in committed.json()["windows"] if w["adjusted_calories"] is not None]
    assert adjusted
    assert committed.json()["total_calories"] < 2000

    reset = client.post(f"/windows/{user_id}/{TEST_DAY}/{adjusted[0]['id']}/reset")
    assert reset.status_code == 200
    assert reset.json()["adjusted_calories"] is None


def test_propose_missed_window_and_nothing_to_move():
    """
    Test POST /redistribution/{user_id}/{day}/propose.

    Verifies:
    - a missed breakfast produces a proposal
    - a missed last window late at night answers 204
    - proposing does not change the stored windows
    """
    user_id = create_profile()
    windows = generate(user_id).json()["windows"]

    response = client.post(
        f"/redistribution/{user_id}/{TEST_DAY}/propose",
        json={
            "trigger": {"kind": TriggerKind.MISSED_WINDOW.value, "window_id": windows[0]["id"]},
            "now": iso(at(10)),
        },
    )
    assert response.status_code == 200
    assert response.json()["adjusted_windows"]

    response = client.post(
        f"/redistribution/{user_id}/{TEST_DAY}/propose",
        json={
            "trigger": {"kind": TriggerKind.MISSED_WINDOW.value, "window_id": windows[-1]["id"]},
            "now": iso(at(23, 30)),
        },
    )
    assert response.status_code == 204

    stored = client.get(f"/windows/{user_id}/{TEST_DAY}", params={"now": iso(at(6))})
    assert all(w["adjusted_calories"] is None for w in stored.json()["windows"])


def test_commit_stale_proposal_is_409():
    user_id = create_profile()
    windows = generate(user_id).json()["windows"]
    proposal = client.post(
        f"/redistribution/{user_id}/{TEST_DAY}/propose",
        json={
            "trigger": {"kind": TriggerKind.MISSED_WINDOW.value, "window_id": windows[0]["id"]},
            "now": iso(at(10)),
        },
    ).json()
    proposal["adjusted_windows"][0]["id"] = str(uuid.uuid4())

    response = client.post(
        f"/redistribution/{user_id}/{TEST_DAY}/commit", json={"proposal": proposal}
    )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CONFLICT"


def test_declined_proposal_is_recorded_not_applied():
    """
    Test commit with accept=false.

    Verifies:
    - the windows are unchanged
    - the pattern endpoint has no insight from a single event
    """
    user_id = create_profile()
    windows = generate(user_id).json()["windows"]
    proposal = client.post(
        f"/redistribution/{user_id}/{TEST_DAY}/propose",
        json={
            "trigger": {"kind": TriggerKind.MISSED_WINDOW.value, "window_id": windows[0]["id"]},
            "now": iso(at(10)),
        },
    ).json()

    response = client.post(
        f"/redistribution/{user_id}/{TEST_DAY}/commit",
        params={"accept": "false"},
        json={"proposal": proposal},
    )
    assert response.status_code == 200
    assert all(w["adjusted_calories"] is None for w in response.json()["windows"])

    pattern = client.get(f"/redistribution/{user_id}/pattern")
    assert pattern.status_code == 200
    assert pattern.json() is None


def test_commit_forged_overlay_is_409():
    """
    Test commit with calories edited on the client.

    Verifies:
    - an overlay outside the window's movement bounds answers 409
    - the stored windows keep their planned calories
    """
    user_id = create_profile()
    windows = generate(user_id).json()["windows"]
    proposal = client.post(
        f"/redistribution/{user_id}/{TEST_DAY}/propose",
        json={
            "trigger": {"kind": TriggerKind.MISSED_WINDOW.value, "window_id": windows[0]["id"]},
            "now": iso(at(10)),
        },
    ).json()
    proposal["adjusted_windows"][0]["adjusted_calories"] = 5000

    response = client.post(
        f"/redistribution/{user_id}/{TEST_DAY}/commit", json={"proposal": proposal}
    )

    assert response.status_code == 409
    stored = client.get(f"/windows/{user_id}/{TEST_DAY}", params={"now": iso(at(10))})
    assert all(w["adjusted_calories"] is None for w in stored.json()["windows"])


def test_declined_commit_loads_windows_at_given_now():
    """
    Test commit with accept=false and an explicit now.

    Verifies:
    - a wrong-day set is corrected against the given now, not the server clock
    """
    user_id = create_profile()
    tomorrow = TEST_DAY + timedelta(days=1)
    stored = [
        make_window("Breakfast", at(8, day=tomorrow), at(9, 30, day=tomorrow), day=TEST_DAY),
        make_window("Lunch", at(12, day=tomorrow), at(13, 30, day=tomorrow), day=TEST_DAY),
    ]
    session = SessionLocal()
    try:
        for position, window in enumerate(stored):
            session.add(WindowMapper.to_record(window, user_id, position))
        session.commit()
    finally:
        session.close()
    proposal = RedistributionResult(
        trigger=RedistributionTrigger(kind=TriggerKind.MISSED_WINDOW, window_id=stored[0].id),
        adjusted_windows=[stored[1].with_overlay(700, stored[1].target_macros, "Missed meal")],
        explanation="Breakfast was missed",
        confidence=0.8,
        impact=RedistributionImpact(
            total_calories_affected=200, windows_affected=1, severity=ImpactSeverity.LOW
        ),
    )

    response = client.post(
        f"/redistribution/{user_id}/{TEST_DAY}/commit",
        params={"accept": "false", "now": iso(at(7))},
        json={"proposal": proposal.model_dump(mode="json")},
    )

    assert response.status_code == 200
    windows = response.json()["windows"]
    assert windows[0]["start_time"] == iso(at(8))
    assert all(w["adjusted_calories"] is None for w in windows)


def test_first_day_morning_and_late_evening():
    """
    Test POST /first-day/{user_id}.

    Verifies:
    - onboarding at 09:00 plans three windows for today
    - onboarding at 21:00 shows tomorrow's full plan
    """
    user_id = create_profile()
    response = client.post(
        f"/first-day/{user_id}",
        json={"completion_time": iso(at(9)), "current_time": iso(at(9))},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["plan"]["number_of_windows"] == 3
    assert len(body["windows"]) == 3

    late_user = create_profile()
    response = client.post(
        f"/first-day/{late_user}",
        json={"completion_time": iso(at(21)), "current_time": iso(at(21))},
    )
    body = response.json()
    assert body["plan"]["show_tomorrow_plan"] is True
    tomorrow = str(TEST_DAY + timedelta(days=1))
    assert all(w["day_date"] == tomorrow for w in body["windows"])
