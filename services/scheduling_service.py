from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import ConflictError, NotFoundError
from domain.enums import TriggerKind
from domain.mappers import CheckInMapper, MealMapper, ProfileMapper, WindowMapper
from domain.models import LoggedMealRecord, MorningCheckInRecord, RedistributionEventRecord
from domain.reference_tables import ReferenceTables, get_reference_tables
from domain.schemas.first_day_schemas import FirstDayResponse
from domain.schemas.meal_schemas import LoggedMeal, LogMealRequest
from domain.schemas.profile_schemas import (
    CheckInRequest,
    MorningCheckIn,
    NutritionTargets,
    ProfileUpsertRequest,
    UserProfile,
)
from domain.schemas.redistribution_schemas import (
    MealLoggedResponse,
    PatternInsight,
    RedistributionResult,
    RedistributionTrigger,
)
from domain.schemas.window_schemas import MealWindow
from repositories import (
    CheckInRepository,
    MealRepository,
    ProfileRepository,
    RedistributionEventRepository,
    WindowRepository,
)
from services.day_boundary import normalize
from services.first_day_service import FirstDayService
from services.goal_service import GoalService
from services.redistribution_service import RedistributionService, meals_in_window
from services.trigger_service import TriggerService
from services.window_service import WindowService

logger = logging.getLogger("mealsync.scheduling")


class DayLockRegistry:
    """
    One lock per (user, day); generation and commits for a day never interleave.

    Entries are weak: a lock disappears once no request holds or waits on it.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[Tuple[UUID, date], threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, user_id: UUID, day: date) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault((user_id, day), threading.Lock())

    @contextmanager
    def hold(self, user_id: UUID, day: date) -> Iterator[None]:
        lock = self.lock_for(user_id, day)
        with lock:
            yield


# Process-wide registry shared by every request
day_locks = DayLockRegistry()


class SchedulingService:
    """
    Caller-level owner of a user's day:
    - loads profile, check-in, windows and meals from the repositories
    - runs the pure generator / first-day / redistribution services
    - normalizes every freshly generated or loaded window set
    - serializes generate, commit, reset and fasted updates per user/day
    """

    def __init__(
        self,
        db: Session,
        tables: Optional[ReferenceTables] = None,
        locks: Optional[DayLockRegistry] = None,
    ):
        self.db: Session = db
        self.tables = tables or get_reference_tables()
        self.locks = locks or day_locks
        self.window_service = WindowService(self.tables)
        self.first_day_service = FirstDayService(self.window_service)
        self.redistribution = RedistributionService(self.tables)
        self.triggers = TriggerService(self.tables)
        self.profiles = ProfileRepository(db)
        self.check_ins = CheckInRepository(db)
        self.windows = WindowRepository(db)
        self.meals = MealRepository(db)
        self.events = RedistributionEventRepository(db)

    # ---------- profiles ----------

    def upsert_profile(self, user_id: UUID, body: ProfileUpsertRequest) -> Tuple[UserProfile, bool]:
        profile = body.to_profile(user_id)
        record, created = self.profiles.get_or_new(user_id)
        ProfileMapper.apply_to_record(profile, record)
        if created:
            self.profiles.create(record)
        else:
            self.profiles.update(record)
        logger.info("profile_saved user_id=%s created=%s", user_id, created)
        return ProfileMapper.to_schema(record), created

    def get_profile(self, user_id: UUID) -> UserProfile:
        record = self.profiles.get_by_id(user_id)
        if record is None:
            logger.warning("profile_not_found user_id=%s", user_id)
            raise NotFoundError(f"Profile {user_id} not found")
        return ProfileMapper.to_schema(record)

    def resolve_targets(self, user_id: UUID) -> NutritionTargets:
        return GoalService.resolve_targets(self.get_profile(user_id), self.tables)

    def save_check_in(self, user_id: UUID, day: date, body: CheckInRequest) -> MorningCheckIn:
        self.get_profile(user_id)
        record = self.check_ins.get_for_day(user_id, day)
        if record is None:
            record = MorningCheckInRecord(
                user_id=user_id, day=day, wake_time=body.wake_time, planned_bedtime=body.planned_bedtime
            )
            self.check_ins.create(record)
        else:
            record.wake_time = body.wake_time
            record.planned_bedtime = body.planned_bedtime
            self.check_ins.update(record)
        logger.info("check_in_saved user_id=%s day=%s wake=%s", user_id, day, body.wake_time)
        return CheckInMapper.to_schema(record)

    def get_check_in(self, user_id: UUID, day: date) -> Optional[MorningCheckIn]:
        record = self.check_ins.get_for_day(user_id, day)
        return CheckInMapper.to_schema(record) if record else None

    # ---------- windows ----------

    def load_windows(self, user_id: UUID, day: date, now: datetime) -> Tuple[List[MealWindow], bool]:
        """
        Stored windows for a day, normalized.

        Returns:
            (windows, shifted) where shifted is True when a wrong-day set was
            corrected; the correction is written back.
        """
        stored = [WindowMapper.to_schema(r) for r in self.windows.get_for_day(user_id, day)]
        normalized = self._normalize_for(day, stored, now)
        shifted = normalized != stored
        if shifted:
            logger.warning(
                "Windows for user %s on %s start more than %.0fh ahead, shifted back 24h",
                user_id,
                day,
                self._threshold(),
            )
            with self.locks.hold(user_id, day):
                self._save_windows(user_id, normalized)
        return normalized, shifted

    def generate_day(
        self, user_id: UUID, day: date, now: datetime, replace: bool = False
    ) -> Tuple[List[MealWindow], bool]:
        """
        Generate the day's windows unless some already exist.

        Returns:
            (windows, created). With ``replace`` the existing set is discarded;
            without it an existing set is returned as is.
        """
        with self.locks.hold(user_id, day):
            existing = self.windows.get_for_day(user_id, day)
            if existing and not replace:
                logger.info("Windows already exist for user %s on %s, not regenerating", user_id, day)
                stored = [WindowMapper.to_schema(r) for r in existing]
                return self._normalize_for(day, stored, now), False

            profile = self.get_profile(user_id)
            check_in = self.get_check_in(user_id, day)
            generated = self.window_service.generate(day, profile, check_in)
            windows = self._normalize_for(day, generated, now)
            if windows != generated:
                logger.warning("Generated windows for user %s on %s were a day ahead, shifted back", user_id, day)
            self._replace_day(user_id, day, windows)
            return windows, True

    def set_fasted(
        self, user_id: UUID, day: date, window_id: UUID, fasted: bool
    ) -> MealWindow:
        with self.locks.hold(user_id, day):
            window = self._get_window(user_id, day, window_id)
            updated = window.model_copy(update={"is_marked_as_fasted": fasted})
            self._save_windows(user_id, [updated])
            logger.info("window_fasted user_id=%s window_id=%s fasted=%s", user_id, window_id, fasted)
            return updated

    def reset_window(self, user_id: UUID, day: date, window_id: UUID) -> MealWindow:
        """Drop a window's redistribution overlay, restoring the original targets."""
        with self.locks.hold(user_id, day):
            window = self._get_window(user_id, day, window_id)
            if not window.is_adjusted:
                return window
            restored = self.redistribution.reset_to_plan(window)
            self._save_windows(user_id, [restored])
            logger.info("window_reset user_id=%s window_id=%s", user_id, window_id)
            return restored

    # ---------- first day ----------

    def plan_first_day(
        self, user_id: UUID, completion_time: datetime, now: datetime
    ) -> FirstDayResponse:
        """
        Plan the onboarding day.

        When today still has room, today's prorated windows are stored (if the
        day is empty). Otherwise tomorrow is generated at full targets.
        """
        profile = self.get_profile(user_id)
        targets = GoalService.resolve_targets(profile, self.tables)
        plan = self.first_day_service.plan_first_day(completion_time, profile, now, targets)

        record = self.profiles.get_by_id(user_id)
        record.onboarding_completed_at = completion_time
        self.profiles.update(record)

        reference = max(completion_time, now)
        if plan.show_tomorrow_plan:
            windows, _ = self.generate_day(user_id, reference.date() + timedelta(days=1), now)
            return FirstDayResponse(plan=plan, windows=windows)

        today = reference.date()
        with self.locks.hold(user_id, today):
            if self.windows.get_for_day(user_id, today):
                stored = [WindowMapper.to_schema(r) for r in self.windows.get_for_day(user_id, today)]
                return FirstDayResponse(plan=plan, windows=stored)
            windows = self.first_day_service.build_windows(plan, profile, reference)
            self._replace_day(user_id, today, windows)
        return FirstDayResponse(plan=plan, windows=windows)

    # ---------- meals ----------

    def log_meal(self, user_id: UUID, body: LogMealRequest, now: datetime) -> MealLoggedResponse:
        """
        Store a meal and evaluate whether it triggers a redistribution.

        The proposal in the response is advisory; nothing is applied until
        the caller commits it.
        """
        self.get_profile(user_id)
        day = body.timestamp.date()
        windows, _ = self.load_windows(user_id, day, now)

        window_id = body.window_id
        if window_id is None:
            matched = self.triggers.match_window(body.timestamp, windows)
            window_id = matched.id if matched else None

        record = LoggedMealRecord(
            user_id=user_id,
            name=body.name,
            eaten_at=body.timestamp,
            calories=body.calories,
            protein=body.protein,
            carbs=body.carbs,
            fat=body.fat,
            window_id=window_id,
        )
        self.meals.create(record)
        meal = MealMapper.to_schema(record)
        logger.info("meal_logged user_id=%s kcal=%d window_id=%s", user_id, meal.calories, window_id)

        window = next((w for w in windows if w.id == window_id), None)
        if window is None:
            return MealLoggedResponse(meal=meal)

        day_meals = self.get_meals(user_id, day, windows)
        trigger = self.triggers.evaluate_meal(
            window, meals_in_window(window, day_meals), meal.timestamp, now
        )
        if trigger is None:
            return MealLoggedResponse(meal=meal)

        proposal = self.redistribution.propose(
            trigger, windows, day_meals, now, self._bedtime(user_id, day)
        )
        return MealLoggedResponse(meal=meal, trigger=trigger, proposal=proposal)

    def get_meals(
        self, user_id: UUID, day: date, windows: Optional[List[MealWindow]] = None
    ) -> List[LoggedMeal]:
        """Meals of a day, widened to cover windows that run past midnight."""
        start = datetime.combine(day, time.min)
        end = start + timedelta(days=1)
        if windows:
            start = min(start, min(w.start_time for w in windows))
            end = max(end, max(w.end_time for w in windows))
        return [MealMapper.to_schema(r) for r in self.meals.get_between(user_id, start, end)]

    # ---------- redistribution ----------

    def propose_redistribution(
        self,
        user_id: UUID,
        day: date,
        trigger: RedistributionTrigger,
        now: datetime,
        bedtime: Optional[datetime] = None,
    ) -> Optional[RedistributionResult]:
        """Advisory; reads without taking the day lock."""
        windows, _ = self.load_windows(user_id, day, now)
        if not windows:
            raise NotFoundError(f"No windows for user {user_id} on {day}")
        meals = self.get_meals(user_id, day, windows)
        return self.redistribution.propose(
            trigger, windows, meals, now, bedtime or self._bedtime(user_id, day)
        )

    def commit_redistribution(
        self, user_id: UUID, day: date, proposal: RedistributionResult
    ) -> List[MealWindow]:
        """
        Apply an accepted proposal under the day lock.

        Raises:
            ConflictError: if the proposal names windows that no longer exist
                (the day was regenerated), targets a strict window, or moves
                calories beyond what the stored day and its meals allow.
        """
        with self.locks.hold(user_id, day):
            current = [WindowMapper.to_schema(r) for r in self.windows.get_for_day(user_id, day)]
            meals = self.get_meals(user_id, day, current)
            problems = self.redistribution.overlay_problems(current, meals, proposal)
            if problems:
                logger.warning(
                    "Refusing redistribution for user %s on %s: %s", user_id, day, problems
                )
                raise ConflictError(
                    "Proposal no longer fits the planned windows", details={"problems": problems}
                )

            applied = self.redistribution.apply_proposal(current, proposal)
            changed = [w for w in applied if w.id in {a.id for a in proposal.adjusted_windows}]
            self._save_windows(user_id, changed, commit=False)
            self._record_event(user_id, day, proposal, accepted=True)
            logger.info(
                "redistribution_committed user_id=%s day=%s windows=%d", user_id, day, len(changed)
            )
            return applied

    def reject_redistribution(
        self, user_id: UUID, day: date, proposal: RedistributionResult
    ) -> None:
        """Record a declined proposal; windows stay as they are."""
        self._record_event(user_id, day, proposal, accepted=False)
        logger.info("redistribution_rejected user_id=%s day=%s", user_id, day)

    def missed_windows(self, user_id: UUID, day: date, now: datetime) -> List[MealWindow]:
        windows, _ = self.load_windows(user_id, day, now)
        meals = self.get_meals(user_id, day, windows)
        return self.triggers.detect_missed_windows(windows, meals, now)

    def eating_pattern(self, user_id: UUID) -> Optional[PatternInsight]:
        history = [TriggerKind(e.trigger_kind) for e in self.events.recent_for_user(user_id)]
        return self.triggers.analyze_pattern(history)

    # ---------- helpers ----------

    def _threshold(self) -> float:
        return settings.wrong_day_threshold_hours

    def _normalize_for(self, day: date, windows: List[MealWindow], now: datetime) -> List[MealWindow]:
        # A set asked for by a future date is meant to be ahead of now
        if day > now.date():
            return windows
        return normalize(windows, now, self._threshold())

    def _bedtime(self, user_id: UUID, day: date) -> datetime:
        profile = self.get_profile(user_id)
        _, sleep = self.window_service.resolve_day_bounds(day, profile, self.get_check_in(user_id, day))
        return sleep

    def _get_window(self, user_id: UUID, day: date, window_id: UUID) -> MealWindow:
        record = self.windows.get_for_user(window_id, user_id)
        if record is None or record.day_date != day:
            raise NotFoundError(f"Window {window_id} not found for user {user_id} on {day}")
        return WindowMapper.to_schema(record)

    def _replace_day(self, user_id: UUID, day: date, windows: List[MealWindow]) -> None:
        removed = self.windows.delete_day(user_id, day)
        self.db.flush()
        for position, window in enumerate(windows):
            self.db.add(WindowMapper.to_record(window, user_id, position))
        self.db.commit()
        logger.info("windows_saved user_id=%s day=%s replaced=%d count=%d", user_id, day, removed, len(windows))

    def _save_windows(self, user_id: UUID, windows: List[MealWindow], commit: bool = True) -> None:
        for window in windows:
            record = self.windows.get_for_user(window.id, user_id)
            if record is None:
                raise NotFoundError(f"Window {window.id} not found for user {user_id}")
            WindowMapper.apply_to_record(window, record)
        if commit:
            self.db.commit()

    def _record_event(
        self, user_id: UUID, day: date, proposal: RedistributionResult, accepted: bool
    ) -> None:
        self.events.create(
            RedistributionEventRecord(
                user_id=user_id,
                day_date=day,
                trigger_kind=proposal.trigger.kind.value,
                window_id=proposal.trigger.window_id,
                percent=proposal.trigger.percent,
                accepted=accepted,
                calories_affected=proposal.impact.total_calories_affected,
            )
        )
