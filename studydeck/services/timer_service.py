from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from studydeck.core.config import settings
from studydeck.crud import study_session_crud, timer_crud
from studydeck.models.study.study_session_model import StudySession
from studydeck.models.timer.timer_session_model import TimerEvent, TimerSession
from studydeck.models.user.user_model import User
from studydeck.services import timer_engine
from studydeck.services.errors import (
    InvalidInputError,
    InvalidTimerTransitionError,
    NoActiveSessionError,
    NoActiveTimerError,
)
from studydeck.services.study_session_service import ensure_question_set_access
from studydeck.services.timer_engine import TimerConfig, TimerPhase, TimerSnapshot
from studydeck.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TimerView:
    """Stored timer state plus the seconds left in the running phase."""

    id: int
    snapshot: TimerSnapshot
    remaining_time: int


@dataclass(frozen=True, slots=True)
class TimerStats:
    total_work_time: int
    total_rest_time: int
    total_time: int
    cycles_completed: int
    work_percentage: int
    current_phase: TimerPhase
    events: list[TimerEvent]


def default_config() -> TimerConfig:
    return TimerConfig(
        work_duration=settings.DEFAULT_WORK_DURATION,
        rest_duration=settings.DEFAULT_REST_DURATION,
        is_infinite=False,
    )


class TimerService:
    """Pomodoro timer attached to the active study session of a question set.

    Only timer rows are written here; the study session is read to find the
    ``deck_session_id`` and is never modified.
    """

    def __init__(self, db: Session, user: User, clock: Callable[[], datetime] | None = None):
        self.db = db
        self.user = user
        self.clock = clock or utcnow

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def start(
        self,
        question_set_id: int,
        *,
        work_duration: Optional[int] = None,
        rest_duration: Optional[int] = None,
        is_infinite: Optional[bool] = None,
    ) -> TimerView:
        """Start a timer, resume a paused one, or return a running one untouched.

        The duration arguments only configure a new timer. An active timer keeps
        its settings; change them with :meth:`update_config`.
        """
        deck_session = self._require_deck_session(question_set_id)
        now = self.clock()

        timer = timer_crud.get_active_timer(self.db, deck_session.id)
        if timer is None:
            base = default_config()
            config = TimerConfig(
                work_duration=self._positive(work_duration, "invalid_work_duration") or base.work_duration,
                rest_duration=self._positive(rest_duration, "invalid_rest_duration") or base.rest_duration,
                is_infinite=base.is_infinite if is_infinite is None else bool(is_infinite),
            )
            snapshot, transitions = timer_engine.begin(config, now)
            timer, created = timer_crud.create_timer(
                self.db,
                deck_session_id=deck_session.id,
                user_id=self.user.id,
                snapshot=snapshot,
                transitions=transitions,
            )
            if created:
                logger.info(
                    "Timer %s started for study session %s (%ss work / %ss rest)",
                    timer.id,
                    deck_session.id,
                    config.work_duration,
                    config.rest_duration,
                )
                return self._view(timer, now)

        snapshot, transitions = self._transition(timer_engine.resume, timer, now)
        if transitions:
            timer = timer_crud.save_timer(self.db, timer, snapshot, transitions)
        return self._view(timer, now)

    def pause(self, question_set_id: int) -> TimerView:
        return self._apply(question_set_id, timer_engine.pause)

    def advance(self, question_set_id: int) -> TimerView:
        return self._apply(question_set_id, timer_engine.advance)

    def stop(self, question_set_id: int) -> TimerView:
        return self._apply(question_set_id, timer_engine.stop)

    def update_config(
        self,
        question_set_id: int,
        *,
        work_duration: Optional[int] = None,
        rest_duration: Optional[int] = None,
        is_infinite: Optional[bool] = None,
    ) -> TimerView:
        """Change durations of the active timer; omitted fields are kept."""
        timer = self._require_active_timer(question_set_id)
        snapshot = timer_engine.reconfigure(
            timer_crud.to_snapshot(timer),
            work_duration=self._positive(work_duration, "invalid_work_duration"),
            rest_duration=self._positive(rest_duration, "invalid_rest_duration"),
            is_infinite=is_infinite,
        )
        timer = timer_crud.save_timer(self.db, timer, snapshot)
        logger.info(
            "Timer %s reconfigured: %ss work / %ss rest, infinite=%s",
            timer.id,
            timer.work_duration,
            timer.rest_duration,
            timer.is_infinite,
        )
        return self._view(timer, self.clock())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def state(self, question_set_id: int) -> TimerView | None:
        ensure_question_set_access(self.db, self.user, question_set_id)
        deck_session = study_session_crud.get_active_session(self.db, self.user.id, question_set_id)
        if deck_session is None:
            return None
        timer = timer_crud.get_active_timer(self.db, deck_session.id)
        if timer is None:
            return None
        return self._view(timer, self.clock())

    def stats(self, question_set_id: int) -> TimerStats:
        """Totals over every timer run of the active study session."""
        deck_session = self._require_deck_session(question_set_id)
        timers = timer_crud.list_timers(self.db, deck_session.id)
        if not timers:
            raise NoActiveTimerError()

        total_work = sum(timer.total_work_time for timer in timers)
        total_rest = sum(timer.total_rest_time for timer in timers)
        total = total_work + total_rest
        active = next((timer for timer in timers if timer.completed_at is None), None)
        events = sorted(
            (event for timer in timers for event in timer.events),
            key=lambda event: (event.timestamp, event.id),
            reverse=True,
        )
        return TimerStats(
            total_work_time=total_work,
            total_rest_time=total_rest,
            total_time=total,
            cycles_completed=sum(timer.cycles_completed for timer in timers),
            work_percentage=round(total_work * 100 / total) if total > 0 else 0,
            current_phase=active.current_phase if active is not None else TimerPhase.COMPLETED,
            events=events,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _apply(self, question_set_id: int, transition) -> TimerView:
        timer = self._require_active_timer(question_set_id)
        now = self.clock()
        snapshot, transitions = self._transition(transition, timer, now)
        timer = timer_crud.save_timer(self.db, timer, snapshot, transitions)
        return self._view(timer, now)

    @staticmethod
    def _transition(transition, timer: TimerSession, now: datetime):
        try:
            return transition(timer_crud.to_snapshot(timer), now)
        except timer_engine.InvalidTransition as exc:
            raise InvalidTimerTransitionError(message=str(exc)) from exc

    def _require_deck_session(self, question_set_id: int) -> StudySession:
        ensure_question_set_access(self.db, self.user, question_set_id)
        deck_session = study_session_crud.get_active_session(self.db, self.user.id, question_set_id)
        if deck_session is None:
            raise NoActiveSessionError()
        return deck_session

    def _require_active_timer(self, question_set_id: int) -> TimerSession:
        ensure_question_set_access(self.db, self.user, question_set_id)
        deck_session = study_session_crud.get_active_session(self.db, self.user.id, question_set_id)
        timer = timer_crud.get_active_timer(self.db, deck_session.id) if deck_session else None
        if timer is None:
            raise NoActiveTimerError()
        return timer

    @staticmethod
    def _view(timer: TimerSession, now: datetime) -> TimerView:
        snapshot = timer_crud.to_snapshot(timer)
        return TimerView(
            id=timer.id,
            snapshot=snapshot,
            remaining_time=timer_engine.remaining_seconds(snapshot, now),
        )

    @staticmethod
    def _positive(value: Optional[int], code: str) -> Optional[int]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidInputError(code)
        return value
