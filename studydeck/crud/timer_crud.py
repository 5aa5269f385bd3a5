from __future__ import annotations

import logging
from typing import Iterable, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from studydeck.models.timer.timer_session_model import TimerEvent, TimerSession
from studydeck.services.timer_engine import TimerSnapshot, TimerTransition

logger = logging.getLogger(__name__)

_SNAPSHOT_FIELDS = (
    "work_duration",
    "rest_duration",
    "is_infinite",
    "current_phase",
    "phase_started_at",
    "started_at",
    "previous_phase",
    "elapsed_time_in_phase",
    "total_work_time",
    "total_rest_time",
    "cycles_completed",
    "completed_at",
)


def to_snapshot(timer: TimerSession) -> TimerSnapshot:
    return TimerSnapshot(**{field: getattr(timer, field) for field in _SNAPSHOT_FIELDS})


def _apply_snapshot(timer: TimerSession, snapshot: TimerSnapshot) -> None:
    for field in _SNAPSHOT_FIELDS:
        setattr(timer, field, getattr(snapshot, field))


def _add_events(db: Session, timer: TimerSession, transitions: Sequence[TimerTransition]) -> None:
    for transition in transitions:
        db.add(
            TimerEvent(
                timer_session_id=timer.id,
                event_type=transition.event_type,
                from_phase=transition.from_phase,
                to_phase=transition.to_phase,
                duration=transition.duration,
                timestamp=transition.timestamp,
            )
        )
        logger.info(
            "Timer event %s (%s -> %s) for timer session %s",
            transition.event_type.value,
            transition.from_phase.value if transition.from_phase else None,
            transition.to_phase.value if transition.to_phase else None,
            timer.id,
        )


def get_active_timer(db: Session, deck_session_id: int) -> TimerSession | None:
    return (
        db.query(TimerSession)
        .filter(TimerSession.deck_session_id == deck_session_id, TimerSession.completed_at.is_(None))
        .first()
    )


def create_timer(
    db: Session,
    *,
    deck_session_id: int,
    user_id: int,
    snapshot: TimerSnapshot,
    transitions: Sequence[TimerTransition],
) -> tuple[TimerSession, bool]:
    """Insert a new active timer and its events.

    Returns ``(timer, created)``.  When another request created the active
    timer first, the insert hits the partial unique index, is rolled back and
    the existing row is returned with ``created=False``.
    """

    timer = TimerSession(deck_session_id=deck_session_id, user_id=user_id)
    _apply_snapshot(timer, snapshot)
    db.add(timer)
    try:
        db.flush()
        _add_events(db, timer, transitions)
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = get_active_timer(db, deck_session_id)
        if winner is None:
            raise
        return winner, False

    db.refresh(timer)
    return timer, True


def save_timer(
    db: Session,
    timer: TimerSession,
    snapshot: TimerSnapshot,
    transitions: Sequence[TimerTransition] = (),
) -> TimerSession:
    _apply_snapshot(timer, snapshot)
    db.add(timer)
    _add_events(db, timer, transitions)
    db.commit()
    db.refresh(timer)
    return timer


def list_timers(db: Session, deck_session_id: int) -> list[TimerSession]:
    """Every timer run of a study session, oldest first, with events loaded."""
    return (
        db.query(TimerSession)
        .options(selectinload(TimerSession.events))
        .filter(TimerSession.deck_session_id == deck_session_id)
        .order_by(TimerSession.started_at.asc(), TimerSession.id.asc())
        .all()
    )


def delete_timers_for_sessions(db: Session, deck_session_ids: Iterable[int]) -> int:
    """Hard-delete the timer runs (and their events) of the given study sessions."""
    deck_session_ids = list(deck_session_ids)
    if not deck_session_ids:
        return 0

    timer_ids = [
        row.id
        for row in db.query(TimerSession.id).filter(TimerSession.deck_session_id.in_(deck_session_ids)).all()
    ]
    if not timer_ids:
        return 0

    db.query(TimerEvent).filter(TimerEvent.timer_session_id.in_(timer_ids)).delete(synchronize_session=False)
    deleted = (
        db.query(TimerSession)
        .filter(TimerSession.id.in_(timer_ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    db.expire_all()
    return deleted


def delete_orphaned_events(db: Session) -> int:
    """Remove events that no longer point at an existing timer session."""
    existing_ids = db.query(TimerSession.id)
    deleted = (
        db.query(TimerEvent)
        .filter(
            (TimerEvent.timer_session_id.is_(None))
            | (~TimerEvent.timer_session_id.in_(existing_ids.scalar_subquery()))
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted
