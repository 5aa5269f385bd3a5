from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studydeck.db.base_class import Base
from studydeck.services.timer_engine import TimerEventType, TimerPhase
from studydeck.utils.time_utils import utcnow


def _phase_enum(name: str) -> Enum:
    return Enum(TimerPhase, name=name, values_callable=lambda obj: [e.value for e in obj])


class TimerSession(Base):
    """One Pomodoro run attached to a study session.

    The row only references the study session; timer writes never touch
    study progress.  At most one run per study session is active
    (``completed_at`` null).
    """

    __tablename__ = "timer_sessions"
    __table_args__ = (
        Index(
            "uq_timer_sessions_active",
            "deck_session_id",
            unique=True,
            sqlite_where=text("completed_at IS NULL"),
            postgresql_where=text("completed_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    deck_session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("study_sessions.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)

    work_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=1500)
    rest_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=300)
    is_infinite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    total_work_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_rest_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cycles_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    current_phase: Mapped[TimerPhase] = mapped_column(
        _phase_enum("timerphase"), nullable=False, default=TimerPhase.WORK
    )
    previous_phase: Mapped[Optional[TimerPhase]] = mapped_column(_phase_enum("timerpreviousphase"), nullable=True)
    elapsed_time_in_phase: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    phase_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    events: Mapped[List["TimerEvent"]] = relationship(
        back_populates="timer_session",
        cascade="all, delete-orphan",
        order_by="TimerEvent.id",
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return (
            f"<TimerSession(id={self.id}, deck_session_id={self.deck_session_id}, "
            f"phase='{self.current_phase}')>"
        )


class TimerEvent(Base):
    """Append-only audit row, one per engine transition."""

    __tablename__ = "timer_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    timer_session_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("timer_sessions.id", ondelete="CASCADE"), index=True, nullable=True
    )
    event_type: Mapped[TimerEventType] = mapped_column(
        Enum(TimerEventType, name="timereventtype", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
    )
    from_phase: Mapped[Optional[TimerPhase]] = mapped_column(_phase_enum("timerfromphase"), nullable=True)
    to_phase: Mapped[Optional[TimerPhase]] = mapped_column(_phase_enum("timertophase"), nullable=True)
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    timer_session: Mapped[Optional[TimerSession]] = relationship(back_populates="events")
