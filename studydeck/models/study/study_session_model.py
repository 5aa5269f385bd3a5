from __future__ import annotations

from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studydeck.db.base_class import Base
from studydeck.services.question_selector import StudyMode
from studydeck.utils.time_utils import utcnow

if TYPE_CHECKING:
    from ..user.user_model import User
    from ..deck.question_set_model import Question, QuestionSet


class StudySession(Base):
    """One attempt at studying a question set.

    A session is active while ``completed_at`` is null.  The partial unique
    index guarantees a single active session per (user, question set).
    """

    __tablename__ = "study_sessions"
    __table_args__ = (
        Index(
            "uq_study_sessions_active",
            "user_id",
            "question_set_id",
            unique=True,
            sqlite_where=text("completed_at IS NULL"),
            postgresql_where=text("completed_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    question_set_id: Mapped[int] = mapped_column(Integer, ForeignKey("question_sets.id"), index=True)
    mode: Mapped[StudyMode] = mapped_column(
        Enum(StudyMode, name="studymode", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=StudyMode.FRONT_TO_END,
    )
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    user: Mapped["User"] = relationship(back_populates="study_sessions")
    question_set: Mapped["QuestionSet"] = relationship()
    answers: Mapped[List["SessionAnswer"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionAnswer.id",
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<StudySession(id={self.id}, user_id={self.user_id}, question_set_id={self.question_set_id})>"


class SessionAnswer(Base):
    """One confidence rating submission; rows are never updated."""

    __tablename__ = "session_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("study_sessions.id", ondelete="CASCADE"), index=True
    )
    question_id: Mapped[int] = mapped_column(Integer, ForeignKey("questions.id"), index=True)
    user_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    session: Mapped[StudySession] = relationship(back_populates="answers")
    question: Mapped["Question"] = relationship()

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return (
            f"<SessionAnswer(session_id={self.session_id}, question_id={self.question_id}, "
            f"user_rating={self.user_rating})>"
        )
