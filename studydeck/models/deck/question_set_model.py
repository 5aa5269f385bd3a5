from __future__ import annotations

from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studydeck.db.base_class import Base
from studydeck.utils.time_utils import utcnow

if TYPE_CHECKING:
    from .project_model import Project


class QuestionSet(Base):
    """A deck of questions studied as a unit."""

    __tablename__ = "question_sets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id"), index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    project: Mapped["Project"] = relationship(back_populates="question_sets")
    questions: Mapped[List["Question"]] = relationship(
        back_populates="question_set",
        cascade="all, delete-orphan",
        order_by="Question.id",
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<QuestionSet(id={self.id}, name='{self.name}')>"


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    question_set_id: Mapped[int] = mapped_column(Integer, ForeignKey("question_sets.id"), index=True)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    answer_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Advisory only; the question selector ignores it.
    difficulty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    question_set: Mapped[QuestionSet] = relationship(back_populates="questions")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Question(id={self.id}, question_set_id={self.question_set_id})>"
