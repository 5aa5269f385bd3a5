from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from studydeck.models.deck.question_set_model import Question, QuestionSet
from studydeck.models.study.study_session_model import SessionAnswer, StudySession
from studydeck.services.question_selector import AnswerRecord, StudyMode
from studydeck.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Question sets (read only)
# ----------------------------------------------------------------------
def get_question_set(db: Session, question_set_id: int) -> QuestionSet | None:
    return (
        db.query(QuestionSet)
        .options(joinedload(QuestionSet.project))
        .filter(QuestionSet.id == question_set_id)
        .first()
    )


def list_questions(db: Session, question_set_id: int) -> list[Question]:
    """Questions of a set in creation order."""
    return (
        db.query(Question)
        .filter(Question.question_set_id == question_set_id)
        .order_by(Question.created_at.asc(), Question.id.asc())
        .all()
    )


def get_question(db: Session, question_set_id: int, question_id: int) -> Question | None:
    return (
        db.query(Question)
        .filter(Question.id == question_id, Question.question_set_id == question_set_id)
        .first()
    )


# ----------------------------------------------------------------------
# Study sessions
# ----------------------------------------------------------------------
def get_active_session(db: Session, user_id: int, question_set_id: int) -> StudySession | None:
    return (
        db.query(StudySession)
        .filter(
            StudySession.user_id == user_id,
            StudySession.question_set_id == question_set_id,
            StudySession.completed_at.is_(None),
        )
        .order_by(StudySession.started_at.desc(), StudySession.id.desc())
        .first()
    )


def get_or_create_active_session(
    db: Session,
    user_id: int,
    question_set_id: int,
    mode: StudyMode,
) -> tuple[StudySession, bool]:
    """Return the active session, creating it when none exists.

    The second element is ``True`` when this call created the row.  A
    concurrent request that inserts first wins through the partial unique
    index; the loser rolls back and returns the winner's row.
    """

    existing = get_active_session(db, user_id, question_set_id)
    if existing is not None:
        return existing, False

    session = StudySession(
        user_id=user_id,
        question_set_id=question_set_id,
        mode=mode,
        started_at=utcnow(),
    )
    db.add(session)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = get_active_session(db, user_id, question_set_id)
        if winner is None:
            raise
        logger.info(
            "Concurrent start for user %s / question set %s resolved to session %s",
            user_id,
            question_set_id,
            winner.id,
        )
        return winner, False

    db.refresh(session)
    return session, True


def complete_session(db: Session, session: StudySession, completed_at: datetime | None = None) -> StudySession:
    if session.completed_at is None:
        session.completed_at = completed_at or utcnow()
        db.add(session)
        db.commit()
        db.refresh(session)
    return session


def list_session_ids(db: Session, user_id: int, question_set_id: int) -> list[int]:
    """Ids of every session, active or completed, for a (user, question set)."""
    rows = (
        db.query(StudySession.id)
        .filter(StudySession.user_id == user_id, StudySession.question_set_id == question_set_id)
        .all()
    )
    return [row.id for row in rows]


def delete_sessions(db: Session, session_ids: Iterable[int]) -> int:
    """Hard-delete sessions and their answers. Timer rows are handled by ``timer_crud``."""
    session_ids = list(session_ids)
    if not session_ids:
        return 0

    db.query(SessionAnswer).filter(SessionAnswer.session_id.in_(session_ids)).delete(
        synchronize_session=False
    )
    deleted = (
        db.query(StudySession)
        .filter(StudySession.id.in_(session_ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    db.expire_all()
    return deleted


# ----------------------------------------------------------------------
# Answers
# ----------------------------------------------------------------------
def list_answers(db: Session, session_id: int) -> list[SessionAnswer]:
    return (
        db.query(SessionAnswer)
        .filter(SessionAnswer.session_id == session_id)
        .order_by(SessionAnswer.answered_at.asc(), SessionAnswer.id.asc())
        .all()
    )


def load_answer_log(db: Session, session_id: int) -> list[AnswerRecord]:
    """Answers of a session as plain records for the question selector."""
    return [
        AnswerRecord(
            question_id=answer.question_id,
            rating=answer.user_rating,
            answered_at=answer.answered_at,
            sequence=answer.id,
        )
        for answer in list_answers(db, session_id)
    ]


def add_answer(db: Session, session: StudySession, question_id: int, rating: int) -> SessionAnswer:
    answer = SessionAnswer(
        session_id=session.id,
        question_id=question_id,
        user_rating=rating,
        answered_at=utcnow(),
    )
    db.add(answer)
    db.commit()
    db.refresh(answer)
    return answer
