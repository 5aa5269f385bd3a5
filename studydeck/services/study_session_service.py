from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from studydeck.core.config import settings
from studydeck.crud import study_session_crud, timer_crud
from studydeck.models.deck.question_set_model import Question, QuestionSet
from studydeck.models.study.study_session_model import SessionAnswer, StudySession
from studydeck.models.user.user_model import User
from studydeck.services import question_selector
from studydeck.services.errors import (
    AccessDeniedError,
    InvalidInputError,
    InvalidModeError,
    InvalidRatingError,
    NoActiveSessionError,
    NotFoundError,
)
from studydeck.services.question_selector import (
    QuestionProbability,
    Selection,
    SessionProgress,
    StudyMode,
)
from studydeck.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionStatus:
    has_active_session: bool
    progress: Optional[SessionProgress]
    session_complete: bool


@dataclass(frozen=True, slots=True)
class ProbabilityReport:
    questions: list[QuestionProbability]
    total_weight: float
    current_question_id: Optional[int]


def coerce_mode(mode: StudyMode | str | None) -> StudyMode:
    """Parse a requested mode; ``None`` falls back to ``DEFAULT_STUDY_MODE``."""
    if mode is None:
        mode = settings.DEFAULT_STUDY_MODE
    try:
        return StudyMode(mode)
    except ValueError as exc:
        raise InvalidModeError() from exc


def ensure_question_set_access(db: Session, user: User, question_set_id: int) -> QuestionSet:
    """Return the question set when it exists and belongs to one of the user's projects."""
    question_set = study_session_crud.get_question_set(db, question_set_id)
    if question_set is None:
        raise NotFoundError("question_set_not_found")
    if question_set.project is None or question_set.project.user_id != user.id:
        logger.warning("User %s denied access to question set %s", user.id, question_set_id)
        raise AccessDeniedError()
    return question_set


class StudySessionService:
    """Study session lifecycle for one user.

    Keeps at most one active session per question set, feeds the question
    selector with the deck and the session's answer log and records ratings.
    """

    def __init__(self, db: Session, user: User, rng: random.Random | None = None):
        self.db = db
        self.user = user
        self.rng = rng

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start_or_resume(
        self, question_set_id: int, mode: StudyMode | str | None = None
    ) -> tuple[StudySession, bool]:
        """Return ``(session, is_resumed)``; an active session keeps its mode."""
        ensure_question_set_access(self.db, self.user, question_set_id)
        mode = coerce_mode(mode)

        session, created = study_session_crud.get_or_create_active_session(
            self.db, self.user.id, question_set_id, mode
        )
        if created:
            logger.info(
                "Started study session %s (%s) for user %s on question set %s",
                session.id,
                session.mode.value,
                self.user.id,
                question_set_id,
            )
        else:
            logger.info("Resumed study session %s for user %s", session.id, self.user.id)
        return session, not created

    def complete(self, question_set_id: int) -> StudySession | None:
        """Mark the active session as completed; no-op without one."""
        ensure_question_set_access(self.db, self.user, question_set_id)
        session = self.get_active_session(question_set_id)
        if session is None:
            return None
        study_session_crud.complete_session(self.db, session)
        logger.info("Completed study session %s for user %s", session.id, self.user.id)
        return session

    def restart(self, question_set_id: int, mode: StudyMode | str | None = None) -> StudySession:
        """Close the active session (history kept) and open a new one."""
        mode = coerce_mode(mode)
        self.complete(question_set_id)
        session, _ = self.start_or_resume(question_set_id, mode)
        return session

    def reset(self, question_set_id: int, mode: StudyMode | str | None = None) -> StudySession:
        """Delete every session of this question set for the user, then start fresh."""
        ensure_question_set_access(self.db, self.user, question_set_id)
        mode = coerce_mode(mode)

        session_ids = study_session_crud.list_session_ids(self.db, self.user.id, question_set_id)
        deleted_timers = timer_crud.delete_timers_for_sessions(self.db, session_ids)
        deleted_sessions = study_session_crud.delete_sessions(self.db, session_ids)
        logger.info(
            "Reset question set %s for user %s: %s sessions and %s timer sessions deleted",
            question_set_id,
            self.user.id,
            deleted_sessions,
            deleted_timers,
        )

        session, _ = self.start_or_resume(question_set_id, mode)
        return session

    def get_active_session(self, question_set_id: int) -> StudySession | None:
        return study_session_crud.get_active_session(self.db, self.user.id, question_set_id)

    # ------------------------------------------------------------------
    # Questions and answers
    # ------------------------------------------------------------------
    def get_next_question(self, question_set_id: int) -> Selection:
        ensure_question_set_access(self.db, self.user, question_set_id)
        session = self._require_active_session(question_set_id)
        questions = study_session_crud.list_questions(self.db, question_set_id)
        answers = study_session_crud.load_answer_log(self.db, session.id)

        selection = question_selector.select_next(questions, answers, session.mode, self.rng)
        if selection.session_complete:
            study_session_crud.complete_session(self.db, session)
            logger.info(
                "Study session %s completed: all %s questions mastered",
                session.id,
                selection.progress.total_questions,
            )
        return selection

    def select_question(self, question_set_id: int, question_id: int) -> Selection:
        """Manual pick from the sidebar; mastered questions may be revisited."""
        ensure_question_set_access(self.db, self.user, question_set_id)
        session = self._require_active_session(question_set_id)
        questions = study_session_crud.list_questions(self.db, question_set_id)
        answers = study_session_crud.load_answer_log(self.db, session.id)

        try:
            return question_selector.describe_question(questions, answers, question_id)
        except LookupError as exc:
            raise NotFoundError("question_not_found") from exc

    def submit_answer(self, question_set_id: int, question_id: int, rating: int) -> SessionAnswer:
        ensure_question_set_access(self.db, self.user, question_set_id)
        if not question_selector.is_valid_rating(rating):
            raise InvalidRatingError()
        session = self._require_active_session(question_set_id)
        self._require_question(question_set_id, question_id)

        answer = study_session_crud.add_answer(self.db, session, question_id, rating)
        logger.info(
            "Session %s: question %s rated %s by user %s",
            session.id,
            question_id,
            rating,
            self.user.id,
        )
        return answer

    def status(self, question_set_id: int) -> SessionStatus:
        ensure_question_set_access(self.db, self.user, question_set_id)
        session = self.get_active_session(question_set_id)
        if session is None:
            return SessionStatus(has_active_session=False, progress=None, session_complete=False)

        questions = study_session_crud.list_questions(self.db, question_set_id)
        answers = study_session_crud.load_answer_log(self.db, session.id)
        ratings = question_selector.effective_ratings(answers)
        progress = question_selector.calculate_progress(questions, ratings)
        return SessionStatus(
            has_active_session=True,
            progress=progress,
            session_complete=not question_selector.weighted_pool(questions, ratings),
        )

    # ------------------------------------------------------------------
    # Selection probabilities
    # ------------------------------------------------------------------
    def question_probabilities(self, question_set_id: int) -> ProbabilityReport:
        ensure_question_set_access(self.db, self.user, question_set_id)
        session = self._require_active_session(question_set_id)
        questions = study_session_crud.list_questions(self.db, question_set_id)
        answers = study_session_crud.load_answer_log(self.db, session.id)

        probabilities = question_selector.selection_probabilities(questions, answers, session.mode)
        return ProbabilityReport(
            questions=probabilities,
            total_weight=question_selector.total_weight(probabilities),
            current_question_id=answers[-1].question_id if answers else None,
        )

    def hypothetical_probabilities(
        self, question_set_id: int, question_id: int, rating: int
    ) -> ProbabilityReport:
        """Probabilities as they would be after rating ``question_id``; nothing is saved."""
        ensure_question_set_access(self.db, self.user, question_set_id)
        if not question_selector.is_valid_rating(rating):
            raise InvalidRatingError()
        session = self._require_active_session(question_set_id)
        self._require_question(question_set_id, question_id)
        questions = study_session_crud.list_questions(self.db, question_set_id)
        answers = study_session_crud.load_answer_log(self.db, session.id)

        answers = question_selector.with_hypothetical_answer(answers, question_id, rating, utcnow())
        probabilities = question_selector.selection_probabilities(questions, answers, session.mode)
        return ProbabilityReport(
            questions=probabilities,
            total_weight=question_selector.total_weight(probabilities),
            current_question_id=question_id,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_active_session(self, question_set_id: int) -> StudySession:
        session = self.get_active_session(question_set_id)
        if session is None:
            raise NoActiveSessionError()
        return session

    def _require_question(self, question_set_id: int, question_id: int) -> Question:
        if isinstance(question_id, bool) or not isinstance(question_id, int):
            raise InvalidInputError("invalid_question_id")
        question = study_session_crud.get_question(self.db, question_set_id, question_id)
        if question is None:
            raise NotFoundError("question_not_found")
        return question
