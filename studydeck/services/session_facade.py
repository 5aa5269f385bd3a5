"""Boundary between the HTTP routers and the study/timer services.

Routers only talk to :class:`SessionFacade`; it runs the lifecycle, selector
and timer services and turns their results into the response schemas.
"""

from __future__ import annotations

import random
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from studydeck.models.study.study_session_model import StudySession
from studydeck.models.user.user_model import User
from studydeck.schemas.study import study_session_schema as study_schema
from studydeck.schemas.timer import timer_schema
from studydeck.services.errors import NoActiveSessionError
from studydeck.services.question_selector import Selection, SessionProgress
from studydeck.services.study_session_service import ProbabilityReport, StudySessionService
from studydeck.services.timer_service import TimerService, TimerView


class SessionFacade:
    def __init__(
        self,
        db: Session,
        user: User,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.sessions = StudySessionService(db, user, rng=rng)
        self.timers = TimerService(db, user, clock=clock)

    # ------------------------------------------------------------------
    # Study sessions
    # ------------------------------------------------------------------
    def start(self, question_set_id: int, mode: Optional[str]) -> study_schema.SessionResponse:
        session, is_resumed = self.sessions.start_or_resume(question_set_id, mode)
        return study_schema.SessionResponse(session=_session_out(session, is_resumed))

    def status(self, question_set_id: int) -> study_schema.SessionStatusOut:
        status = self.sessions.status(question_set_id)
        return study_schema.SessionStatusOut(
            has_active_session=status.has_active_session,
            progress=_progress_out(status.progress),
            session_complete=status.session_complete,
        )

    def next_question(self, question_set_id: int) -> study_schema.NextQuestionOut:
        try:
            selection = self.sessions.get_next_question(question_set_id)
        except NoActiveSessionError:
            return study_schema.NextQuestionOut(has_active_session=False)
        return _next_question_out(selection)

    def select_question(self, question_set_id: int, question_id: int) -> study_schema.NextQuestionOut:
        return _next_question_out(self.sessions.select_question(question_set_id, question_id))

    def submit_answer(self, question_set_id: int, question_id: int, rating: int) -> study_schema.SuccessOut:
        self.sessions.submit_answer(question_set_id, question_id, rating)
        return study_schema.SuccessOut()

    def complete(self, question_set_id: int) -> study_schema.SuccessOut:
        self.sessions.complete(question_set_id)
        return study_schema.SuccessOut()

    def restart(self, question_set_id: int, mode: Optional[str]) -> study_schema.SessionResponse:
        session = self.sessions.restart(question_set_id, mode)
        return study_schema.SessionResponse(session=_session_out(session, False))

    def reset(self, question_set_id: int, mode: Optional[str]) -> study_schema.SessionResponse:
        session = self.sessions.reset(question_set_id, mode)
        return study_schema.SessionResponse(session=_session_out(session, False))

    def question_probabilities(self, question_set_id: int) -> study_schema.QuestionProbabilitiesOut:
        return _probabilities_out(self.sessions.question_probabilities(question_set_id))

    def hypothetical_probabilities(
        self, question_set_id: int, question_id: int, rating: int
    ) -> study_schema.QuestionProbabilitiesOut:
        return _probabilities_out(
            self.sessions.hypothetical_probabilities(question_set_id, question_id, rating)
        )

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------
    def start_timer(self, question_set_id: int, config: timer_schema.TimerConfigIn) -> timer_schema.TimerResponse:
        view = self.timers.start(
            question_set_id,
            work_duration=config.work_duration,
            rest_duration=config.rest_duration,
            is_infinite=config.is_infinite,
        )
        return timer_schema.TimerResponse(timer=_timer_out(view))

    def pause_timer(self, question_set_id: int) -> timer_schema.TimerResponse:
        return timer_schema.TimerResponse(timer=_timer_out(self.timers.pause(question_set_id)))

    def advance_timer(self, question_set_id: int) -> timer_schema.TimerResponse:
        return timer_schema.TimerResponse(timer=_timer_out(self.timers.advance(question_set_id)))

    def stop_timer(self, question_set_id: int) -> timer_schema.TimerResponse:
        return timer_schema.TimerResponse(timer=_timer_out(self.timers.stop(question_set_id)))

    def timer_state(self, question_set_id: int) -> timer_schema.TimerResponse:
        view = self.timers.state(question_set_id)
        return timer_schema.TimerResponse(timer=_timer_out(view) if view else None)

    def timer_stats(self, question_set_id: int) -> timer_schema.TimerStatsResponse:
        stats = self.timers.stats(question_set_id)
        return timer_schema.TimerStatsResponse(
            stats=timer_schema.TimerStatsOut(
                total_work_time=stats.total_work_time,
                total_rest_time=stats.total_rest_time,
                total_time=stats.total_time,
                cycles_completed=stats.cycles_completed,
                work_percentage=stats.work_percentage,
                current_phase=stats.current_phase,
                events=[timer_schema.TimerEventOut.model_validate(event) for event in stats.events],
            )
        )

    def update_timer_config(
        self, question_set_id: int, config: timer_schema.TimerConfigIn
    ) -> timer_schema.TimerResponse:
        view = self.timers.update_config(
            question_set_id,
            work_duration=config.work_duration,
            rest_duration=config.rest_duration,
            is_infinite=config.is_infinite,
        )
        return timer_schema.TimerResponse(timer=_timer_out(view))


def _session_out(session: StudySession, is_resumed: bool) -> study_schema.SessionOut:
    return study_schema.SessionOut(
        id=session.id,
        question_set_id=session.question_set_id,
        mode=session.mode.value,
        started_at=session.started_at,
        completed_at=session.completed_at,
        is_resumed=is_resumed,
    )


def _progress_out(progress: SessionProgress | None) -> study_schema.ProgressOut | None:
    if progress is None:
        return None
    return study_schema.ProgressOut(
        total_questions=progress.total_questions,
        answered_questions=progress.answered_questions,
        mastered_questions=progress.mastered_questions,
        current_points=progress.current_points,
        max_points=progress.max_points,
    )


def _next_question_out(selection: Selection) -> study_schema.NextQuestionOut:
    question = selection.question
    return study_schema.NextQuestionOut(
        has_active_session=True,
        question=study_schema.QuestionOut.model_validate(question) if question is not None else None,
        question_number=selection.question_number,
        previous_score=selection.previous_rating,
        session_complete=selection.session_complete,
        progress=_progress_out(selection.progress),
    )


def _probabilities_out(report: ProbabilityReport) -> study_schema.QuestionProbabilitiesOut:
    return study_schema.QuestionProbabilitiesOut(
        questions=[
            study_schema.QuestionProbabilityOut(
                id=item.question.id,
                question_text=item.question.question_text,
                question_number=item.question_number,
                last_rating=item.last_rating,
                weight=item.weight,
                selection_probability=item.selection_probability,
                is_selectable=item.is_selectable,
            )
            for item in report.questions
        ],
        total_weight=report.total_weight,
        current_question_id=report.current_question_id,
    )


def _timer_out(view: TimerView) -> timer_schema.TimerStateOut:
    snapshot = view.snapshot
    return timer_schema.TimerStateOut(
        id=view.id,
        current_phase=snapshot.current_phase,
        previous_phase=snapshot.previous_phase,
        phase_started_at=snapshot.phase_started_at,
        elapsed_time_in_phase=snapshot.elapsed_time_in_phase,
        cycles_completed=snapshot.cycles_completed,
        total_work_time=snapshot.total_work_time,
        total_rest_time=snapshot.total_rest_time,
        work_duration=snapshot.work_duration,
        rest_duration=snapshot.rest_duration,
        is_infinite=snapshot.is_infinite,
        remaining_time=view.remaining_time,
        started_at=snapshot.started_at,
        completed_at=snapshot.completed_at,
    )
