"""Domain exceptions raised by the study session and timer services.

Each exception carries a machine readable ``code`` and the HTTP status the
routers translate it to.
"""

from __future__ import annotations


class StudySessionError(Exception):
    code = "study_session_error"
    status_code = 400

    def __init__(self, code: str | None = None, message: str | None = None):
        if code is not None:
            self.code = code
        super().__init__(message or self.code)


class InvalidInputError(StudySessionError):
    code = "invalid_input"
    status_code = 400


class InvalidRatingError(InvalidInputError):
    code = "invalid_rating"


class InvalidModeError(InvalidInputError):
    code = "invalid_mode"


class InvalidTimerTransitionError(InvalidInputError):
    code = "invalid_timer_transition"


class NotFoundError(StudySessionError):
    code = "not_found"
    status_code = 404


class AccessDeniedError(StudySessionError):
    code = "question_set_forbidden"
    status_code = 403


class NoActiveSessionError(StudySessionError):
    """The operation needs a started study session."""

    code = "no_active_session"
    status_code = 409


class NoActiveTimerError(StudySessionError):
    """The operation needs a started timer."""

    code = "no_active_timer"
    status_code = 409
