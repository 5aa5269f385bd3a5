from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from studydeck.schemas.camel import CamelModel


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------
class StartSessionIn(CamelModel):
    question_set_id: int = Field(..., ge=1)
    # Validated by the service so an unknown mode yields ``invalid_mode``.
    mode: Optional[str] = None


class SessionModeIn(CamelModel):
    mode: Optional[str] = None


class SubmitAnswerIn(CamelModel):
    question_id: int = Field(..., ge=1)
    confidence_rating: int


class SelectQuestionIn(CamelModel):
    question_id: int = Field(..., ge=1)


class HypotheticalRatingIn(CamelModel):
    question_id: int = Field(..., ge=1)
    hypothetical_rating: int


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------
class QuestionOut(CamelModel):
    id: int
    question_set_id: int
    question_text: str
    answer_text: Optional[str] = None
    difficulty: Optional[int] = None
    created_at: datetime


class SessionOut(CamelModel):
    id: int
    question_set_id: int
    mode: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    is_resumed: bool = False


class ProgressOut(CamelModel):
    total_questions: int
    answered_questions: int
    mastered_questions: int
    current_points: int
    max_points: int


class SuccessOut(CamelModel):
    success: bool = True


class SessionResponse(SuccessOut):
    session: SessionOut


class SessionStatusOut(SuccessOut):
    has_active_session: bool
    progress: Optional[ProgressOut] = None
    session_complete: bool = False


class NextQuestionOut(SuccessOut):
    has_active_session: bool
    question: Optional[QuestionOut] = None
    question_number: Optional[int] = None
    previous_score: Optional[int] = None
    session_complete: bool = False
    progress: Optional[ProgressOut] = None


class QuestionProbabilityOut(CamelModel):
    id: int
    question_text: str
    question_number: int
    last_rating: Optional[int] = None
    weight: float
    selection_probability: float
    is_selectable: bool


class QuestionProbabilitiesOut(CamelModel):
    questions: List[QuestionProbabilityOut]
    total_weight: float
    current_question_id: Optional[int] = None
