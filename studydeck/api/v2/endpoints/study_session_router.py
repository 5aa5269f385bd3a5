from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from studydeck.api.v2.dependencies import get_current_user, get_db
from studydeck.models.user.user_model import User
from studydeck.schemas.study import study_session_schema as schema
from studydeck.services.errors import StudySessionError
from studydeck.services.session_facade import SessionFacade

router = APIRouter()


@router.post("/start", response_model=schema.SessionResponse)
def start_session(
    payload: schema.StartSessionIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.start(payload.question_set_id, payload.mode)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.get("/{question_set_id}/status", response_model=schema.SessionStatusOut)
def get_session_status(
    question_set_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.status(question_set_id)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.get("/{question_set_id}/next-question", response_model=schema.NextQuestionOut)
def get_next_question(
    question_set_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.next_question(question_set_id)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.post("/{question_set_id}/submit-answer", response_model=schema.SuccessOut)
def submit_answer(
    question_set_id: int,
    payload: schema.SubmitAnswerIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.submit_answer(question_set_id, payload.question_id, payload.confidence_rating)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.post("/{question_set_id}/complete", response_model=schema.SuccessOut)
def complete_session(
    question_set_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.complete(question_set_id)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.post("/{question_set_id}/restart", response_model=schema.SessionResponse)
def restart_session(
    question_set_id: int,
    payload: Optional[schema.SessionModeIn] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.restart(question_set_id, payload.mode if payload else None)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.post("/{question_set_id}/reset", response_model=schema.SessionResponse)
def reset_session(
    question_set_id: int,
    payload: Optional[schema.SessionModeIn] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.reset(question_set_id, payload.mode if payload else None)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.get("/{question_set_id}/questions-probabilities", response_model=schema.QuestionProbabilitiesOut)
def get_question_probabilities(
    question_set_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.question_probabilities(question_set_id)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.post("/{question_set_id}/select-question", response_model=schema.NextQuestionOut)
def select_question(
    question_set_id: int,
    payload: schema.SelectQuestionIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.select_question(question_set_id, payload.question_id)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.post(
    "/{question_set_id}/hypothetical-probabilities",
    response_model=schema.QuestionProbabilitiesOut,
)
def get_hypothetical_probabilities(
    question_set_id: int,
    payload: schema.HypotheticalRatingIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.hypothetical_probabilities(
            question_set_id, payload.question_id, payload.hypothetical_rating
        )
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc
