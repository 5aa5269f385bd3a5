from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from studydeck.api.v2.dependencies import get_current_user, get_db
from studydeck.models.user.user_model import User
from studydeck.schemas.timer import timer_schema
from studydeck.services.errors import StudySessionError
from studydeck.services.session_facade import SessionFacade

router = APIRouter()


@router.post("/{question_set_id}/timer/start", response_model=timer_schema.TimerResponse)
def start_timer(
    question_set_id: int,
    payload: Optional[timer_schema.TimerConfigIn] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.start_timer(question_set_id, payload or timer_schema.TimerConfigIn())
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.post("/{question_set_id}/timer/pause", response_model=timer_schema.TimerResponse)
def pause_timer(
    question_set_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.pause_timer(question_set_id)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.post("/{question_set_id}/timer/advance", response_model=timer_schema.TimerResponse)
def advance_timer_phase(
    question_set_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.advance_timer(question_set_id)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.post("/{question_set_id}/timer/stop", response_model=timer_schema.TimerResponse)
def stop_timer(
    question_set_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.stop_timer(question_set_id)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.get("/{question_set_id}/timer", response_model=timer_schema.TimerResponse)
def get_timer_state(
    question_set_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.timer_state(question_set_id)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.get("/{question_set_id}/timer/stats", response_model=timer_schema.TimerStatsResponse)
def get_timer_stats(
    question_set_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.timer_stats(question_set_id)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc


@router.put("/{question_set_id}/timer/config", response_model=timer_schema.TimerResponse)
def update_timer_config(
    question_set_id: int,
    payload: timer_schema.TimerConfigIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    facade = SessionFacade(db, current_user)
    try:
        return facade.update_timer_config(question_set_id, payload)
    except StudySessionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.code) from exc
