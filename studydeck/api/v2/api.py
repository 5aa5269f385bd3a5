from fastapi import APIRouter

from .endpoints import study_session_router, timer_router

api_router = APIRouter()

api_router.include_router(study_session_router.router, prefix="/study-sessions", tags=["Study Sessions"])
api_router.include_router(timer_router.router, prefix="/study-sessions", tags=["Timer"])
