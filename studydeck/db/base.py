"""Déclare l'ensemble des modèles SQLAlchemy pour la détection automatique par Alembic."""

from studydeck.db.base_class import Base

# Utilisateurs
from studydeck.models.user.user_model import User

# Projets et decks (lecture seule pour le moteur de session)
from studydeck.models.deck.project_model import Project
from studydeck.models.deck.question_set_model import Question, QuestionSet

# Sessions d'étude et minuteur
from studydeck.models.study.study_session_model import SessionAnswer, StudySession
from studydeck.models.timer.timer_session_model import TimerEvent, TimerSession

__all__ = (
    "Base",
    "User",
    "Project",
    "QuestionSet",
    "Question",
    "StudySession",
    "SessionAnswer",
    "TimerSession",
    "TimerEvent",
)
