from sqlalchemy import Integer, String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from studydeck.db.base_class import Base
from studydeck.utils.time_utils import utcnow
from typing import List, TYPE_CHECKING
from datetime import datetime

if TYPE_CHECKING:
    from ..deck.project_model import Project
    from ..study.study_session_model import StudySession


class User(Base):
    """Learner account.

    Accounts are issued and their credentials managed outside of this service;
    the session engine only needs the identity and the ``is_active`` flag.
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # --- Relations ---
    projects: Mapped[List["Project"]] = relationship(back_populates="owner", cascade="all, delete-orphan")
    study_sessions: Mapped[List["StudySession"]] = relationship(back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"
