"""Utility helpers for test factories."""

from __future__ import annotations

from datetime import datetime, timedelta

from studydeck.models.deck.project_model import Project
from studydeck.models.deck.question_set_model import Question, QuestionSet
from studydeck.models.user.user_model import User
from studydeck.utils.time_utils import utcnow


def create_user(db, **kwargs) -> User:
    defaults = {
        "username": "user",
        "email": "user@example.com",
        "hashed_password": "x",
        "is_active": True,
        "created_at": utcnow(),
    }
    defaults.update(kwargs)
    user = User(**defaults)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_question_set(
    db,
    owner: User,
    *,
    name: str = "Deck",
    question_count: int = 3,
    question_texts: list[str] | None = None,
) -> QuestionSet:
    """Project + question set owned by ``owner``; questions are created one second apart."""
    project = Project(user_id=owner.id, name=f"{name} project")
    db.add(project)
    db.flush()

    question_set = QuestionSet(project_id=project.id, name=name)
    db.add(question_set)
    db.flush()

    texts = question_texts or [f"Question {index}" for index in range(1, question_count + 1)]
    base_time = datetime(2024, 1, 1, 9, 0, 0)
    for index, text in enumerate(texts):
        db.add(
            Question(
                question_set_id=question_set.id,
                question_text=text,
                answer_text=f"Answer to {text}",
                difficulty=3,
                created_at=base_time + timedelta(seconds=index),
            )
        )

    db.commit()
    db.refresh(question_set)
    return question_set


def question_ids(question_set: QuestionSet) -> list[int]:
    return [question.id for question in question_set.questions]


class FakeClock:
    """Callable clock for timer tests; advance it with ``tick``."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def tick(self, seconds: int) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now
