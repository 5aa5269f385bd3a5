"""Confidence-weighted question selection.

Everything in this module is pure: it receives the questions of a deck (in
creation order) and the answer log of one study session and decides which
question to show next.  Persistence lives in :mod:`studydeck.crud`.

Weights are derived from the *effective rating* of each question, i.e. the
rating of its most recent answer in the session:

========  ======
rating    weight
========  ======
unrated   6
1         5
2         4
3         3
4         2
5         0 (mastered, never drawn)
========  ======

A session is complete once every question is mastered.
"""

from __future__ import annotations

import enum
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence


MIN_RATING = 1
MAX_RATING = 5
UNRATED_WEIGHT = MAX_RATING + 1


class StudyMode(str, enum.Enum):
    FRONT_TO_END = "front-to-end"
    SHUFFLE = "shuffle"


class QuestionLike(Protocol):
    id: int


@dataclass(frozen=True, slots=True)
class AnswerRecord:
    """One rating submission. ``sequence`` orders submissions sharing a timestamp."""

    question_id: int
    rating: int
    answered_at: datetime
    sequence: int = 0


@dataclass(frozen=True, slots=True)
class SessionProgress:
    total_questions: int
    answered_questions: int
    mastered_questions: int
    current_points: int
    max_points: int


@dataclass(frozen=True, slots=True)
class Selection:
    question: Optional[Any]
    question_number: Optional[int]
    previous_rating: Optional[int]
    session_complete: bool
    progress: SessionProgress


@dataclass(frozen=True, slots=True)
class QuestionProbability:
    question: Any
    question_number: int
    last_rating: Optional[int]
    weight: float
    selection_probability: float
    is_selectable: bool


def is_valid_rating(rating: Any) -> bool:
    # ``bool`` is an ``int`` subclass; True/False are not ratings.
    return isinstance(rating, int) and not isinstance(rating, bool) and MIN_RATING <= rating <= MAX_RATING


def effective_ratings(answers: Iterable[AnswerRecord]) -> dict[int, int]:
    """Map each answered question id to the rating of its most recent answer."""
    ratings: dict[int, int] = {}
    for answer in sorted(answers, key=lambda a: (a.answered_at, a.sequence)):
        ratings[answer.question_id] = answer.rating
    return ratings


def question_weight(rating: Optional[int]) -> int:
    """Selection weight for an effective rating (``None`` = unrated)."""
    if rating is None:
        return UNRATED_WEIGHT
    if rating >= MAX_RATING:
        return 0
    return MAX_RATING + 1 - rating


def calculate_progress(questions: Sequence[QuestionLike], ratings: Mapping[int, int]) -> SessionProgress:
    """Progress snapshot; answers to questions no longer in the deck are ignored."""
    known = [ratings[q.id] for q in questions if q.id in ratings]
    total = len(questions)
    return SessionProgress(
        total_questions=total,
        answered_questions=len(known),
        mastered_questions=sum(1 for rating in known if rating == MAX_RATING),
        current_points=sum(known),
        max_points=total * MAX_RATING,
    )


def weighted_pool(
    questions: Sequence[QuestionLike], ratings: Mapping[int, int]
) -> list[tuple[Any, int]]:
    """Eligible ``(question, weight)`` pairs in creation order."""
    pool = []
    for question in questions:
        weight = question_weight(ratings.get(question.id))
        if weight > 0:
            pool.append((question, weight))
    return pool


def weighted_choice(pool: Sequence[tuple[Any, float]], rng: random.Random | None = None) -> Any:
    """Draw one item with probability proportional to its weight."""
    if not pool:
        raise ValueError("cannot draw from an empty pool")

    rng = rng or random
    total = sum(weight for _, weight in pool)
    threshold = rng.random() * total

    cumulative = 0.0
    for item, weight in pool:
        cumulative += weight
        if threshold < cumulative:
            return item

    # Floating point rounding can leave ``threshold`` equal to ``total``.
    return pool[-1][0]


def _deterministic_pick(pool: Sequence[tuple[Any, int]]) -> Any:
    # Highest weight first, ties by ascending question id.
    question, _ = min(pool, key=lambda item: (-item[1], item[0].id))
    return question


def select_next(
    questions: Sequence[QuestionLike],
    answers: Iterable[AnswerRecord],
    mode: StudyMode | str,
    rng: random.Random | None = None,
) -> Selection:
    """Pick the next question to show, or report that the session is complete.

    ``questions`` must be in creation order; ``question_number`` is the
    1-based position of the chosen question in that order.
    """

    mode = StudyMode(mode)
    ratings = effective_ratings(answers)
    progress = calculate_progress(questions, ratings)
    pool = weighted_pool(questions, ratings)

    if not pool:
        return Selection(
            question=None,
            question_number=None,
            previous_rating=None,
            session_complete=True,
            progress=progress,
        )

    if mode is StudyMode.SHUFFLE:
        chosen = weighted_choice(pool, rng)
    else:
        chosen = _deterministic_pick(pool)

    return Selection(
        question=chosen,
        question_number=_question_number(questions, chosen.id),
        previous_rating=ratings.get(chosen.id),
        session_complete=False,
        progress=progress,
    )


def describe_question(
    questions: Sequence[QuestionLike],
    answers: Iterable[AnswerRecord],
    question_id: int,
) -> Selection:
    """Build a selection for a question picked manually by the learner.

    Manual picks never report completion. Raises ``LookupError`` when the
    question is not part of ``questions``.
    """

    ratings = effective_ratings(answers)
    question = next((q for q in questions if q.id == question_id), None)
    if question is None:
        raise LookupError(question_id)

    return Selection(
        question=question,
        question_number=_question_number(questions, question_id),
        previous_rating=ratings.get(question_id),
        session_complete=False,
        progress=calculate_progress(questions, ratings),
    )


def selection_probabilities(
    questions: Sequence[QuestionLike],
    answers: Iterable[AnswerRecord],
    mode: StudyMode | str,
) -> list[QuestionProbability]:
    """Per-question weight and chance (in percent) of being picked next.

    In shuffle mode the chance is the weight share of the eligible pool; in
    front-to-end mode the deterministic winner gets 100 and every other
    question 0.  Mastered questions stay selectable by hand.
    """

    mode = StudyMode(mode)
    ratings = effective_ratings(answers)
    pool = weighted_pool(questions, ratings)
    pool_weight = float(sum(weight for _, weight in pool))
    winner_id = _deterministic_pick(pool).id if pool and mode is StudyMode.FRONT_TO_END else None

    result = []
    for index, question in enumerate(questions, start=1):
        rating = ratings.get(question.id)
        weight = float(question_weight(rating))
        if mode is StudyMode.FRONT_TO_END:
            probability = 100.0 if question.id == winner_id else 0.0
        else:
            probability = (weight / pool_weight) * 100 if pool_weight > 0 else 0.0
        result.append(
            QuestionProbability(
                question=question,
                question_number=index,
                last_rating=rating,
                weight=weight,
                selection_probability=probability,
                is_selectable=weight > 0 or rating == MAX_RATING,
            )
        )
    return result


def total_weight(probabilities: Iterable[QuestionProbability]) -> float:
    return sum(item.weight for item in probabilities)


def with_hypothetical_answer(
    answers: Iterable[AnswerRecord],
    question_id: int,
    rating: int,
    answered_at: datetime,
) -> list[AnswerRecord]:
    """Return a copy of ``answers`` with one unsaved rating appended last."""
    records = list(answers)
    last_sequence = max((a.sequence for a in records), default=0)
    latest = max((a.answered_at for a in records), default=answered_at)
    records.append(
        AnswerRecord(
            question_id=question_id,
            rating=rating,
            answered_at=max(latest, answered_at),
            sequence=last_sequence + 1,
        )
    )
    return records


def _question_number(questions: Sequence[QuestionLike], question_id: int) -> int:
    for index, question in enumerate(questions, start=1):
        if question.id == question_id:
            return index
    raise LookupError(question_id)
