import random

import pytest

from studydeck.crud import study_session_crud
from studydeck.models.study.study_session_model import SessionAnswer, StudySession
from studydeck.models.timer.timer_session_model import TimerEvent, TimerSession
from studydeck.services.errors import (
    AccessDeniedError,
    InvalidModeError,
    InvalidRatingError,
    NoActiveSessionError,
    NotFoundError,
)
from studydeck.services.question_selector import StudyMode
from studydeck.services.study_session_service import StudySessionService
from studydeck.services.timer_service import TimerService
from tests.utils import create_question_set, create_user, question_ids


@pytest.fixture()
def owner(db_session):
    return create_user(db_session, username="owner", email="owner@example.com")


@pytest.fixture()
def deck(db_session, owner):
    return create_question_set(db_session, owner, question_count=3)


def test_start_creates_then_resumes(db_session, owner, deck):
    service = StudySessionService(db_session, owner)

    session, resumed = service.start_or_resume(deck.id, "shuffle")
    assert resumed is False
    assert session.mode is StudyMode.SHUFFLE
    assert session.completed_at is None

    again, resumed = service.start_or_resume(deck.id, "front-to-end")
    assert resumed is True
    assert again.id == session.id
    # The active session keeps the mode it was started with.
    assert again.mode is StudyMode.SHUFFLE


def test_start_defaults_to_front_to_end(db_session, owner, deck):
    session, _ = StudySessionService(db_session, owner).start_or_resume(deck.id)

    assert session.mode is StudyMode.FRONT_TO_END


def test_start_rejects_unknown_mode(db_session, owner, deck):
    with pytest.raises(InvalidModeError) as exc:
        StudySessionService(db_session, owner).start_or_resume(deck.id, "random")
    assert exc.value.status_code == 400
    assert exc.value.code == "invalid_mode"


def test_question_set_access_rules(db_session, owner, deck):
    stranger = create_user(db_session, username="stranger", email="stranger@example.com")

    with pytest.raises(AccessDeniedError) as exc:
        StudySessionService(db_session, stranger).start_or_resume(deck.id)
    assert exc.value.status_code == 403

    with pytest.raises(NotFoundError) as exc:
        StudySessionService(db_session, owner).start_or_resume(9999)
    assert exc.value.code == "question_set_not_found"


def test_concurrent_start_returns_the_winner(db_session, owner, deck, monkeypatch):
    winner = StudySession(user_id=owner.id, question_set_id=deck.id, mode=StudyMode.FRONT_TO_END)
    db_session.add(winner)
    db_session.commit()

    real_lookup = study_session_crud.get_active_session
    calls = {"count": 0}

    def lookup_missing_first(db, user_id, question_set_id):
        calls["count"] += 1
        if calls["count"] == 1:
            # Simulates a request that checked before the winner committed.
            return None
        return real_lookup(db, user_id, question_set_id)

    monkeypatch.setattr(study_session_crud, "get_active_session", lookup_missing_first)

    session, created = study_session_crud.get_or_create_active_session(
        db_session, owner.id, deck.id, StudyMode.SHUFFLE
    )

    assert created is False
    assert session.id == winner.id
    assert db_session.query(StudySession).count() == 1


def test_front_to_end_walk_through_until_complete(db_session, owner, deck):
    service = StudySessionService(db_session, owner)
    service.start_or_resume(deck.id, "front-to-end")
    ids = question_ids(deck)

    seen = []
    for _ in range(3):
        selection = service.get_next_question(deck.id)
        seen.append(selection.question.id)
        service.submit_answer(deck.id, selection.question.id, 5)
    assert seen == ids

    final = service.get_next_question(deck.id)
    assert final.session_complete is True
    assert final.question is None
    assert final.progress.mastered_questions == 3
    assert final.progress.current_points == final.progress.max_points == 15

    # Completion closes the session.
    assert service.get_active_session(deck.id) is None
    with pytest.raises(NoActiveSessionError):
        service.get_next_question(deck.id)


def test_low_rated_question_comes_back_first(db_session, owner, deck):
    service = StudySessionService(db_session, owner)
    service.start_or_resume(deck.id)
    first, second, third = question_ids(deck)

    service.submit_answer(deck.id, first, 4)
    service.submit_answer(deck.id, second, 1)
    service.submit_answer(deck.id, third, 3)

    assert service.get_next_question(deck.id).question.id == second

    service.submit_answer(deck.id, second, 5)
    selection = service.get_next_question(deck.id)
    assert selection.question.id == third
    assert selection.previous_rating == 3


def test_shuffle_mode_uses_injected_rng(db_session, owner, deck):
    picks = []
    for _ in range(2):
        service = StudySessionService(db_session, owner, rng=random.Random(42))
        service.start_or_resume(deck.id, "shuffle")
        picks.append(service.get_next_question(deck.id).question.id)

    assert picks[0] == picks[1]


def test_submit_answer_validation(db_session, owner, deck):
    service = StudySessionService(db_session, owner)
    other_deck = create_question_set(db_session, owner, name="Other", question_count=1)
    question_id = question_ids(deck)[0]

    with pytest.raises(NoActiveSessionError):
        service.submit_answer(deck.id, question_id, 3)

    service.start_or_resume(deck.id)

    for bad_rating in (0, 6, True):
        with pytest.raises(InvalidRatingError):
            service.submit_answer(deck.id, question_id, bad_rating)

    with pytest.raises(NotFoundError) as exc:
        service.submit_answer(deck.id, question_ids(other_deck)[0], 3)
    assert exc.value.code == "question_not_found"

    assert db_session.query(SessionAnswer).count() == 0


def test_every_submission_is_kept(db_session, owner, deck):
    service = StudySessionService(db_session, owner)
    session, _ = service.start_or_resume(deck.id)
    question_id = question_ids(deck)[0]

    service.submit_answer(deck.id, question_id, 2)
    service.submit_answer(deck.id, question_id, 4)

    answers = study_session_crud.list_answers(db_session, session.id)
    assert [answer.user_rating for answer in answers] == [2, 4]
    assert service.status(deck.id).progress.current_points == 4


def test_complete_is_noop_without_active_session(db_session, owner, deck):
    service = StudySessionService(db_session, owner)

    assert service.complete(deck.id) is None

    session, _ = service.start_or_resume(deck.id)
    completed = service.complete(deck.id)
    assert completed.id == session.id
    assert completed.completed_at is not None


def test_restart_keeps_history(db_session, owner, deck):
    service = StudySessionService(db_session, owner)
    first, _ = service.start_or_resume(deck.id, "front-to-end")
    service.submit_answer(deck.id, question_ids(deck)[0], 3)

    second = service.restart(deck.id, "shuffle")

    assert second.id != first.id
    assert second.mode is StudyMode.SHUFFLE
    db_session.refresh(first)
    assert first.completed_at is not None
    assert db_session.query(SessionAnswer).count() == 1
    # The new session starts with a clean answer log.
    assert service.status(deck.id).progress.answered_questions == 0


def test_reset_removes_sessions_answers_and_timers(db_session, owner, deck):
    service = StudySessionService(db_session, owner)
    timers = TimerService(db_session, owner)

    service.start_or_resume(deck.id)
    service.submit_answer(deck.id, question_ids(deck)[0], 2)
    timers.start(deck.id)
    service.restart(deck.id)
    service.submit_answer(deck.id, question_ids(deck)[1], 4)

    fresh = service.reset(deck.id, "shuffle")

    assert db_session.query(StudySession).count() == 1
    assert db_session.query(StudySession).one().id == fresh.id
    assert fresh.mode is StudyMode.SHUFFLE
    assert db_session.query(SessionAnswer).count() == 0
    assert db_session.query(TimerSession).count() == 0
    assert db_session.query(TimerEvent).count() == 0


def test_reset_leaves_other_users_alone(db_session, owner, deck):
    other = create_user(db_session, username="other", email="other@example.com")
    other_deck = create_question_set(db_session, other, name="Theirs")
    StudySessionService(db_session, other).start_or_resume(other_deck.id)

    StudySessionService(db_session, owner).reset(deck.id)

    assert db_session.query(StudySession).count() == 2


def test_status_idle_and_active(db_session, owner, deck):
    service = StudySessionService(db_session, owner)

    idle = service.status(deck.id)
    assert idle.has_active_session is False
    assert idle.progress is None
    assert idle.session_complete is False

    service.start_or_resume(deck.id)
    service.submit_answer(deck.id, question_ids(deck)[0], 5)
    status = service.status(deck.id)
    assert status.has_active_session is True
    assert status.progress.answered_questions == 1
    assert status.progress.mastered_questions == 1
    assert status.session_complete is False


def test_question_probabilities(db_session, owner, deck):
    service = StudySessionService(db_session, owner)
    service.start_or_resume(deck.id, "shuffle")
    first, second, third = question_ids(deck)
    service.submit_answer(deck.id, first, 5)
    service.submit_answer(deck.id, second, 4)

    report = service.question_probabilities(deck.id)

    assert report.total_weight == 8
    assert report.current_question_id == second
    by_id = {item.question.id: item for item in report.questions}
    assert by_id[first].is_selectable is True
    assert by_id[first].selection_probability == 0
    assert by_id[third].selection_probability == pytest.approx(75.0)


def test_hypothetical_probabilities_do_not_persist(db_session, owner, deck):
    service = StudySessionService(db_session, owner)
    service.start_or_resume(deck.id, "shuffle")
    first = question_ids(deck)[0]

    report = service.hypothetical_probabilities(deck.id, first, 5)

    assert report.current_question_id == first
    assert report.total_weight == 12
    assert db_session.query(SessionAnswer).count() == 0

    with pytest.raises(InvalidRatingError):
        service.hypothetical_probabilities(deck.id, first, 9)


def test_select_question(db_session, owner, deck):
    service = StudySessionService(db_session, owner)
    service.start_or_resume(deck.id)
    first, _, third = question_ids(deck)
    service.submit_answer(deck.id, first, 5)

    selection = service.select_question(deck.id, first)
    assert selection.question.id == first
    assert selection.previous_rating == 5
    assert selection.question_number == 1

    assert service.select_question(deck.id, third).question_number == 3

    with pytest.raises(NotFoundError):
        service.select_question(deck.id, 9999)
