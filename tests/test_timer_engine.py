from datetime import datetime, timedelta, timezone

import pytest

from studydeck.services import timer_engine as engine
from studydeck.services.timer_engine import (
    InvalidTransition,
    TimerConfig,
    TimerEventType,
    TimerPhase,
)

T0 = datetime(2024, 1, 1, 12, 0, 0)


def _at(seconds):
    return T0 + timedelta(seconds=seconds)


def test_begin_starts_in_work_phase():
    snapshot, events = engine.begin(TimerConfig(work_duration=600, rest_duration=120), T0)

    assert snapshot.current_phase is TimerPhase.WORK
    assert snapshot.phase_started_at == T0
    assert snapshot.started_at == T0
    assert snapshot.work_duration == 600
    assert [e.event_type for e in events] == [TimerEventType.START]
    assert events[0].to_phase is TimerPhase.WORK


def test_begin_normalises_aware_timestamps_to_naive_utc():
    aware = datetime(2024, 1, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))

    snapshot, _ = engine.begin(TimerConfig(), aware)

    assert snapshot.started_at == T0
    assert snapshot.started_at.tzinfo is None


def test_pause_banks_elapsed_work_time():
    snapshot, _ = engine.begin(TimerConfig(), T0)

    paused, events = engine.pause(snapshot, _at(90.7))

    assert paused.current_phase is TimerPhase.PAUSED
    assert paused.previous_phase is TimerPhase.WORK
    assert paused.elapsed_time_in_phase == 90
    assert paused.total_work_time == 90
    assert paused.phase_started_at is None
    assert events[0].event_type is TimerEventType.PAUSE
    assert events[0].duration == 90


def test_resume_continues_the_interrupted_phase():
    snapshot, _ = engine.begin(TimerConfig(work_duration=300), T0)
    paused, _ = engine.pause(snapshot, _at(100))

    resumed, events = engine.resume(paused, _at(1000))

    assert resumed.current_phase is TimerPhase.WORK
    assert resumed.previous_phase is None
    assert resumed.elapsed_time_in_phase == 100
    assert resumed.phase_started_at == _at(900)
    assert engine.remaining_seconds(resumed, _at(1000)) == 200
    assert [e.event_type for e in events] == [TimerEventType.RESUME]
    assert events[0].from_phase is TimerPhase.PAUSED


def test_pause_after_resume_banks_only_new_seconds():
    snapshot, _ = engine.begin(TimerConfig(), T0)
    paused, _ = engine.pause(snapshot, _at(10))
    resumed, _ = engine.resume(paused, _at(100))

    paused_again, events = engine.pause(resumed, _at(105))

    assert paused_again.total_work_time == 15
    assert paused_again.elapsed_time_in_phase == 15
    assert events[0].duration == 15

    resumed, _ = engine.resume(paused_again, _at(200))
    assert engine.remaining_seconds(resumed, _at(200)) == 1485


def test_advance_after_resume_banks_only_new_seconds():
    snapshot, _ = engine.begin(TimerConfig(), T0)
    paused, _ = engine.pause(snapshot, _at(10))
    resumed, _ = engine.resume(paused, _at(100))

    resting, events = engine.advance(resumed, _at(105))

    assert resting.total_work_time == 15
    assert resting.elapsed_time_in_phase == 0
    assert events[-1].duration == 15

    working, _ = engine.advance(resting, _at(165))
    assert working.total_rest_time == 60
    assert working.total_work_time == 15


def test_stop_after_resume_banks_only_new_seconds():
    snapshot, _ = engine.begin(TimerConfig(), T0)
    paused, _ = engine.pause(snapshot, _at(10))
    resumed, _ = engine.resume(paused, _at(100))

    stopped, _ = engine.stop(resumed, _at(130))

    assert stopped.total_work_time == 40
    assert stopped.elapsed_time_in_phase == 0


def test_resume_on_running_timer_is_a_noop():
    snapshot, _ = engine.begin(TimerConfig(), T0)

    resumed, events = engine.resume(snapshot, _at(10))

    assert resumed == snapshot
    assert events == []


def test_advance_cycles_between_work_and_rest():
    snapshot, _ = engine.begin(TimerConfig(), T0)

    resting, events = engine.advance(snapshot, _at(1500))
    assert resting.current_phase is TimerPhase.REST
    assert resting.total_work_time == 1500
    assert resting.cycles_completed == 0
    assert [e.event_type for e in events] == [TimerEventType.PHASE_CHANGE]

    working, events = engine.advance(resting, _at(1800))
    assert working.current_phase is TimerPhase.WORK
    assert working.total_rest_time == 300
    assert working.cycles_completed == 1
    assert [e.event_type for e in events] == [TimerEventType.CYCLE_COMPLETE, TimerEventType.PHASE_CHANGE]
    assert events[-1].duration == 300


def test_stop_banks_running_phase_only():
    snapshot, _ = engine.begin(TimerConfig(), T0)
    stopped, events = engine.stop(snapshot, _at(60))
    assert stopped.current_phase is TimerPhase.COMPLETED
    assert stopped.total_work_time == 60
    assert stopped.completed_at == _at(60)
    assert events[0].event_type is TimerEventType.STOP

    paused, _ = engine.pause(snapshot, _at(30))
    stopped, events = engine.stop(paused, _at(500))
    assert stopped.total_work_time == 30
    assert events[0].duration == 0


@pytest.mark.parametrize("transition", [engine.pause, engine.advance])
def test_paused_timer_rejects_running_transitions(transition):
    snapshot, _ = engine.begin(TimerConfig(), T0)
    paused, _ = engine.pause(snapshot, _at(5))

    with pytest.raises(InvalidTransition):
        transition(paused, _at(6))


@pytest.mark.parametrize("transition", [engine.pause, engine.advance, engine.resume, engine.stop])
def test_completed_timer_rejects_everything(transition):
    snapshot, _ = engine.begin(TimerConfig(), T0)
    stopped, _ = engine.stop(snapshot, _at(5))

    with pytest.raises(InvalidTransition):
        transition(stopped, _at(6))


def test_elapsed_time_never_goes_negative():
    snapshot, _ = engine.begin(TimerConfig(), T0)

    paused, _ = engine.pause(snapshot, _at(-30))

    assert paused.elapsed_time_in_phase == 0
    assert paused.total_work_time == 0


def test_remaining_seconds():
    snapshot, _ = engine.begin(TimerConfig(work_duration=100), T0)

    assert engine.remaining_seconds(snapshot, _at(40)) == 60
    assert engine.remaining_seconds(snapshot, _at(400)) == 0

    paused, _ = engine.pause(snapshot, _at(40))
    assert engine.remaining_seconds(paused, _at(50)) == 0


def test_infinite_timer_is_never_auto_stopped():
    snapshot, _ = engine.begin(TimerConfig(work_duration=10, is_infinite=True), T0)

    assert engine.remaining_seconds(snapshot, _at(3600)) == 0
    assert snapshot.current_phase is TimerPhase.WORK


def test_reconfigure_only_touches_provided_fields():
    snapshot, _ = engine.begin(TimerConfig(), T0)

    updated = engine.reconfigure(snapshot, rest_duration=600)

    assert updated.rest_duration == 600
    assert updated.work_duration == 1500
    assert updated.phase_started_at == snapshot.phase_started_at
    assert engine.reconfigure(snapshot) is snapshot
