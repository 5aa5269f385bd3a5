"""Work/rest (Pomodoro) phase state machine.

The engine is pure: every transition takes the current :class:`TimerSnapshot`
and the wall-clock ``now`` and returns a new snapshot together with the audit
events the transition produced.  Persisting either is the job of
:mod:`studydeck.services.timer_service`.

Phases::

    work <-> rest        (advance; rest -> work closes a cycle)
    work/rest -> paused  (pause, elapsed seconds are banked)
    paused -> work/rest  (resume, the interrupted phase continues)
    * -> completed       (stop)

``elapsed_time_in_phase`` holds the seconds of the current phase that are
already in the totals, so a later transition banks only what came after it.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from studydeck.utils.time_utils import as_naive_utc, elapsed_seconds


class TimerPhase(str, enum.Enum):
    WORK = "work"
    REST = "rest"
    PAUSED = "paused"
    COMPLETED = "completed"


class TimerEventType(str, enum.Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    PHASE_CHANGE = "phase_change"
    CYCLE_COMPLETE = "cycle_complete"
    STOP = "stop"


RUNNING_PHASES = frozenset({TimerPhase.WORK, TimerPhase.REST})


class InvalidTransition(Exception):
    """Raised when a transition is not allowed from the current phase."""

    def __init__(self, action: str, phase: TimerPhase):
        super().__init__(f"cannot {action} a timer in phase '{phase.value}'")
        self.action = action
        self.phase = phase


@dataclass(frozen=True, slots=True)
class TimerConfig:
    work_duration: int = 1500
    rest_duration: int = 300
    is_infinite: bool = False


@dataclass(frozen=True, slots=True)
class TimerSnapshot:
    work_duration: int
    rest_duration: int
    is_infinite: bool
    current_phase: TimerPhase
    phase_started_at: Optional[datetime]
    started_at: datetime
    previous_phase: Optional[TimerPhase] = None
    elapsed_time_in_phase: int = 0
    total_work_time: int = 0
    total_rest_time: int = 0
    cycles_completed: int = 0
    completed_at: Optional[datetime] = None

    @property
    def is_running(self) -> bool:
        return self.current_phase in RUNNING_PHASES


@dataclass(frozen=True, slots=True)
class TimerTransition:
    """Audit record of one engine transition."""

    event_type: TimerEventType
    from_phase: Optional[TimerPhase]
    to_phase: Optional[TimerPhase]
    timestamp: datetime
    duration: Optional[int] = None


def begin(config: TimerConfig, now: datetime) -> tuple[TimerSnapshot, list[TimerTransition]]:
    now = as_naive_utc(now)
    snapshot = TimerSnapshot(
        work_duration=config.work_duration,
        rest_duration=config.rest_duration,
        is_infinite=config.is_infinite,
        current_phase=TimerPhase.WORK,
        phase_started_at=now,
        started_at=now,
    )
    return snapshot, [TimerTransition(TimerEventType.START, None, TimerPhase.WORK, now)]


def resume(snapshot: TimerSnapshot, now: datetime) -> tuple[TimerSnapshot, list[TimerTransition]]:
    """Continue a paused phase; a running timer is returned unchanged."""
    if snapshot.is_running:
        return snapshot, []
    if snapshot.current_phase is not TimerPhase.PAUSED:
        raise InvalidTransition("resume", snapshot.current_phase)

    now = as_naive_utc(now)
    target = snapshot.previous_phase or TimerPhase.WORK
    resumed = replace(
        snapshot,
        current_phase=target,
        # Back-date the phase start so the banked seconds carry over.
        phase_started_at=now - timedelta(seconds=snapshot.elapsed_time_in_phase),
        previous_phase=None,
    )
    return resumed, [TimerTransition(TimerEventType.RESUME, TimerPhase.PAUSED, target, now)]


def pause(snapshot: TimerSnapshot, now: datetime) -> tuple[TimerSnapshot, list[TimerTransition]]:
    _require_running(snapshot, "pause")
    now = as_naive_utc(now)
    elapsed = elapsed_seconds(snapshot.phase_started_at, now)

    paused = replace(
        _bank(snapshot, elapsed),
        current_phase=TimerPhase.PAUSED,
        previous_phase=snapshot.current_phase,
        elapsed_time_in_phase=elapsed,
        phase_started_at=None,
    )
    event = TimerTransition(TimerEventType.PAUSE, snapshot.current_phase, TimerPhase.PAUSED, now, elapsed)
    return paused, [event]


def advance(snapshot: TimerSnapshot, now: datetime) -> tuple[TimerSnapshot, list[TimerTransition]]:
    """Move work -> rest or rest -> work; the latter completes a cycle."""
    _require_running(snapshot, "advance")
    now = as_naive_utc(now)
    elapsed = elapsed_seconds(snapshot.phase_started_at, now)

    events = []
    cycles = snapshot.cycles_completed
    if snapshot.current_phase is TimerPhase.WORK:
        next_phase = TimerPhase.REST
    else:
        next_phase = TimerPhase.WORK
        cycles += 1
        events.append(TimerTransition(TimerEventType.CYCLE_COMPLETE, TimerPhase.REST, TimerPhase.WORK, now))

    advanced = replace(
        _bank(snapshot, elapsed),
        current_phase=next_phase,
        phase_started_at=now,
        elapsed_time_in_phase=0,
        cycles_completed=cycles,
    )
    events.append(TimerTransition(TimerEventType.PHASE_CHANGE, snapshot.current_phase, next_phase, now, elapsed))
    return advanced, events


def stop(snapshot: TimerSnapshot, now: datetime) -> tuple[TimerSnapshot, list[TimerTransition]]:
    if snapshot.current_phase is TimerPhase.COMPLETED:
        raise InvalidTransition("stop", snapshot.current_phase)

    now = as_naive_utc(now)
    # A paused timer already banked its seconds when it was paused.
    elapsed = elapsed_seconds(snapshot.phase_started_at, now) if snapshot.is_running else 0
    banked = _bank(snapshot, elapsed) if snapshot.is_running else snapshot

    stopped = replace(
        banked,
        current_phase=TimerPhase.COMPLETED,
        phase_started_at=None,
        elapsed_time_in_phase=0,
        completed_at=now,
    )
    event = TimerTransition(TimerEventType.STOP, snapshot.current_phase, TimerPhase.COMPLETED, now, elapsed)
    return stopped, [event]


def reconfigure(
    snapshot: TimerSnapshot,
    *,
    work_duration: Optional[int] = None,
    rest_duration: Optional[int] = None,
    is_infinite: Optional[bool] = None,
) -> TimerSnapshot:
    """Apply the provided configuration fields, leaving phase accounting untouched."""
    changes = {}
    if work_duration is not None:
        changes["work_duration"] = work_duration
    if rest_duration is not None:
        changes["rest_duration"] = rest_duration
    if is_infinite is not None:
        changes["is_infinite"] = is_infinite
    return replace(snapshot, **changes) if changes else snapshot


def phase_duration(snapshot: TimerSnapshot) -> int:
    if snapshot.current_phase is TimerPhase.WORK:
        return snapshot.work_duration
    if snapshot.current_phase is TimerPhase.REST:
        return snapshot.rest_duration
    return 0


def remaining_seconds(snapshot: TimerSnapshot, now: datetime) -> int:
    """Seconds left in the running phase; 0 while paused or completed."""
    if not snapshot.is_running:
        return 0
    return max(phase_duration(snapshot) - elapsed_seconds(snapshot.phase_started_at, now), 0)


def _require_running(snapshot: TimerSnapshot, action: str) -> None:
    if not snapshot.is_running:
        raise InvalidTransition(action, snapshot.current_phase)


def _bank(snapshot: TimerSnapshot, elapsed: int) -> TimerSnapshot:
    """Add the part of ``elapsed`` not yet counted for the current phase."""
    elapsed = max(elapsed - snapshot.elapsed_time_in_phase, 0)
    if snapshot.current_phase is TimerPhase.WORK:
        return replace(snapshot, total_work_time=snapshot.total_work_time + elapsed)
    if snapshot.current_phase is TimerPhase.REST:
        return replace(snapshot, total_rest_time=snapshot.total_rest_time + elapsed)
    return snapshot
