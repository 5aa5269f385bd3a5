from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from studydeck.schemas.camel import CamelModel
from studydeck.services.timer_engine import TimerEventType, TimerPhase


class TimerConfigIn(CamelModel):
    work_duration: Optional[int] = Field(default=None, gt=0)
    rest_duration: Optional[int] = Field(default=None, gt=0)
    is_infinite: Optional[bool] = None


class TimerStateOut(CamelModel):
    id: int
    current_phase: TimerPhase
    previous_phase: Optional[TimerPhase] = None
    phase_started_at: Optional[datetime] = None
    elapsed_time_in_phase: int = 0
    cycles_completed: int
    total_work_time: int
    total_rest_time: int
    work_duration: int
    rest_duration: int
    is_infinite: bool
    remaining_time: int
    started_at: datetime
    completed_at: Optional[datetime] = None


class TimerResponse(CamelModel):
    success: bool = True
    timer: Optional[TimerStateOut] = None


class TimerEventOut(CamelModel):
    id: int
    event_type: TimerEventType
    from_phase: Optional[TimerPhase] = None
    to_phase: Optional[TimerPhase] = None
    duration: Optional[int] = None
    timestamp: datetime


class TimerStatsOut(CamelModel):
    total_work_time: int
    total_rest_time: int
    total_time: int
    cycles_completed: int
    work_percentage: int
    current_phase: TimerPhase
    events: List[TimerEventOut]


class TimerStatsResponse(CamelModel):
    success: bool = True
    stats: TimerStatsOut
