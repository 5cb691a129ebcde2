"""Scheduler states and the immutable snapshot handed to callers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SchedulerState(str, Enum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Point-in-time view of a scheduler."""

    state: SchedulerState
    current_index: int
    speed: float
    elapsed_ms: int
    countdown_remaining: int
    rehearsal: bool
    context_window: int
    paused_from: Optional[SchedulerState] = None

    @property
    def is_active(self) -> bool:
        return self.state is not SchedulerState.IDLE


__all__ = ["PlaybackSnapshot", "SchedulerState"]
