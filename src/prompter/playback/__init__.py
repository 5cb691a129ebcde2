"""Playback scheduling: countdown, timed advancement, pause/seek and rehearsal."""

from .display import (
    NullPlaybackView,
    PlaybackView,
    RichPlaybackView,
    context_lines,
    format_elapsed,
    line_role,
    line_roles,
)
from .rehearsal import RehearsalRecording
from .scheduler import PlaybackScheduler
from .state import PlaybackSnapshot, SchedulerState
from .tasks import TaskSlots, TimerKind

__all__ = [
    "NullPlaybackView",
    "PlaybackScheduler",
    "PlaybackSnapshot",
    "PlaybackView",
    "RehearsalRecording",
    "RichPlaybackView",
    "SchedulerState",
    "TaskSlots",
    "TimerKind",
    "context_lines",
    "format_elapsed",
    "line_role",
    "line_roles",
]
