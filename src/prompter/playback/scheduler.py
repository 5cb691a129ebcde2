"""Timing state machine driving countdown, advancement, pause and rehearsal."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from ..errors import SchedulerMisuse
from ..segments.durations import DEFAULT_POLICY, DurationPolicy, round_half_up
from ..segments.models import SegmentSequence
from .display import NullPlaybackView, PlaybackView, format_elapsed
from .rehearsal import RehearsalRecording
from .state import PlaybackSnapshot, SchedulerState
from .tasks import TaskSlots, TimerKind

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]

DEFAULT_COUNTDOWN_SECONDS = 10
DEFAULT_FINISH_GRACE_SECONDS = 5.0
DEFAULT_DISPLAY_TICK_MS = 100
DEFAULT_CONTEXT_WINDOW = 2


class PlaybackScheduler:
    """Single-session playback controller.

    All timers are asyncio tasks held in named slots, so at most one countdown,
    display, advance and finish timer exist at any time. Pausing stops the
    countdown and display ticks via the state check and cancels the advance
    timer, keeping its remaining budget for ``resume``. ``sleep`` and ``clock``
    are injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        sequence: SegmentSequence,
        view: PlaybackView | None = None,
        *,
        policy: DurationPolicy = DEFAULT_POLICY,
        countdown_seconds: int = DEFAULT_COUNTDOWN_SECONDS,
        finish_grace_seconds: float = DEFAULT_FINISH_GRACE_SECONDS,
        display_tick_ms: int = DEFAULT_DISPLAY_TICK_MS,
        context_window: int = DEFAULT_CONTEXT_WINDOW,
        speed: float = 1.0,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ):
        _check_speed(speed)
        if countdown_seconds < 0:
            raise ValueError("countdown_seconds must be >= 0")
        if display_tick_ms <= 0:
            raise ValueError("display_tick_ms must be > 0")
        if context_window < 0:
            raise ValueError("context_window must be >= 0")

        self._sequence = sequence
        self._view: PlaybackView = view or NullPlaybackView()
        self._policy = policy
        self._countdown_seconds = countdown_seconds
        self._finish_grace_seconds = finish_grace_seconds
        self._display_tick_ms = display_tick_ms
        self._context_window = context_window
        self._speed = float(speed)
        self._sleep = sleep
        self._clock = clock
        self._slots = TaskSlots()

        self._state = SchedulerState.IDLE
        self._paused_from: Optional[SchedulerState] = None
        self._current_index = 0
        self._elapsed_ms = 0
        self._countdown_remaining = 0

        self._advance_deadline: Optional[float] = None
        self._advance_remaining: Optional[float] = None

        self._recording: Optional[RehearsalRecording] = None
        self._last_mark: Optional[float] = None
        self._paused_at: Optional[float] = None

    @classmethod
    def from_settings(
        cls,
        sequence: SegmentSequence,
        view: PlaybackView | None,
        settings: "Settings",
        **kwargs,
    ) -> "PlaybackScheduler":
        kwargs.setdefault("policy", DurationPolicy.from_settings(settings))
        kwargs.setdefault("countdown_seconds", settings.countdown_seconds)
        kwargs.setdefault("finish_grace_seconds", settings.finish_grace_seconds)
        kwargs.setdefault("display_tick_ms", settings.display_tick_ms)
        kwargs.setdefault("context_window", settings.context_window)
        return cls(sequence, view, **kwargs)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def sequence(self) -> SegmentSequence:
        return self._sequence

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def elapsed_ms(self) -> int:
        return self._elapsed_ms

    @property
    def countdown_remaining(self) -> int:
        return self._countdown_remaining

    @property
    def rehearsing(self) -> bool:
        return self._recording is not None

    @property
    def recording(self) -> Optional[RehearsalRecording]:
        return self._recording

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            state=self._state,
            current_index=self._current_index,
            speed=self._speed,
            elapsed_ms=self._elapsed_ms,
            countdown_remaining=self._countdown_remaining,
            rehearsal=self.rehearsing,
            context_window=self._context_window,
            paused_from=self._paused_from,
        )

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------
    def load(self, sequence: SegmentSequence) -> None:
        """Replace the sequence between sessions."""

        if self._state is not SchedulerState.IDLE:
            raise SchedulerMisuse("Cannot replace the sequence during playback")
        self._sequence = sequence

    def start(self) -> None:
        """Begin the countdown for a normal playback session."""

        self._begin(rehearsal=False)

    def start_rehearsal(self) -> None:
        """Begin the countdown for a session that records the speaker's timing."""

        self._begin(rehearsal=True)

    def exit(self) -> None:
        """Stop everything and return to idle; an open rehearsal is discarded."""

        self._slots.cancel_all()
        if self._state is SchedulerState.IDLE:
            return
        if self._recording is not None:
            logger.info("Rehearsal discarded on exit")
        self._reset_session()
        self._set_state(SchedulerState.IDLE)

    def pause(self) -> None:
        if self._state not in (SchedulerState.COUNTDOWN, SchedulerState.RUNNING):
            return
        self._paused_from = self._state
        if self._state is SchedulerState.RUNNING:
            if self._recording is not None:
                self._paused_at = self._clock()
            elif self._advance_deadline is not None:
                self._advance_remaining = max(
                    0.0, self._advance_deadline - self._clock()
                )
                self._advance_deadline = None
                self._slots.cancel(TimerKind.ADVANCE)
        self._set_state(SchedulerState.PAUSED)

    def resume(self) -> None:
        if self._state is not SchedulerState.PAUSED:
            return
        resumed = self._paused_from or SchedulerState.RUNNING
        self._paused_from = None
        self._set_state(resumed)
        if resumed is not SchedulerState.RUNNING:
            return
        if self._recording is not None:
            if self._paused_at is not None and self._last_mark is not None:
                self._last_mark += self._clock() - self._paused_at
            self._paused_at = None
        elif self._advance_remaining is not None:
            remaining = self._advance_remaining
            self._advance_remaining = None
            self._arm_advance(remaining)

    def toggle_pause(self) -> None:
        if self._state is SchedulerState.PAUSED:
            self.resume()
        else:
            self.pause()

    def next(self) -> None:
        self._seek(1)

    def previous(self) -> None:
        self._seek(-1)

    def set_speed(self, multiplier: float) -> None:
        """Change the playback rate; timers already armed keep their budget."""

        _check_speed(multiplier)
        self._speed = float(multiplier)
        logger.debug("Playback speed set to %.2fx", self._speed)

    def set_context_window(self, window: int) -> None:
        if window < 0:
            raise ValueError("context window must be >= 0")
        self._context_window = window
        if self._state is not SchedulerState.IDLE:
            self._render()

    # ------------------------------------------------------------------
    # Rehearsal
    # ------------------------------------------------------------------
    def mark_next(self) -> None:
        """Record the time spent on the current segment and move on."""

        recording = self._require_rehearsal()
        if self._state is not SchedulerState.RUNNING or self._last_mark is None:
            return
        now = self._clock()
        duration_ms = round_half_up((now - self._last_mark) * 1000)
        recording.record(self._current_index, duration_ms)
        self._last_mark = now
        self._current_index += 1
        self._elapsed_ms = recording.elapsed_base_ms
        if self._current_index >= len(self._sequence):
            self._complete_rehearsal()
            return
        self._render()
        self._view.on_timer_tick(format_elapsed(self._elapsed_ms))

    def mark_previous(self) -> None:
        """Step back one segment, dropping its recording and restarting the mark."""

        recording = self._require_rehearsal()
        if self._state is not SchedulerState.RUNNING or self._current_index == 0:
            return
        self._current_index -= 1
        recording.discard(self._current_index)
        self._last_mark = self._clock()
        self._elapsed_ms = recording.elapsed_base_ms
        self._render()
        self._view.on_timer_tick(format_elapsed(self._elapsed_ms))

    def commit_rehearsal(self) -> SegmentSequence:
        """Install recorded durations (floored to the minimum) and return to idle."""

        recording = self._require_rehearsal()
        self._slots.cancel_all()
        self._sequence = self._sequence.with_durations(
            recording.durations, self._policy
        )
        logger.info(
            "Rehearsal committed: %d/%d segments recorded, total %dms",
            recording.recorded_count,
            len(recording),
            self._sequence.total_duration_ms,
        )
        self._reset_session()
        self._set_state(SchedulerState.IDLE)
        return self._sequence

    def discard_rehearsal(self) -> None:
        self._require_rehearsal()
        self._slots.cancel_all()
        logger.info("Rehearsal discarded")
        self._reset_session()
        self._set_state(SchedulerState.IDLE)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _begin(self, *, rehearsal: bool) -> None:
        if self._state is not SchedulerState.IDLE:
            raise SchedulerMisuse(f"Cannot start while {self._state.value}")
        if not self._sequence:
            raise SchedulerMisuse("Cannot start playback of an empty sequence")

        self._reset_session()
        self._recording = RehearsalRecording(len(self._sequence)) if rehearsal else None
        self._countdown_remaining = self._countdown_seconds
        logger.info(
            "Starting %s of %d segments (%.2fx)",
            "rehearsal" if rehearsal else "playback",
            len(self._sequence),
            self._speed,
        )
        self._set_state(SchedulerState.COUNTDOWN)
        self._render()
        if self._state is SchedulerState.IDLE:
            return
        if self._countdown_remaining <= 0:
            self._begin_running()
            return
        self._view.on_timer_tick(str(self._countdown_remaining))
        self._slots.arm(TimerKind.COUNTDOWN, self._run_countdown())

    def _reset_session(self) -> None:
        self._paused_from = None
        self._current_index = 0
        self._elapsed_ms = 0
        self._countdown_remaining = 0
        self._advance_deadline = None
        self._advance_remaining = None
        self._recording = None
        self._last_mark = None
        self._paused_at = None

    async def _run_countdown(self) -> None:
        while self._countdown_remaining > 0:
            await self._sleep(1.0 / self._speed)
            if self._state is not SchedulerState.COUNTDOWN:
                continue
            self._countdown_remaining -= 1
            self._view.on_timer_tick(str(self._countdown_remaining))
        self._begin_running()

    def _begin_running(self) -> None:
        self._set_state(SchedulerState.RUNNING)
        self._render()
        self._view.on_timer_tick(format_elapsed(self._elapsed_ms))
        if self._state is SchedulerState.IDLE:
            return
        self._slots.arm(TimerKind.DISPLAY, self._run_display())
        if self._recording is not None:
            self._last_mark = self._clock()
            return
        self._schedule_current()

    def _segment_budget(self) -> float:
        return self._sequence[self._current_index].duration_ms / 1000 / self._speed

    def _schedule_current(self) -> None:
        """Arm the advance timer for the current segment, or hold it while paused.

        View callbacks run before this, and may have paused or exited.
        """

        budget = self._segment_budget()
        if self._state is SchedulerState.RUNNING:
            self._arm_advance(budget)
        elif self._state is SchedulerState.PAUSED:
            self._advance_remaining = budget

    def _arm_advance(self, delay: float) -> None:
        self._advance_deadline = self._clock() + delay
        self._slots.arm(TimerKind.ADVANCE, self._advance_after(delay))

    async def _advance_after(self, delay: float) -> None:
        await self._sleep(delay)
        self._advance_deadline = None
        if self._state is not SchedulerState.RUNNING:
            return
        self._current_index += 1
        if self._current_index >= len(self._sequence):
            self._finish()
            return
        self._render()
        self._schedule_current()

    async def _run_display(self) -> None:
        tick_seconds = self._display_tick_ms / 1000
        while True:
            await self._sleep(tick_seconds)
            if self._state is not SchedulerState.RUNNING:
                continue
            if self._recording is not None and self._last_mark is not None:
                since_mark = round_half_up((self._clock() - self._last_mark) * 1000)
                self._elapsed_ms = self._recording.elapsed_base_ms + since_mark
            else:
                self._elapsed_ms += self._display_tick_ms
            self._view.on_timer_tick(format_elapsed(self._elapsed_ms))

    def _finish(self) -> None:
        self._slots.cancel(TimerKind.DISPLAY)
        self._set_state(SchedulerState.FINISHED)
        self._render()
        logger.info("Playback finished after %s", format_elapsed(self._elapsed_ms))
        if self._state is SchedulerState.FINISHED:
            self._slots.arm(TimerKind.FINISH, self._idle_after_grace())

    async def _idle_after_grace(self) -> None:
        await self._sleep(self._finish_grace_seconds)
        self._slots.cancel_all()
        self._reset_session()
        self._set_state(SchedulerState.IDLE)

    def _complete_rehearsal(self) -> None:
        self._slots.cancel(TimerKind.DISPLAY)
        self._set_state(SchedulerState.FINISHED)
        self._render()
        logger.info(
            "Rehearsal complete: %d segments in %s",
            len(self._sequence),
            format_elapsed(self._elapsed_ms),
        )

    def _seek(self, step: int) -> None:
        if self._recording is not None:
            return
        playing = self._state is SchedulerState.RUNNING or (
            self._state is SchedulerState.PAUSED
            and self._paused_from is SchedulerState.RUNNING
        )
        if not playing:
            return
        last = len(self._sequence) - 1
        self._current_index = min(max(self._current_index + step, 0), last)
        self._render()

    def _require_rehearsal(self) -> RehearsalRecording:
        if self._recording is None:
            raise SchedulerMisuse("No rehearsal in progress")
        return self._recording

    def _render(self) -> None:
        self._view.on_render(
            self._sequence, self._current_index, self._context_window
        )

    def _set_state(self, state: SchedulerState) -> None:
        self._state = state
        self._view.on_state_change(state)


def _check_speed(multiplier: float) -> None:
    if not (isinstance(multiplier, (int, float)) and math.isfinite(multiplier)):
        raise ValueError(f"Speed must be a finite number, got {multiplier!r}")
    if multiplier <= 0:
        raise ValueError(f"Speed must be greater than zero, got {multiplier!r}")


__all__ = [
    "Clock",
    "DEFAULT_CONTEXT_WINDOW",
    "DEFAULT_COUNTDOWN_SECONDS",
    "DEFAULT_DISPLAY_TICK_MS",
    "DEFAULT_FINISH_GRACE_SECONDS",
    "PlaybackScheduler",
    "Sleep",
    "SchedulerState",
]
