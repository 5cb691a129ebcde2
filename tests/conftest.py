import asyncio
import heapq
import itertools
import pathlib
import sys
from typing import Sequence

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from prompter.playback.state import SchedulerState  # noqa: E402
from prompter.segments.models import Segment  # noqa: E402


class ManualClock:
    """Deterministic stand-in for ``time.monotonic`` and ``asyncio.sleep``.

    Sleepers only wake when a test calls ``advance``; they wake in deadline
    order and the clock reads each deadline while its sleeper runs.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._counter = itertools.count()

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        deadline = round(self.now + max(0.0, delay), 6)
        heapq.heappush(self._sleepers, (deadline, next(self._counter), future))
        await future

    @property
    def pending(self) -> int:
        return sum(1 for _, _, future in self._sleepers if not future.done())

    async def advance(self, seconds: float) -> None:
        target = round(self.now + seconds, 6)
        await self.drain()
        while self._sleepers:
            deadline, _, future = self._sleepers[0]
            if future.done():
                heapq.heappop(self._sleepers)
                continue
            if deadline > target:
                break
            heapq.heappop(self._sleepers)
            self.now = deadline
            future.set_result(None)
            await self.drain()
        self.now = target
        await self.drain()

    @staticmethod
    async def drain() -> None:
        for _ in range(10):
            await asyncio.sleep(0)


class RecordingView:
    """Playback view that remembers every callback."""

    def __init__(self) -> None:
        self.renders: list[tuple[int, int]] = []
        self.ticks: list[str] = []
        self.states: list[SchedulerState] = []

    def on_render(
        self, sequence: Sequence[Segment], current_index: int, context_window: int
    ) -> None:
        self.renders.append((current_index, context_window))

    def on_timer_tick(self, display: str) -> None:
        self.ticks.append(display)

    def on_state_change(self, state: SchedulerState) -> None:
        self.states.append(state)

    @property
    def call_count(self) -> int:
        return len(self.renders) + len(self.ticks) + len(self.states)


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def recording_view() -> RecordingView:
    return RecordingView()
