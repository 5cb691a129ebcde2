"""Named single-slot timers owned by the playback scheduler."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class TimerKind(str, Enum):
    COUNTDOWN = "countdown"
    DISPLAY = "display"
    ADVANCE = "advance"
    FINISH = "finish"


class TaskSlots:
    """Keeps at most one pending task per timer kind.

    Arming a slot cancels whatever was pending in it. A task that re-arms its
    own slot is left to finish on its own rather than cancelled mid-callback.
    """

    def __init__(self) -> None:
        self._tasks: dict[TimerKind, asyncio.Task[None]] = {}

    def arm(
        self, kind: TimerKind, coro: Coroutine[Any, Any, None]
    ) -> asyncio.Task[None]:
        self.cancel(kind)
        task = asyncio.create_task(coro, name=f"prompter-{kind.value}")
        self._tasks[kind] = task
        return task

    def cancel(self, kind: TimerKind) -> bool:
        """Cancel the task in ``kind``; return True when one was pending."""

        task = self._tasks.pop(kind, None)
        if task is None or task.done():
            return False
        if task is asyncio.current_task():
            return False
        task.cancel()
        logger.debug("Cancelled %s timer", kind.value)
        return True

    def cancel_all(self) -> None:
        for kind in list(self._tasks):
            self.cancel(kind)

    def is_armed(self, kind: TimerKind) -> bool:
        task = self._tasks.get(kind)
        return task is not None and not task.done()

    def __len__(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())


__all__ = ["TaskSlots", "TimerKind"]
