"""Rendering interface for playback plus the rich terminal adapter."""

from __future__ import annotations

from typing import Protocol, Sequence

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.style import Style
from rich.text import Text

from ..segments.models import Segment
from .state import SchedulerState

ROLE_CURRENT = "current"
ROLE_HIDDEN = "hidden"

CURRENT_STYLE = Style(color="bright_white", bold=True)
ADJACENT_STYLE = Style(color="grey70")
TIMER_STYLE = Style(color="cyan")
STATE_STYLE = Style(color="yellow")


class PlaybackView(Protocol):
    """Callbacks the scheduler drives; implementations must not block."""

    def on_render(
        self, sequence: Sequence[Segment], current_index: int, context_window: int
    ) -> None: ...

    def on_timer_tick(self, display: str) -> None: ...

    def on_state_change(self, state: SchedulerState) -> None: ...


class NullPlaybackView:
    def on_render(
        self, sequence: Sequence[Segment], current_index: int, context_window: int
    ) -> None:
        return None

    def on_timer_tick(self, display: str) -> None:
        return None

    def on_state_change(self, state: SchedulerState) -> None:
        return None


def format_elapsed(elapsed_ms: int) -> str:
    """Format running time as ``MM:SS.d``."""

    total = max(0, int(elapsed_ms))
    minutes, remainder = divmod(total, 60_000)
    seconds, millis = divmod(remainder, 1000)
    return f"{minutes:02d}:{seconds:02d}.{millis // 100}"


def line_role(index: int, current_index: int, context_window: int) -> str:
    """Return ``current``, ``adjacent-N`` (N <= window) or ``hidden``."""

    distance = abs(index - current_index)
    if distance == 0:
        return ROLE_CURRENT
    if distance <= context_window:
        return f"adjacent-{distance}"
    return ROLE_HIDDEN


def line_roles(count: int, current_index: int, context_window: int) -> list[str]:
    return [line_role(index, current_index, context_window) for index in range(count)]


class RichPlaybackView:
    """Terminal view: the current phrase highlighted between its neighbours."""

    def __init__(self, console: Console | None = None, *, live: Live | None = None):
        self.console = console or Console()
        self._live = live
        self._lines: list[Text] = []
        self._timer = ""
        self._state = SchedulerState.IDLE

    def attach(self, live: Live | None) -> None:
        self._live = live
        self._refresh()

    def on_render(
        self, sequence: Sequence[Segment], current_index: int, context_window: int
    ) -> None:
        lines: list[Text] = []
        for role, segment in context_lines(sequence, current_index, context_window):
            if role == ROLE_CURRENT:
                lines.append(Text(f"▶ {segment.text}", style=CURRENT_STYLE))
            else:
                lines.append(Text(f"  {segment.text}", style=ADJACENT_STYLE))
        if current_index >= len(sequence) and sequence:
            lines.append(Text("(end)", style=STATE_STYLE, justify="center"))
        self._lines = lines
        self._refresh()

    def on_timer_tick(self, display: str) -> None:
        self._timer = display
        self._refresh()

    def on_state_change(self, state: SchedulerState) -> None:
        self._state = state
        self._refresh()

    def renderable(self) -> RenderableType:
        header = Text.assemble(
            (self._timer or "--:--.-", TIMER_STYLE),
            "  ",
            (self._state.value, STATE_STYLE),
        )
        body: RenderableType = Group(*self._lines) if self._lines else Text("")
        return Group(header, Panel(body, border_style="blue"))

    def _refresh(self) -> None:
        if self._live is not None:
            self._live.update(self.renderable())


def context_lines(
    sequence: Sequence[Segment],
    current_index: int,
    context_window: int,
) -> list[tuple[str, Segment]]:
    """Visible ``(role, segment)`` pairs in script order."""

    return [
        (role, segment)
        for role, segment in zip(
            line_roles(len(sequence), current_index, context_window), sequence
        )
        if role != ROLE_HIDDEN
    ]


__all__ = [
    "NullPlaybackView",
    "PlaybackView",
    "RichPlaybackView",
    "context_lines",
    "format_elapsed",
    "line_role",
    "line_roles",
]
