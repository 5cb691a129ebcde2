"""Terminal front end: segment a speech, play it back, rehearse it, edit timings.

Examples:
  prompter segment speech.txt -o speech.json     Segment with the generator
  prompter segment "Hello there." --local        Local segmentation only
  prompter play speech.json --speed 1.25         Timed playback
  prompter rehearse speech.json                  Record your own timings
  prompter edit speech.json 3 1500               Set segment 3 to 1500 ms
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text

from .config import PROJECT_ROOT, Settings, get_settings
from .errors import InvalidUserEdit
from .logging_settings import apply_logging_settings, parse_logging_settings
from .playback import PlaybackScheduler, RichPlaybackView, SchedulerState
from .schemas.segments import SegmentationRequest
from .segments.durations import DurationPolicy
from .segments.local import segment_locally
from .segments.models import SegmentSequence
from .services.segmentation import SegmentationService

logger = logging.getLogger(__name__)

ERROR_STYLE = Style(color="red", bold=True)
INFO_STYLE = Style(color="cyan")
PROGRESS_STYLE = Style(color="bright_green")

SPEED_STEP = 0.25

PLAY_HELP = """
[bold]Playback keys[/bold] (type, then Enter):
  (empty) or p   Pause / resume
  n / b          Next / previous segment
  + / -          Faster / slower
  c <n>          Show n neighbouring lines
  q              Stop
"""

REHEARSE_HELP = """
[bold]Rehearsal keys[/bold] (type, then Enter):
  (empty)        Mark the current segment as spoken
  b              Go back one segment and re-record it
  p              Pause / resume
  q              Stop and discard
"""


def _configure_logging(settings: Settings) -> logging.Handler:
    """Configure logging from LOG_LEVEL/LOG_FILE and the logging settings file."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "WARNING").upper()
    log_level = getattr(logging, log_level_str, logging.WARNING)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)
    logging.getLogger("prompter").setLevel(log_level)

    settings_path = settings.logging_settings_path
    if not settings_path.is_absolute():
        settings_path = PROJECT_ROOT / settings_path
    if settings_path.exists():
        apply_logging_settings(parse_logging_settings(settings_path), console_handler)

    # Quiet noisy transport logs unless debugging
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    return console_handler


def load_sequence(path: Path, policy: DurationPolicy) -> SegmentSequence:
    """Read a segment document (``.json``) or segment a plain-text script locally."""

    content = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return SegmentSequence.from_document(json.loads(content), policy, normalized=True)
    return segment_locally(content, None, policy)


def save_sequence(path: Path, sequence: SegmentSequence) -> None:
    path.write_text(
        json.dumps(sequence.to_document(), ensure_ascii=False, indent=2) + "\n",
        encoding="utf-8",
    )


def segments_table(sequence: SegmentSequence, title: str | None = None) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Text")
    table.add_column("ms", justify="right")
    for index, segment in enumerate(sequence):
        table.add_row(str(index), segment.text, str(segment.duration_ms))
    table.caption = f"{len(sequence)} segments, {sequence.total_duration_ms / 1000:.1f}s"
    return table


class StdinLines:
    """Deliver stdin lines to the event loop without blocking it."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._fd: Optional[int] = None

    def __enter__(self) -> "StdinLines":
        loop = asyncio.get_running_loop()
        self._fd = sys.stdin.fileno()
        loop.add_reader(self._fd, self._on_readable)
        return self

    def __exit__(self, *exc_info) -> None:
        if self._fd is not None:
            asyncio.get_running_loop().remove_reader(self._fd)
            self._fd = None

    def _on_readable(self) -> None:
        line = sys.stdin.readline()
        self._queue.put_nowait(line.rstrip("\n") if line else None)

    async def get(self, timeout: Optional[float]) -> tuple[bool, Optional[str]]:
        """Return ``(True, line)`` when a line arrived (None on EOF), else ``(False, None)``."""

        try:
            return True, await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return False, None


class PrompterShell:
    """Runs one CLI command against the configured services."""

    def __init__(self, settings: Settings, console: Console | None = None):
        self.settings = settings
        self.console = console or Console()
        self.policy = DurationPolicy.from_settings(settings)

    async def segment(
        self,
        text: str,
        *,
        target: Optional[float],
        model: Optional[str],
        local: bool,
        output: Optional[Path],
    ) -> int:
        if local:
            sequence = segment_locally(text, target, self.policy)
            self.console.print(segments_table(sequence, title="Local segmentation"))
            if output is not None:
                save_sequence(output, sequence)
            return 0

        service = SegmentationService(self.settings, policy=self.policy)
        if not service.generator_available:
            self.console.print(
                "[dim]No generator API key configured; using local segmentation.[/dim]"
            )
        request = SegmentationRequest(text=text, model=model, target_duration=target)
        streamed = ""
        result = None
        try:
            with Live(console=self.console, refresh_per_second=10) as live:
                async for event in service.stream(request):
                    if event.type == "progress" and event.content:
                        streamed += event.content
                        live.update(Text(streamed[-2000:], style=PROGRESS_STYLE))
                    elif event.done:
                        result = event
                        live.update(Text(""))
        finally:
            await service.aclose()

        if result is None:
            self.console.print("[dim]Segmentation cancelled[/dim]")
            return 1
        sequence = SegmentSequence.from_document(
            {"segments": result.segments or []}, self.policy, normalized=True
        )
        title = f"Segments ({result.source})"
        self.console.print(segments_table(sequence, title=title))
        if result.fallback and result.error:
            self.console.print(
                f"[yellow]Fell back to local segmentation: {result.error}[/yellow]"
            )
        if output is not None:
            save_sequence(output, sequence)
            self.console.print(f"[dim]Saved to {output}[/dim]")
        return 0

    def _scheduler(
        self,
        sequence: SegmentSequence,
        view: RichPlaybackView,
        speed: float,
        context: Optional[int],
    ) -> PlaybackScheduler:
        kwargs: dict[str, Any] = {"speed": speed}
        if context is not None:
            kwargs["context_window"] = context
        return PlaybackScheduler.from_settings(sequence, view, self.settings, **kwargs)

    async def play(
        self, sequence: SegmentSequence, *, speed: float, context: Optional[int]
    ) -> int:
        if not sequence:
            self.console.print("Nothing to play.", style=ERROR_STYLE)
            return 1
        self.console.print(Panel(PLAY_HELP.strip(), title="Playback", border_style="blue"))
        view = RichPlaybackView(self.console)
        scheduler = self._scheduler(sequence, view, speed, context)
        with Live(console=self.console, refresh_per_second=20) as live, StdinLines() as lines:
            view.attach(live)
            scheduler.start()
            while scheduler.state is not SchedulerState.IDLE:
                received, line = await lines.get(timeout=0.1)
                if not received:
                    continue
                if line is None or not self._handle_play_key(scheduler, line.strip()):
                    scheduler.exit()
        return 0

    def _handle_play_key(self, scheduler: PlaybackScheduler, key: str) -> bool:
        """Apply one playback key; return False to stop."""

        if key in ("", "p"):
            scheduler.toggle_pause()
        elif key == "n":
            scheduler.next()
        elif key == "b":
            scheduler.previous()
        elif key == "+":
            scheduler.set_speed(scheduler.speed + SPEED_STEP)
        elif key == "-":
            scheduler.set_speed(max(SPEED_STEP, scheduler.speed - SPEED_STEP))
        elif key.startswith("c "):
            try:
                scheduler.set_context_window(int(key[2:].strip()))
            except ValueError:
                logger.debug("Ignoring bad context window %r", key)
        elif key == "q":
            return False
        return True

    async def rehearse(
        self, sequence: SegmentSequence, *, output: Optional[Path], context: Optional[int]
    ) -> int:
        if not sequence:
            self.console.print("Nothing to rehearse.", style=ERROR_STYLE)
            return 1
        self.console.print(Panel(REHEARSE_HELP.strip(), title="Rehearsal", border_style="blue"))
        view = RichPlaybackView(self.console)
        scheduler = self._scheduler(sequence, view, 1.0, context)
        with StdinLines() as lines:
            with Live(console=self.console, refresh_per_second=20) as live:
                view.attach(live)
                scheduler.start_rehearsal()
                while scheduler.state is not SchedulerState.FINISHED:
                    received, line = await lines.get(timeout=0.1)
                    if not received:
                        continue
                    key = "q" if line is None else line.strip()
                    if key == "q":
                        scheduler.exit()
                        self.console.print("[dim]Rehearsal discarded[/dim]")
                        return 1
                    if key == "p":
                        scheduler.toggle_pause()
                    elif key == "b":
                        scheduler.mark_previous()
                    elif key == "":
                        scheduler.mark_next()
                view.attach(None)

            recorded = scheduler.recording.recorded_count if scheduler.recording else 0
            self.console.print(f"Recorded {recorded} segments. Keep these timings? [y/N]")
            _, answer = await lines.get(timeout=None)
        if (answer or "").strip().lower() in ("y", "yes"):
            committed = scheduler.commit_rehearsal()
            self.console.print(segments_table(committed, title="Rehearsed timings"))
            if output is not None:
                save_sequence(output, committed)
                self.console.print(f"[dim]Saved to {output}[/dim]")
            return 0
        scheduler.discard_rehearsal()
        self.console.print("[dim]Rehearsal discarded[/dim]")
        return 1

    def edit(self, sequence: SegmentSequence, index: int, duration_ms: int, output: Path) -> int:
        try:
            updated = sequence.with_duration(index, duration_ms, self.policy)
        except InvalidUserEdit as exc:
            self.console.print(f"Edit rejected: {exc}", style=ERROR_STYLE)
            return 1
        save_sequence(output, updated)
        self.console.print(
            f"Segment {index} now {duration_ms} ms "
            f"(total {updated.total_duration_ms / 1000:.1f}s)",
            style=INFO_STYLE,
        )
        return 0


def _read_text_argument(value: str) -> str:
    if value == "-":
        return sys.stdin.read()
    path = Path(value)
    if path.is_file():
        return path.read_text(encoding="utf-8")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prompter",
        description="Teleprompter: segment a speech into timed phrases and play it back",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  GENERATOR_API_KEY   Generator API key (local segmentation when unset)
  LOG_LEVEL           Logging level (default: WARNING)
  LOG_FILE            Also write logs to this file
""",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    segment = subparsers.add_parser("segment", help="Split text into timed segments")
    segment.add_argument("text", help="Speech text, a text file path, or - for stdin")
    segment.add_argument(
        "--target",
        "-t",
        type=float,
        default=None,
        help="Target total duration in seconds",
    )
    segment.add_argument("--model", "-m", default=None, help="Generator model id")
    segment.add_argument(
        "--local",
        action="store_true",
        help="Skip the generator and segment locally",
    )
    segment.add_argument("--output", "-o", type=Path, default=None, help="Write the segment document here")

    play = subparsers.add_parser("play", help="Play a segment document or text file")
    play.add_argument("source", type=Path, help="Segment document (.json) or text file")
    play.add_argument("--speed", "-s", type=float, default=1.0, help="Speed multiplier (default: 1.0)")
    play.add_argument("--context", "-c", type=int, default=None, help="Neighbouring lines shown")

    rehearse = subparsers.add_parser("rehearse", help="Record your own timing for each segment")
    rehearse.add_argument("source", type=Path, help="Segment document (.json) or text file")
    rehearse.add_argument("--output", "-o", type=Path, default=None, help="Where to save committed timings")
    rehearse.add_argument("--context", "-c", type=int, default=None, help="Neighbouring lines shown")

    edit = subparsers.add_parser("edit", help="Change one segment's duration")
    edit.add_argument("source", type=Path, help="Segment document (.json)")
    edit.add_argument("index", type=int, help="Segment index (0-based)")
    edit.add_argument("duration", type=int, help="New duration in milliseconds")
    edit.add_argument("--output", "-o", type=Path, default=None, help="Defaults to the source, or <source>.json for a text file")
    return parser


async def run(
    args: argparse.Namespace, settings: Settings, console: Console | None = None
) -> int:
    shell = PrompterShell(settings, console)
    if args.command == "segment":
        text = _read_text_argument(args.text)
        return await shell.segment(
            text,
            target=args.target,
            model=args.model,
            local=args.local,
            output=args.output,
        )

    sequence = load_sequence(args.source, shell.policy)
    if args.command == "play":
        return await shell.play(sequence, speed=args.speed, context=args.context)
    if args.command == "rehearse":
        output = args.output
        if output is None and args.source.suffix.lower() == ".json":
            output = args.source
        return await shell.rehearse(sequence, output=output, context=args.context)
    if args.command == "edit":
        output = args.output
        if output is None:
            # A plain-text script is never overwritten with a segment document.
            output = args.source.with_suffix(".json")
        return shell.edit(sequence, args.index, args.duration, output)
    raise ValueError(f"Unknown command {args.command!r}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "speed", 1.0) <= 0:
        parser.error("--speed must be greater than zero")

    settings = get_settings()
    _configure_logging(settings)

    try:
        code = asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        code = 130
    except (OSError, json.JSONDecodeError, ValueError) as exc:
        Console(stderr=True).print(f"Error: {exc}", style=ERROR_STYLE)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
