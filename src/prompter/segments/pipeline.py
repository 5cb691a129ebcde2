"""Fallback chain that turns generator output into a render-ready sequence."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, Optional, Union

from .durations import DEFAULT_POLICY, DurationPolicy
from .local import segment_locally
from .models import Segment, SegmentSequence
from .patterns import try_pattern_match
from .structured import try_structured

logger = logging.getLogger(__name__)


class ExtractionSource(str, Enum):
    """Which stage of the chain produced the sequence."""

    STRUCTURED = "structured"
    PATTERN = "pattern"
    LOCAL = "local"


@dataclass(frozen=True)
class ExtractionResult:
    sequence: SegmentSequence
    source: ExtractionSource

    @property
    def is_fallback(self) -> bool:
        return self.source is ExtractionSource.LOCAL


@dataclass(frozen=True)
class ChunkEvent:
    """An incremental piece of generator text."""

    text: str


@dataclass(frozen=True)
class DoneEvent:
    """End of generation; ``content`` is authoritative when present."""

    content: Optional[str] = None


@dataclass(frozen=True)
class ErrorEvent:
    """The generator reported a failure mid-stream."""

    detail: str


GeneratorEvent = Union[ChunkEvent, DoneEvent, ErrorEvent]


class StreamAccumulator:
    """Collects generator events until the stream finishes."""

    def __init__(self) -> None:
        self._buffer: list[str] = []
        self._final: Optional[str] = None
        self.failed = False
        self.finished = False

    def feed(self, event: GeneratorEvent) -> bool:
        """Consume one event; return True once the stream is finished."""

        if self.finished:
            return True
        if isinstance(event, ChunkEvent):
            self._buffer.append(event.text)
        elif isinstance(event, DoneEvent):
            if event.content is not None and event.content.strip():
                self._final = event.content
            self.finished = True
        elif isinstance(event, ErrorEvent):
            logger.warning("Generator reported an error: %s", event.detail)
            self.failed = True
            self.finished = True
        return self.finished

    def result(self) -> Optional[str]:
        """Final text: the done payload if any, else the accumulated chunks."""

        if self.failed:
            return None
        if self._final is not None:
            return self._final
        return "".join(self._buffer)


async def collect_generator_text(
    events: AsyncIterable[GeneratorEvent],
    cancel_event: Optional[asyncio.Event] = None,
) -> Optional[str]:
    """Fold a generator event stream into its final text.

    Returns None when the generator reported an error or the caller cancelled;
    buffered partial text is discarded in both cases. A stream that ends without
    a done signal yields whatever was accumulated.
    """

    accumulator = StreamAccumulator()
    async for event in events:
        if cancel_event is not None and cancel_event.is_set():
            logger.debug("Generator stream cancelled; discarding partial text")
            return None
        if accumulator.feed(event):
            break
    if cancel_event is not None and cancel_event.is_set():
        return None
    return accumulator.result()


def extract_with_source(
    raw: Optional[str],
    source_text: str,
    target_duration_seconds: Optional[float] = None,
    policy: DurationPolicy = DEFAULT_POLICY,
) -> ExtractionResult:
    """Run structured, pattern and local extraction in order; first non-empty wins."""

    if raw:
        structured = try_structured(raw)
        if structured:
            return ExtractionResult(
                SegmentSequence(Segment.from_raw(item, policy) for item in structured),
                ExtractionSource.STRUCTURED,
            )
        matched = try_pattern_match(raw)
        if matched:
            logger.info(
                "Structured parse failed; recovered %d segments by pattern",
                len(matched),
            )
            return ExtractionResult(
                SegmentSequence(Segment.from_raw(item, policy) for item in matched),
                ExtractionSource.PATTERN,
            )
        logger.info("No segments found in generator output; using local segmentation")

    return ExtractionResult(
        segment_locally(source_text, target_duration_seconds, policy),
        ExtractionSource.LOCAL,
    )


def extract(
    raw: Optional[str],
    source_text: str,
    target_duration_seconds: Optional[float] = None,
    policy: DurationPolicy = DEFAULT_POLICY,
) -> SegmentSequence:
    """Return a normalized sequence; empty only when ``source_text`` has no words."""

    return extract_with_source(
        raw, source_text, target_duration_seconds, policy
    ).sequence


__all__ = [
    "ChunkEvent",
    "DoneEvent",
    "ErrorEvent",
    "ExtractionResult",
    "ExtractionSource",
    "GeneratorEvent",
    "StreamAccumulator",
    "collect_generator_text",
    "extract",
    "extract_with_source",
]
