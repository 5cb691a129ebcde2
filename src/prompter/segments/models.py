"""Segment value objects and the ordered sequence played by the teleprompter."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence, overload

from ..errors import InvalidUserEdit
from .durations import (
    DEFAULT_POLICY,
    DurationPolicy,
    ends_with_pause,
    normalize,
    round_half_up,
)


@dataclass(frozen=True, slots=True)
class RawSegment:
    """A phrase recovered from generator output before duration normalization."""

    text: str
    duration: float


@dataclass(frozen=True, slots=True)
class Segment:
    """One timed phrase shown atomically on the display."""

    text: str
    duration_ms: int
    has_pause: bool = False

    @classmethod
    def from_raw(
        cls, raw: RawSegment, policy: DurationPolicy = DEFAULT_POLICY
    ) -> "Segment":
        text = raw.text.strip()
        return cls(
            text=text,
            duration_ms=normalize(raw.duration, text, policy),
            has_pause=ends_with_pause(text),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "duration": self.duration_ms}


class SegmentSequence(Sequence[Segment]):
    """Immutable, script-ordered list of segments.

    The sequence is replaced wholesale by each extraction; the only partial
    changes are single duration edits and rehearsal commits, both of which
    return a new sequence.
    """

    __slots__ = ("_segments",)

    def __init__(self, segments: Iterable[Segment] = ()):
        self._segments: tuple[Segment, ...] = tuple(segments)

    @overload
    def __getitem__(self, index: int) -> Segment: ...

    @overload
    def __getitem__(self, index: slice) -> "SegmentSequence": ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return SegmentSequence(self._segments[index])
        return self._segments[index]

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self) -> Iterator[Segment]:
        return iter(self._segments)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SegmentSequence):
            return self._segments == other._segments
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._segments)

    def __repr__(self) -> str:
        return f"SegmentSequence({list(self._segments)!r})"

    @property
    def total_duration_ms(self) -> int:
        return sum(segment.duration_ms for segment in self._segments)

    def with_duration(
        self,
        index: int,
        duration_ms: int,
        policy: DurationPolicy = DEFAULT_POLICY,
    ) -> "SegmentSequence":
        """Return a copy with one segment's duration overridden by the user."""

        if isinstance(duration_ms, bool) or not isinstance(duration_ms, int):
            raise InvalidUserEdit(
                f"Duration must be a whole number of milliseconds, got {duration_ms!r}"
            )
        if not 0 <= index < len(self._segments):
            raise InvalidUserEdit(f"No segment at index {index}")
        if duration_ms < policy.min_phrase_ms:
            raise InvalidUserEdit(
                f"Duration {duration_ms}ms is below the {policy.min_phrase_ms}ms minimum"
            )
        segments = list(self._segments)
        segments[index] = replace(segments[index], duration_ms=duration_ms)
        return SegmentSequence(segments)

    def with_durations(
        self,
        durations: Sequence[Optional[int]],
        policy: DurationPolicy = DEFAULT_POLICY,
    ) -> "SegmentSequence":
        """Return a copy with recorded durations applied, floored to the minimum.

        ``None`` entries keep the existing duration.
        """

        if len(durations) != len(self._segments):
            raise ValueError(
                f"Expected {len(self._segments)} durations, got {len(durations)}"
            )
        segments = []
        for segment, duration in zip(self._segments, durations):
            if duration is None:
                segments.append(segment)
                continue
            segments.append(
                replace(segment, duration_ms=max(policy.min_phrase_ms, int(duration)))
            )
        return SegmentSequence(segments)

    def to_document(self) -> dict[str, Any]:
        """Return the ``{"segments": [...]}`` wire shape with millisecond durations."""

        return {"segments": [segment.to_dict() for segment in self._segments]}

    @classmethod
    def from_document(
        cls,
        document: Mapping[str, Any],
        policy: DurationPolicy = DEFAULT_POLICY,
        *,
        normalized: bool = False,
    ) -> "SegmentSequence":
        """Build a sequence from a segment document.

        Generator documents get the full normalization. Documents written by
        ``to_document`` already carry final millisecond durations
        (``normalized=True``); those are only rounded and floored, so neither the
        pause nor the seconds heuristic is applied a second time.
        """

        from ..schemas.segments import SegmentDocument

        parsed = SegmentDocument.model_validate(document)
        segments = []
        for item in parsed.segments:
            raw = RawSegment(item.text, item.duration)
            if not normalized:
                segments.append(Segment.from_raw(raw, policy))
                continue
            text = raw.text.strip()
            duration_ms = round_half_up(raw.duration)
            segments.append(
                Segment(
                    text=text,
                    duration_ms=max(policy.min_phrase_ms, duration_ms),
                    has_pause=ends_with_pause(text),
                )
            )
        return cls(segments)


__all__ = ["RawSegment", "Segment", "SegmentSequence"]
