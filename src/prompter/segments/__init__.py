"""
Segment extraction and normalization.

Generator output flows through a fixed fallback chain:

    raw text ──▶ structured (JSON object) ──▶ pattern (field scan) ──▶ local
                                                                      segmenter

The first stage that yields anything wins and its durations are normalized
(seconds vs. milliseconds, punctuation pause, minimum floor). The local segmenter
works on the speaker's own text, so non-empty input always yields segments.
"""

from .durations import DEFAULT_POLICY, DurationPolicy, normalize
from .local import segment_locally
from .models import RawSegment, Segment, SegmentSequence
from .patterns import try_pattern_match
from .pipeline import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    ExtractionResult,
    ExtractionSource,
    GeneratorEvent,
    StreamAccumulator,
    collect_generator_text,
    extract,
    extract_with_source,
)
from .structured import try_structured

__all__ = [
    "ChunkEvent",
    "DEFAULT_POLICY",
    "DoneEvent",
    "DurationPolicy",
    "ErrorEvent",
    "ExtractionResult",
    "ExtractionSource",
    "GeneratorEvent",
    "RawSegment",
    "Segment",
    "SegmentSequence",
    "StreamAccumulator",
    "collect_generator_text",
    "extract",
    "extract_with_source",
    "normalize",
    "segment_locally",
    "try_pattern_match",
    "try_structured",
]
