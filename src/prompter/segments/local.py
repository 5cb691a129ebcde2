"""Deterministic phrase chunker used without (or instead of) the text generator."""

from __future__ import annotations

import logging
from typing import Optional

from .durations import (
    DEFAULT_POLICY,
    DurationPolicy,
    apply_pause_and_floor,
    ends_with_pause,
    round_half_up,
)
from .models import Segment, SegmentSequence

logger = logging.getLogger(__name__)

_FIRST_PHRASE_LIMIT = 2


def _next_limit(limit: int) -> int:
    return 3 if limit == 2 else 2


def segment_locally(
    text: str,
    target_duration_seconds: Optional[float] = None,
    policy: DurationPolicy = DEFAULT_POLICY,
) -> SegmentSequence:
    """Split text into alternating 2- and 3-word phrases.

    A phrase closes when it reaches the current size limit, at the final word, or
    when a word ends in terminating punctuation; the limit toggles between 2 and 3
    every time a phrase closes. Durations come from the target duration spread
    evenly across words, or from the policy's speaking rate when no target is set.
    """

    words = [word for word in text.split() if word]
    if not words:
        return SegmentSequence()

    if target_duration_seconds and target_duration_seconds > 0:
        ms_per_word = target_duration_seconds * 1000 / len(words)
    else:
        ms_per_word = policy.ms_per_word

    segments: list[Segment] = []
    phrase: list[str] = []
    limit = _FIRST_PHRASE_LIMIT
    last_index = len(words) - 1

    for index, word in enumerate(words):
        phrase.append(word)
        should_close = (
            len(phrase) >= limit or index == last_index or ends_with_pause(word)
        )
        if not should_close:
            continue

        phrase_text = " ".join(phrase)
        raw_ms = round_half_up(len(phrase) * ms_per_word)
        segments.append(
            Segment(
                text=phrase_text,
                duration_ms=apply_pause_and_floor(raw_ms, phrase_text, policy),
                has_pause=ends_with_pause(phrase_text),
            )
        )
        phrase = []
        limit = _next_limit(limit)

    logger.debug(
        "Local segmentation: %d words -> %d segments (%.1f ms/word)",
        len(words),
        len(segments),
        ms_per_word,
    )
    return SegmentSequence(segments)


__all__ = ["segment_locally"]
