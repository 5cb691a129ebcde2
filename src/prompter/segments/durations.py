"""Duration normalization for extracted and locally generated segments."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import Settings

DEFAULT_MS_PER_WORD = 400.0  # ~150 words per minute
DEFAULT_PAUSE_MS = 200
DEFAULT_MIN_PHRASE_MS = 300

# Values below this are read as seconds. A deliberately tiny millisecond value
# (e.g. 50) is misread as 50 seconds; kept for compatibility with generators
# that emit either unit.
SECONDS_TO_MS_THRESHOLD = 100

TERMINATING_PUNCTUATION = frozenset(".!?。！？,，;；:：")


@dataclass(frozen=True)
class DurationPolicy:
    """Timing constants shared by the normalizer and the local segmenter."""

    ms_per_word: float = DEFAULT_MS_PER_WORD
    pause_ms: int = DEFAULT_PAUSE_MS
    min_phrase_ms: int = DEFAULT_MIN_PHRASE_MS

    @classmethod
    def from_settings(cls, settings: "Settings") -> "DurationPolicy":
        return cls(
            ms_per_word=settings.ms_per_word,
            pause_ms=settings.pause_ms,
            min_phrase_ms=settings.min_phrase_ms,
        )


DEFAULT_POLICY = DurationPolicy()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def ends_with_pause(text: str) -> bool:
    """Return True when the text ends in sentence or clause punctuation."""

    stripped = text.rstrip()
    return bool(stripped) and stripped[-1] in TERMINATING_PUNCTUATION


def apply_pause_and_floor(
    duration_ms: float, text: str, policy: DurationPolicy = DEFAULT_POLICY
) -> int:
    """Add the punctuation pause to a millisecond duration and clamp to the floor."""

    if not math.isfinite(duration_ms) or duration_ms < 0:
        duration_ms = 0
    if ends_with_pause(text):
        duration_ms += policy.pause_ms
    return max(policy.min_phrase_ms, round_half_up(duration_ms))


def to_milliseconds(raw_duration: float) -> float:
    """Resolve the seconds/milliseconds ambiguity of a raw duration."""

    if not math.isfinite(raw_duration) or raw_duration < 0:
        return 0
    if raw_duration < SECONDS_TO_MS_THRESHOLD:
        return raw_duration * 1000
    return raw_duration


def normalize(
    raw_duration: float, text: str, policy: DurationPolicy = DEFAULT_POLICY
) -> int:
    """Convert a duration of ambiguous unit into milliseconds.

    Values under ``SECONDS_TO_MS_THRESHOLD`` are treated as seconds, anything else
    as milliseconds. Punctuation-terminated text gets the pause add-on and the
    result never drops below the policy's minimum phrase duration.
    """

    return apply_pause_and_floor(to_milliseconds(raw_duration), text, policy)


__all__ = [
    "DEFAULT_POLICY",
    "DurationPolicy",
    "SECONDS_TO_MS_THRESHOLD",
    "TERMINATING_PUNCTUATION",
    "apply_pause_and_floor",
    "ends_with_pause",
    "normalize",
    "round_half_up",
    "to_milliseconds",
]
