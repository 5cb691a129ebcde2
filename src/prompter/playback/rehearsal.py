"""Per-segment timings captured while the speaker rehearses."""

from __future__ import annotations

from typing import Optional


class RehearsalRecording:
    """Recorded durations by segment index.

    ``None`` means the segment has not been marked yet, which is distinct from a
    recorded ``0``. ``elapsed_base_ms`` always equals the sum of the recorded
    values.
    """

    def __init__(self, length: int):
        if length < 0:
            raise ValueError("length must be >= 0")
        self._durations: list[Optional[int]] = [None] * length
        self.elapsed_base_ms = 0

    def __len__(self) -> int:
        return len(self._durations)

    def record(self, index: int, duration_ms: int) -> None:
        previous = self._durations[index]
        if previous is not None:
            self.elapsed_base_ms -= previous
        self._durations[index] = duration_ms
        self.elapsed_base_ms += duration_ms

    def discard(self, index: int) -> Optional[int]:
        """Forget the recording at ``index`` and return it."""

        previous = self._durations[index]
        if previous is not None:
            self.elapsed_base_ms -= previous
        self._durations[index] = None
        return previous

    def get(self, index: int) -> Optional[int]:
        return self._durations[index]

    @property
    def recorded_count(self) -> int:
        return sum(1 for value in self._durations if value is not None)

    @property
    def is_complete(self) -> bool:
        return all(value is not None for value in self._durations)

    @property
    def durations(self) -> list[Optional[int]]:
        return list(self._durations)


__all__ = ["RehearsalRecording"]
