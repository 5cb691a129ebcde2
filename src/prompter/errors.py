"""Exceptions shared across the extraction pipeline and the playback scheduler."""

from __future__ import annotations

from typing import Any


class GenerationFailure(Exception):
    """Wrap transport or API failures when calling the external text generator."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


class RateLimitExceeded(GenerationFailure):
    """Raised when the rolling-hour generator call ceiling has been reached."""

    def __init__(self, limit: int, detail: Any | None = None):
        super().__init__(
            429,
            detail
            or f"Rate limit exceeded. Maximum {limit} generator calls per hour.",
        )
        self.limit = limit


class InvalidUserEdit(ValueError):
    """A manual segment edit was rejected; the previous value is kept."""


class SchedulerMisuse(RuntimeError):
    """The playback scheduler was driven outside its state contract."""


__all__ = [
    "GenerationFailure",
    "InvalidUserEdit",
    "RateLimitExceeded",
    "SchedulerMisuse",
]
