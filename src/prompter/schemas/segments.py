"""Pydantic models for segment documents and segmentation requests/events."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class SegmentItem(BaseModel):
    """A single ``{text, duration}`` entry; ``duration`` may be seconds or ms."""

    text: str = Field(min_length=1)
    duration: float = Field(ge=0)

    model_config = ConfigDict(extra="ignore")


class SegmentDocument(BaseModel):
    """Wire/storage shape ``{"segments": [...]}``."""

    segments: List[SegmentItem] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class SegmentationRequest(BaseModel):
    """Text to split, with an optional generator model and target length."""

    text: str = Field(min_length=1)
    model: Optional[str] = None
    target_duration: Optional[float] = Field(
        default=None,
        gt=0,
        alias="targetDuration",
        description="Desired total speaking time in seconds.",
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SegmentationEvent(BaseModel):
    """Progress or completion notice emitted while segmenting.

    Progress events carry the newly generated ``content``; the final event has
    ``done`` set and carries the normalized segments (durations in ms).
    """

    type: Literal["progress", "done"]
    content: Optional[str] = None
    done: bool = False
    segments: Optional[List[Dict[str, Any]]] = None
    source: Optional[str] = None
    fallback: bool = False
    error: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class RateLimitStatus(BaseModel):
    """Usage of the rolling-hour generator call budget."""

    used: int
    limit: int
    remaining: int


__all__ = [
    "RateLimitStatus",
    "SegmentDocument",
    "SegmentItem",
    "SegmentationEvent",
    "SegmentationRequest",
]
