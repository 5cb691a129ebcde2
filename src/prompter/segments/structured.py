"""Recover a strict ``{"segments": [...]}`` object from generator output."""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Optional

from .models import RawSegment

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*\r?\n?(.*?)(?:```|\Z)", re.DOTALL)
_SEGMENTS_KEY = '"segments"'


def _fenced_content(raw: str) -> Optional[str]:
    """Return the inside of the first markdown code fence, if any.

    An unterminated fence (truncated output) yields the rest of the text.
    """

    match = _FENCE_RE.search(raw)
    if match is None:
        return None
    return match.group(1).strip()


def _balanced_end(text: str, start: int) -> int:
    """Return the index of the ``}`` closing the brace at ``start``, or -1.

    Quoted strings are tracked (escapes honored) so braces inside values do not
    count towards the depth.
    """

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


def find_segments_object(text: str) -> Optional[str]:
    """Return the balanced ``{...}`` region that holds the ``"segments"`` key.

    Scanning starts at the first ``{`` that is followed somewhere by
    ``"segments"``. A closed region that does not contain the key (e.g. a stray
    object in leading commentary) is skipped and the scan resumes after it.
    Returns None when no region qualifies or the region never closes.
    """

    key_pos = text.rfind(_SEGMENTS_KEY)
    if key_pos == -1:
        return None

    start = text.find("{")
    while start != -1 and start < key_pos:
        end = _balanced_end(text, start)
        if end == -1:
            return None
        region = text[start : end + 1]
        if _SEGMENTS_KEY in region:
            return region
        start = text.find("{", end + 1)
    return None


def _coerce_duration(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        duration = float(value)
    elif isinstance(value, str):
        try:
            duration = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return duration if math.isfinite(duration) else None


def _segments_from_payload(payload: Any) -> list[RawSegment]:
    if not isinstance(payload, dict):
        return []
    items = payload.get("segments")
    if not isinstance(items, list):
        return []

    segments: list[RawSegment] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        text = item.get("text")
        duration = _coerce_duration(item.get("duration"))
        if not isinstance(text, str) or not text.strip() or duration is None:
            continue
        segments.append(RawSegment(text=text, duration=duration))
    return segments


def _load(candidate: str) -> list[RawSegment]:
    try:
        payload = json.loads(candidate)
    except (json.JSONDecodeError, RecursionError):
        return []
    return _segments_from_payload(payload)


def try_structured(raw: str) -> list[RawSegment]:
    """Parse the generator's segment document; return [] when it is not usable."""

    if not raw or not raw.strip():
        return []

    candidate = _fenced_content(raw)
    if candidate is not None:
        segments = _load(candidate)
        if segments:
            return segments
        source = candidate
    else:
        source = raw

    region = find_segments_object(source)
    if region is None:
        logger.debug("No balanced segments object found in generator output")
        return []
    segments = _load(region)
    if not segments:
        logger.debug("Segments object did not parse as a usable document")
    return segments


__all__ = ["find_segments_object", "try_structured"]
