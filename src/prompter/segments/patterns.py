"""Recover ``text``/``duration`` pairs from generator output that is not valid JSON.

The scanner looks for the two fields sitting next to each other inside one
object-like fragment, in either order and with either quote style, without caring
whether the surrounding document parses. Truncated streams and models that emit
single-quoted pseudo-JSON still yield every complete pair.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from .models import RawSegment

logger = logging.getLogger(__name__)

_QUOTES = ('"', "'")
_TEXT_KEY = "text"
_DURATION_KEY = "duration"
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    '"': '"',
    "'": "'",
    "\\": "\\",
    "/": "/",
}


def _hex4(value: str, start: int) -> Optional[int]:
    digits = value[start : start + 4]
    if len(digits) != 4 or not all(char in _HEX_DIGITS for char in digits):
        return None
    return int(digits, 16)


def decode_escapes(value: str) -> str:
    """Decode backslash escapes, leaving malformed sequences as written."""

    out: list[str] = []
    index = 0
    length = len(value)
    while index < length:
        char = value[index]
        if char != "\\" or index + 1 >= length:
            out.append(char)
            index += 1
            continue

        marker = value[index + 1]
        if marker in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[marker])
            index += 2
            continue

        if marker == "u":
            code = _hex4(value, index + 2)
            if code is not None and 0xD800 <= code <= 0xDBFF:
                # High surrogate: only valid when a low surrogate follows.
                low = None
                if value.startswith("\\u", index + 6):
                    low = _hex4(value, index + 8)
                if low is not None and 0xDC00 <= low <= 0xDFFF:
                    out.append(chr(0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)))
                    index += 12
                    continue
                code = None
            elif code is not None and 0xDC00 <= code <= 0xDFFF:
                code = None
            if code is not None:
                out.append(chr(code))
                index += 6
                continue

        out.append(char)
        out.append(marker)
        index += 2
    return "".join(out)


def _skip_whitespace(raw: str, index: int) -> int:
    while index < len(raw) and raw[index].isspace():
        index += 1
    return index


def _read_key(raw: str, index: int, name: str) -> Optional[int]:
    """Match ``'name':`` or ``"name":`` at ``index``; return the value position."""

    if index >= len(raw) or raw[index] not in _QUOTES:
        return None
    quote = raw[index]
    end = index + 1 + len(name)
    if not raw.startswith(name, index + 1) or end >= len(raw) or raw[end] != quote:
        return None
    colon = _skip_whitespace(raw, end + 1)
    if colon >= len(raw) or raw[colon] != ":":
        return None
    return _skip_whitespace(raw, colon + 1)


def _read_string(raw: str, index: int) -> Optional[tuple[str, int]]:
    """Read a quoted value at ``index``; return (decoded text, position after it)."""

    if index >= len(raw) or raw[index] not in _QUOTES:
        return None
    quote = raw[index]
    escaped = False
    for cursor in range(index + 1, len(raw)):
        char = raw[cursor]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == quote:
            return decode_escapes(raw[index + 1 : cursor]), cursor + 1
    return None


def _read_number(raw: str, index: int) -> Optional[tuple[float, int]]:
    """Read a bare or quoted decimal number at ``index``."""

    quote = None
    if index < len(raw) and raw[index] in _QUOTES:
        quote = raw[index]
        index = _skip_whitespace(raw, index + 1)

    start = index
    cursor = index
    if cursor < len(raw) and raw[cursor] in "+-":
        cursor += 1
    digits_start = cursor
    while cursor < len(raw) and raw[cursor].isdigit():
        cursor += 1
    seen_digits = cursor > digits_start
    if cursor < len(raw) and raw[cursor] == ".":
        cursor += 1
        fraction_start = cursor
        while cursor < len(raw) and raw[cursor].isdigit():
            cursor += 1
        seen_digits = seen_digits or cursor > fraction_start
    if not seen_digits:
        return None
    if cursor < len(raw) and raw[cursor] in "eE":
        exponent = cursor + 1
        if exponent < len(raw) and raw[exponent] in "+-":
            exponent += 1
        exponent_digits = exponent
        while exponent < len(raw) and raw[exponent].isdigit():
            exponent += 1
        if exponent > exponent_digits:
            cursor = exponent

    value = float(raw[start:cursor])
    if not math.isfinite(value):
        return None
    if quote is not None:
        closing = _skip_whitespace(raw, cursor)
        if closing >= len(raw) or raw[closing] != quote:
            return None
        cursor = closing + 1
    return value, cursor


def _read_separator(raw: str, index: int) -> Optional[int]:
    index = _skip_whitespace(raw, index)
    if index >= len(raw) or raw[index] != ",":
        return None
    return _skip_whitespace(raw, index + 1)


def _match_text_first(raw: str, index: int) -> Optional[tuple[str, float, int]]:
    value_at = _read_key(raw, index, _TEXT_KEY)
    if value_at is None:
        return None
    text = _read_string(raw, value_at)
    if text is None:
        return None
    next_key = _read_separator(raw, text[1])
    if next_key is None:
        return None
    number_at = _read_key(raw, next_key, _DURATION_KEY)
    if number_at is None:
        return None
    number = _read_number(raw, number_at)
    if number is None:
        return None
    return text[0], number[0], number[1]


def _match_duration_first(raw: str, index: int) -> Optional[tuple[str, float, int]]:
    number_at = _read_key(raw, index, _DURATION_KEY)
    if number_at is None:
        return None
    number = _read_number(raw, number_at)
    if number is None:
        return None
    next_key = _read_separator(raw, number[1])
    if next_key is None:
        return None
    value_at = _read_key(raw, next_key, _TEXT_KEY)
    if value_at is None:
        return None
    text = _read_string(raw, value_at)
    if text is None:
        return None
    return text[0], number[0], text[1]


def _next_quote(raw: str, start: int) -> int:
    positions = [pos for pos in (raw.find(q, start) for q in _QUOTES) if pos != -1]
    return min(positions) if positions else -1


def try_pattern_match(raw: str) -> list[RawSegment]:
    """Return every adjacent text/duration pair in source order."""

    if not raw:
        return []

    segments: list[RawSegment] = []
    position = 0
    while position < len(raw):
        index = _next_quote(raw, position)
        if index == -1:
            break
        match = _match_text_first(raw, index) or _match_duration_first(raw, index)
        if match is None:
            position = index + 1
            continue
        text, duration, end = match
        if text.strip():
            segments.append(RawSegment(text=text, duration=duration))
        position = end

    if segments:
        logger.debug("Pattern extraction recovered %d segments", len(segments))
    return segments


__all__ = ["decode_escapes", "try_pattern_match"]
