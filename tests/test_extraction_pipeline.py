"""Tests for the structured -> pattern -> local fallback chain."""

import asyncio

import pytest

from prompter.segments.local import segment_locally
from prompter.segments.pipeline import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    ExtractionSource,
    StreamAccumulator,
    collect_generator_text,
    extract,
    extract_with_source,
)

SOURCE_TEXT = "Friends and colleagues, thank you for coming."


async def _events(*events):
    for event in events:
        yield event


def test_structured_output_wins():
    raw = '{"segments": [{"text": "Friends and colleagues,", "duration": 1.5}]}'

    result = extract_with_source(raw, SOURCE_TEXT)

    assert result.source is ExtractionSource.STRUCTURED
    assert not result.is_fallback
    assert [(s.text, s.duration_ms) for s in result.sequence] == [
        ("Friends and colleagues,", 1700)
    ]


def test_pattern_used_when_json_is_broken():
    raw = '{"segments": [{"text": "thank you", "duration": 900}, {"text": "for'

    result = extract_with_source(raw, SOURCE_TEXT)

    assert result.source is ExtractionSource.PATTERN
    assert [(s.text, s.duration_ms) for s in result.sequence] == [("thank you", 900)]


def test_falls_back_to_local_segmenter():
    result = extract_with_source("I cannot help with that.", SOURCE_TEXT)

    assert result.source is ExtractionSource.LOCAL
    assert result.is_fallback
    assert result.sequence == segment_locally(SOURCE_TEXT)


def test_missing_generator_output_goes_straight_to_local():
    assert extract(None, SOURCE_TEXT) == segment_locally(SOURCE_TEXT)
    assert extract("", SOURCE_TEXT) == segment_locally(SOURCE_TEXT)


def test_target_duration_reaches_local_fallback():
    sequence = extract(None, "a b c d e", target_duration_seconds=5)

    assert sequence.total_duration_ms == 5000


def test_empty_only_when_source_has_no_words():
    assert len(extract("garbage", "   ")) == 0
    assert len(extract("garbage", "word")) == 1


def test_every_duration_respects_floor():
    raw = '{"segments": [{"text": "a", "duration": 0.01}, {"text": "b", "duration": 120}]}'

    assert all(s.duration_ms >= 300 for s in extract(raw, SOURCE_TEXT))


class TestStreamAccumulator:
    def test_chunks_are_joined(self):
        accumulator = StreamAccumulator()
        assert not accumulator.feed(ChunkEvent('{"seg'))
        assert not accumulator.feed(ChunkEvent('ments": []}'))
        assert accumulator.feed(DoneEvent())
        assert accumulator.result() == '{"segments": []}'

    def test_done_payload_is_authoritative(self):
        accumulator = StreamAccumulator()
        accumulator.feed(ChunkEvent("partial"))
        accumulator.feed(DoneEvent("final text"))
        assert accumulator.result() == "final text"

    def test_blank_done_payload_is_ignored(self):
        accumulator = StreamAccumulator()
        accumulator.feed(ChunkEvent("kept"))
        accumulator.feed(DoneEvent("   "))
        assert accumulator.result() == "kept"

    def test_error_discards_buffer(self):
        accumulator = StreamAccumulator()
        accumulator.feed(ChunkEvent("partial"))
        assert accumulator.feed(ErrorEvent("boom"))
        assert accumulator.failed
        assert accumulator.result() is None


@pytest.mark.asyncio
async def test_collect_generator_text_prefers_done_payload():
    text = await collect_generator_text(
        _events(ChunkEvent("a"), ChunkEvent("b"), DoneEvent("final"))
    )

    assert text == "final"


@pytest.mark.asyncio
async def test_collect_generator_text_without_done_signal():
    assert await collect_generator_text(_events(ChunkEvent("a"), ChunkEvent("b"))) == "ab"


@pytest.mark.asyncio
async def test_collect_generator_text_stops_after_done():
    text = await collect_generator_text(
        _events(ChunkEvent("a"), DoneEvent(), ChunkEvent("ignored"))
    )

    assert text == "a"


@pytest.mark.asyncio
async def test_collect_generator_text_error_returns_none():
    assert await collect_generator_text(_events(ChunkEvent("a"), ErrorEvent("x"))) is None


@pytest.mark.asyncio
async def test_collect_generator_text_cancel_discards_buffer():
    cancel = asyncio.Event()

    async def events():
        yield ChunkEvent("partial")
        cancel.set()
        yield ChunkEvent("more")
        yield DoneEvent()

    assert await collect_generator_text(events(), cancel_event=cancel) is None
