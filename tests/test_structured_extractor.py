"""Tests for strict segment-document extraction."""

from prompter.segments.models import RawSegment
from prompter.segments.structured import find_segments_object, try_structured


def test_parses_bare_document():
    raw = '{"segments": [{"text": "Hello there", "duration": 800}]}'

    assert try_structured(raw) == [RawSegment("Hello there", 800)]


def test_parses_fenced_block_with_language_tag():
    raw = (
        "Here you go:\n"
        "```json\n"
        '{"segments": [{"text": "Good morning,", "duration": 1.2},'
        ' {"text": "everyone.", "duration": 0.8}]}\n'
        "```\n"
        "Let me know if you need changes."
    )

    assert try_structured(raw) == [
        RawSegment("Good morning,", 1.2),
        RawSegment("everyone.", 0.8),
    ]


def test_object_embedded_in_prose():
    raw = 'Sure! {"segments": [{"text": "a b", "duration": "900"}]} Hope that helps.'

    assert try_structured(raw) == [RawSegment("a b", 900.0)]


def test_braces_inside_strings_do_not_end_region():
    raw = 'x {"segments": [{"text": "use } and { freely", "duration": 700}]} y'

    assert try_structured(raw) == [RawSegment("use } and { freely", 700)]


def test_escaped_quotes_inside_strings():
    raw = '{"segments": [{"text": "say \\"hi\\" }", "duration": 600}]}'

    assert try_structured(raw) == [RawSegment('say "hi" }', 600)]


def test_skips_leading_object_without_segments_key():
    raw = 'meta {"note": "ignore"} then {"segments": [{"text": "ok", "duration": 500}]}'

    assert try_structured(raw) == [RawSegment("ok", 500)]


def test_unbalanced_region_yields_nothing():
    raw = '{"segments": [{"text": "cut off", "duration": 500}'

    assert find_segments_object(raw) is None
    assert try_structured(raw) == []


def test_unterminated_fence_uses_rest_of_text():
    raw = '```json\n{"segments": [{"text": "partial", "duration": 400}]}'

    assert try_structured(raw) == [RawSegment("partial", 400)]


def test_invalid_entries_are_dropped():
    raw = (
        '{"segments": ['
        '{"text": "", "duration": 500},'
        '{"text": "no duration"},'
        '{"text": "bool", "duration": true},'
        '"not an object",'
        '{"text": "kept", "duration": 650}'
        "]}"
    )

    assert try_structured(raw) == [RawSegment("kept", 650)]


def test_non_list_segments_yield_nothing():
    assert try_structured('{"segments": "nope"}') == []


def test_no_segments_key():
    assert try_structured('{"text": "a", "duration": 1}') == []
    assert find_segments_object("plain prose") is None


def test_blank_input():
    assert try_structured("") == []
    assert try_structured("   ") == []
