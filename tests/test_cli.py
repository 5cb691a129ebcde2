import json
from pathlib import Path

import pytest
from rich.console import Console

from prompter.cli import build_parser, load_sequence, run, save_sequence
from prompter.config import Settings
from prompter.segments.durations import DEFAULT_POLICY, DurationPolicy
from prompter.segments.models import Segment, SegmentSequence


def local_settings() -> Settings:
    return Settings(_env_file=None, generator_api_key=None)


def quiet_console() -> Console:
    return Console(record=True, width=100, force_terminal=False)


@pytest.mark.asyncio
async def test_segment_local_writes_document(tmp_path: Path) -> None:
    output = tmp_path / "speech.json"
    args = build_parser().parse_args(
        ["segment", "Hello there, my friends.", "--local", "-o", str(output)]
    )

    code = await run(args, local_settings(), quiet_console())

    assert code == 0
    assert json.loads(output.read_text()) == {
        "segments": [
            {"text": "Hello there,", "duration": 1000},
            {"text": "my friends.", "duration": 1000},
        ]
    }


@pytest.mark.asyncio
async def test_segment_without_key_falls_back(tmp_path: Path) -> None:
    script = tmp_path / "speech.txt"
    script.write_text("One two three four five.")
    output = tmp_path / "speech.json"
    console = quiet_console()
    args = build_parser().parse_args(["segment", str(script), "-o", str(output)])

    code = await run(args, local_settings(), console)

    assert code == 0
    assert "generator_unavailable" in console.export_text()
    assert len(json.loads(output.read_text())["segments"]) == 2


@pytest.mark.asyncio
async def test_edit_updates_document(tmp_path: Path) -> None:
    document = tmp_path / "speech.json"
    save_sequence(document, SegmentSequence([Segment("a b", 800), Segment("c.", 600, True)]))
    args = build_parser().parse_args(["edit", str(document), "1", "1500"])

    code = await run(args, local_settings(), quiet_console())

    assert code == 0
    assert json.loads(document.read_text())["segments"][1]["duration"] == 1500


@pytest.mark.asyncio
async def test_edit_rejects_values_below_floor(tmp_path: Path) -> None:
    document = tmp_path / "speech.json"
    save_sequence(document, SegmentSequence([Segment("a b", 800)]))
    console = quiet_console()
    args = build_parser().parse_args(["edit", str(document), "0", "100"])

    code = await run(args, local_settings(), console)

    assert code == 1
    assert "Edit rejected" in console.export_text()
    assert json.loads(document.read_text())["segments"][0]["duration"] == 800


def test_load_sequence_reads_text_and_documents(tmp_path: Path) -> None:
    text_file = tmp_path / "speech.txt"
    text_file.write_text("alpha beta gamma")
    document = tmp_path / "speech.json"
    document.write_text(json.dumps({"segments": [{"text": "alpha", "duration": 2000}]}))

    assert [s.text for s in load_sequence(text_file, DEFAULT_POLICY)] == ["alpha beta", "gamma"]
    assert load_sequence(document, DEFAULT_POLICY)[0].duration_ms == 2000


def test_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


@pytest.mark.asyncio
async def test_edit_of_text_script_writes_json_beside_it(tmp_path: Path) -> None:
    script = tmp_path / "speech.txt"
    script.write_text("Hello there my good friends")
    args = build_parser().parse_args(["edit", str(script), "0", "1500"])

    code = await run(args, local_settings(), quiet_console())

    assert code == 0
    assert script.read_text() == "Hello there my good friends"
    document = json.loads((tmp_path / "speech.json").read_text())
    assert document["segments"][0] == {"text": "Hello there", "duration": 1500}


def test_saved_short_durations_reload_as_milliseconds(tmp_path: Path) -> None:
    document = tmp_path / "speech.json"
    document.write_text(json.dumps({"segments": [{"text": "quick", "duration": 60}]}))
    policy = DurationPolicy(min_phrase_ms=50)

    assert load_sequence(document, policy)[0].duration_ms == 60
