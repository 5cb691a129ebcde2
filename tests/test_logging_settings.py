"""Tests for logging settings parsing."""

import logging
from pathlib import Path

from prompter.logging_settings import (
    LoggingSettings,
    apply_logging_settings,
    parse_logging_settings,
)


def test_parse_logging_settings(tmp_path: Path) -> None:
    """Test parsing every supported key."""
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text(
        """
# Test config
terminal = debug
extraction = info
playback = warning
"""
    )

    settings = parse_logging_settings(config_file)

    assert settings.terminal_level == 10  # DEBUG
    assert settings.extraction_level == 20  # INFO
    assert settings.playback_level == 30  # WARNING


def test_parse_logging_settings_defaults(tmp_path: Path) -> None:
    """Test default values when config file doesn't exist."""
    settings = parse_logging_settings(tmp_path / "nonexistent.conf")

    assert settings == LoggingSettings(20, 20, 20)


def test_parse_logging_settings_ignores_noise(tmp_path: Path) -> None:
    """Unknown keys, lines without '=' and unknown levels fall back to defaults."""
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text(
        """
not a setting
sessions = debug
PLAYBACK = Debug
extraction = loud
"""
    )

    settings = parse_logging_settings(config_file)

    assert settings.playback_level == 10
    assert settings.extraction_level == 20
    assert settings.terminal_level == 20


def test_parse_logging_settings_off_level(tmp_path: Path) -> None:
    """Test parsing with 'off' level."""
    config_file = tmp_path / "logging_settings.conf"
    config_file.write_text("terminal = off\nplayback = off\n")

    settings = parse_logging_settings(config_file)

    assert settings.terminal_level is None
    assert settings.playback_level is None
    assert settings.extraction_level == 20


def test_apply_logging_settings() -> None:
    handler = logging.StreamHandler()
    playback_logger = logging.getLogger("prompter.playback")
    segments_logger = logging.getLogger("prompter.segments")
    try:
        apply_logging_settings(LoggingSettings(None, logging.DEBUG, None), handler)

        assert playback_logger.disabled
        assert not segments_logger.disabled
        assert segments_logger.level == logging.DEBUG
        assert handler.level > logging.CRITICAL
    finally:
        playback_logger.disabled = False
        playback_logger.setLevel(logging.NOTSET)
        segments_logger.setLevel(logging.NOTSET)
        for name in ("prompter.generator", "prompter.services"):
            logging.getLogger(name).setLevel(logging.NOTSET)


def test_level_for_reads_each_area() -> None:
    settings = LoggingSettings(logging.WARNING, None, logging.DEBUG)

    assert settings.level_for("terminal") == logging.WARNING
    assert settings.level_for("extraction") is None
    assert settings.level_for("playback") == logging.DEBUG
