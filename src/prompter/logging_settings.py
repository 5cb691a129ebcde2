"""Per-area log levels read from a small ``area = level`` file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

_LEVEL_MAP: dict[str, int | None] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "off": None,
}
_DEFAULT_LEVEL = "info"

# Logger namespaces governed by each area; ``terminal`` is the console handler.
LOGGER_NAMESPACES: dict[str, tuple[str, ...]] = {
    "terminal": (),
    "extraction": (
        "prompter.segments",
        "prompter.generator",
        "prompter.services",
    ),
    "playback": ("prompter.playback",),
}


@dataclass(frozen=True)
class LoggingSettings:
    terminal_level: int | None
    extraction_level: int | None
    playback_level: int | None

    def level_for(self, area: str) -> int | None:
        return getattr(self, f"{area}_level")


def _read_entries(path: Path) -> dict[str, str]:
    """Return lower-cased ``area -> level`` pairs for the known areas."""

    entries: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.startswith("#"):
            continue
        area, sep, level = line.partition("=")
        area = area.strip().lower()
        if sep and area in LOGGER_NAMESPACES:
            entries[area] = level.strip().lower()
    return entries


def parse_logging_settings(path: Path) -> LoggingSettings:
    """Parse the logging settings file; missing areas and unknown levels read as info."""

    entries = _read_entries(path) if path.exists() else {}
    levels = {
        f"{area}_level": _LEVEL_MAP.get(
            entries.get(area, _DEFAULT_LEVEL), _LEVEL_MAP[_DEFAULT_LEVEL]
        )
        for area in LOGGER_NAMESPACES
    }
    return LoggingSettings(**levels)


def apply_logging_settings(
    settings: LoggingSettings, console_handler: logging.Handler | None = None
) -> None:
    """Apply per-namespace levels; ``off`` silences a namespace entirely."""

    for area, namespaces in LOGGER_NAMESPACES.items():
        level = settings.level_for(area)
        for name in namespaces:
            target = logging.getLogger(name)
            target.disabled = level is None
            if level is not None:
                target.setLevel(level)

    if console_handler is not None:
        level = settings.level_for("terminal")
        console_handler.setLevel(logging.CRITICAL + 1 if level is None else level)


__all__ = [
    "LOGGER_NAMESPACES",
    "LoggingSettings",
    "apply_logging_settings",
    "parse_logging_settings",
]
