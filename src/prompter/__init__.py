"""Teleprompter core: segment extraction and timed playback."""

__version__ = "0.1.0"
