"""Command-line application for dirscope."""

from dirscope.app.cli import cli

__all__ = ["cli"]
