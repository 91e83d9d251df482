"""Shared utility modules.

This package provides:
- Size formatting (bytes and entry outcomes to human-readable text)
- Logging configuration with scan id propagation
"""

from dirscope.utils.formatting import format_entry_size, format_size

__all__ = [
    "format_entry_size",
    "format_size",
]
