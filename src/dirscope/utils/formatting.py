"""Pure formatting utilities for human-readable output.

This module provides stateless formatting functions used by the command-line
front end to render sizes and outcomes. All functions are pure with no side
effects.
"""

from typing import Final

from dirscope.types.models import Computed, EntrySnapshot, Failed, Pending

_UNITS: Final[tuple[str, ...]] = ("B", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")
_STEP: Final[int] = 1024


def format_size(bytes: int, *, decimals: int = 2) -> str:
    """Convert bytes to a human-readable size using binary (1024) units.

    Args:
        bytes: Number of bytes to format (must be non-negative)
        decimals: Number of decimal places for values of 1 KB and above

    Returns:
        Human-readable string such as "512 B" or "1.50 KB"

    Examples:
        >>> format_size(0)
        '0 B'
        >>> format_size(512)
        '512 B'
        >>> format_size(1536)
        '1.50 KB'
        >>> format_size(5 * 1024**3, decimals=1)
        '5.0 GB'
    """
    if bytes < 0:
        msg = "bytes must be non-negative"
        raise ValueError(msg)

    if bytes < _STEP:
        return f"{bytes} B"

    value = float(bytes)
    unit_index = 0
    while value >= _STEP and unit_index < len(_UNITS) - 1:
        value /= _STEP
        unit_index += 1

    return f"{value:.{decimals}f} {_UNITS[unit_index]}"


def format_entry_size(snapshot: EntrySnapshot, *, decimals: int = 2) -> str:
    """Render the size column for one entry of a scan snapshot.

    Failed entries are labelled, never shown as zero bytes. A directory still
    being walked shows its running total followed by an ellipsis.

    Args:
        snapshot: Entry snapshot to render
        decimals: Decimal places passed to format_size

    Returns:
        Size text for display

    Examples:
        Computed directory under a protected root: "1.20 GB (partial)"
        Directory still walking with 3 MB seen so far: "3.00 MB..."
    """
    match snapshot.outcome:
        case Failed(message=message):
            return message
        case Computed(bytes=size):
            text = format_size(size, decimals=decimals)
            if snapshot.possibly_partial:
                text += " (partial)"
            return text
        case Pending():
            if snapshot.partial_bytes:
                return f"{format_size(snapshot.partial_bytes, decimals=decimals)}..."
            if snapshot.calculating:
                return "Computing..."
            return "Unknown"
