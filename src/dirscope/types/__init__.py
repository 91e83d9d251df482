"""Type definitions and protocols for dirscope.

This package provides:
- Data models (immutable dataclasses and the size outcome variant)
- Protocol definitions (structural subtyping interfaces)
- Type aliases (PEP 695 modern syntax)
"""

from dirscope.types.aliases import CalculatingMap, OutcomeMap, PartialMap
from dirscope.types.models import (
    PENDING,
    AccessProbe,
    CacheStats,
    Computed,
    Entry,
    EntryKind,
    EntrySnapshot,
    ErrorKind,
    Failed,
    ListFailure,
    Pending,
    ScannedItem,
    ScanSnapshot,
    SizeOutcome,
    is_final,
)
from dirscope.types.protocols import BundleSizer, Filesystem, SnapshotObserver

__all__ = [
    # Type aliases
    "CalculatingMap",
    "OutcomeMap",
    "PartialMap",
    # Data models
    "PENDING",
    "AccessProbe",
    "CacheStats",
    "Computed",
    "Entry",
    "EntryKind",
    "EntrySnapshot",
    "ErrorKind",
    "Failed",
    "ListFailure",
    "Pending",
    "ScannedItem",
    "ScanSnapshot",
    "SizeOutcome",
    "is_final",
    # Protocols
    "BundleSizer",
    "Filesystem",
    "SnapshotObserver",
]
