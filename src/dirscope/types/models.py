"""Data models for dirscope.

This module defines the immutable dataclasses exchanged between the lister,
the sizers, the aggregation functions, and scan sessions. Size outcomes are a
closed variant (``Pending | Computed | Failed``) dispatched with ``match``.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class EntryKind(Enum):
    """Kind of filesystem object found while listing a directory.

    Symbolic links are never followed, so a link to a directory is OTHER.
    Sockets, FIFOs and device nodes are OTHER as well.
    """

    FILE = "file"
    DIRECTORY = "directory"
    OTHER = "other"


class ErrorKind(Enum):
    """Reason a size could not be resolved."""

    PERMISSION_DENIED = "permission_denied"


@dataclass(slots=True, frozen=True)
class Entry:
    """Immediate child of a scanned directory.

    Identity is the path; paths are unique within one listing.
    """

    path: Path
    kind: EntryKind

    @property
    def name(self) -> str:
        """Final path component, or the full path for the root."""
        return self.path.name or str(self.path)

    @property
    def is_directory(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


@dataclass(slots=True, frozen=True)
class Pending:
    """Size not resolved yet."""


@dataclass(slots=True, frozen=True)
class Computed:
    """Resolved size in bytes (always non-negative)."""

    bytes: int

    def __post_init__(self) -> None:
        if self.bytes < 0:
            msg = "bytes must be non-negative"
            raise ValueError(msg)


@dataclass(slots=True, frozen=True)
class Failed:
    """Size could not be resolved.

    ``message`` is a short human-readable label, not the raw OS error text.
    """

    reason: ErrorKind = ErrorKind.PERMISSION_DENIED
    message: str = "Permission denied"


type SizeOutcome = Pending | Computed | Failed

PENDING = Pending()


def is_final(outcome: SizeOutcome) -> bool:
    """Return True for outcomes that may be cached (Computed or Failed)."""
    return not isinstance(outcome, Pending)


@dataclass(slots=True, frozen=True)
class CacheStats:
    """Counts of cached outcomes for diagnostic display."""

    directories: int
    files: int
    errors: int

    @property
    def total(self) -> int:
        return self.directories + self.files


@dataclass(slots=True, frozen=True)
class ListFailure:
    """Structured notification for a directory that could not be listed.

    Carries the raw error text and a permission category so a presentation
    collaborator can render guidance. ``expected`` mirrors the error
    classifier decision used for diagnostics.
    """

    path: Path
    message: str
    expected: bool
    permission_category: str


@dataclass(slots=True, frozen=True)
class AccessProbe:
    """Result of a fresh accessibility check on a directory."""

    path: Path
    accessible: bool
    message: str | None


@dataclass(slots=True, frozen=True)
class EntrySnapshot:
    """Point-in-time view of one entry within a scan session.

    ``resolved_bytes`` is the value used for ordering: the computed size, the
    live partial total of a directory still being walked, or 0. Failed
    entries report 0 here but must never be presented as "0 bytes".
    ``possibly_partial`` flags computed sizes under OS-protected locations,
    where some content was likely unreadable.
    """

    entry: Entry
    outcome: SizeOutcome
    calculating: bool
    partial_bytes: int | None
    resolved_bytes: int
    possibly_partial: bool = False


@dataclass(slots=True, frozen=True)
class ScanSnapshot:
    """Snapshot pushed to observers on every refresh and on completion."""

    path: Path
    entries: tuple[EntrySnapshot, ...]
    total_bytes: int
    any_calculating: bool
    has_errors: bool
    list_failure: ListFailure | None = None

    @property
    def completed(self) -> bool:
        """True once nothing is calculating (including failed listings)."""
        return not self.any_calculating


@dataclass(slots=True, frozen=True)
class ScannedItem:
    """One child found while walking a directory for sizing.

    For files, exactly one of ``size`` and ``error`` is set. Directories and
    other kinds carry neither unless their type could not be determined.
    """

    path: Path
    kind: EntryKind
    size: int | None = None
    error: str | None = None
