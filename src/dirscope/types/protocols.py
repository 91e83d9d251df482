"""Protocol definitions for component interfaces.

This module defines structural subtyping protocols for the collaborators the
sizing engine depends on, so tests and alternative hosts can substitute them
without inheritance.
"""

from pathlib import Path
from typing import Protocol, runtime_checkable

from dirscope.types.models import (
    Entry,
    ListFailure,
    ScannedItem,
    ScanSnapshot,
)


@runtime_checkable
class Filesystem(Protocol):
    """Blocking filesystem access used by the lister and sizers.

    Implementations are called from worker threads via ``asyncio.to_thread``
    and must not follow symbolic links.
    """

    def list_dir(self, path: Path) -> list[Entry]:
        """List the immediate children of a directory.

        Args:
            path: Directory to list

        Returns:
            Children in no particular order

        Raises:
            OSError: If the directory itself cannot be opened or enumerated
        """
        ...

    def scan_dir(self, path: Path) -> list[ScannedItem]:
        """List a directory and read the length of every regular file in it.

        Per-file failures are reported on the returned items, not raised.

        Args:
            path: Directory to scan

        Returns:
            Children with file sizes or per-file error text

        Raises:
            OSError: If the directory itself cannot be opened or enumerated
        """
        ...

    def file_size(self, path: Path) -> int:
        """Return the length of a single file without following symlinks.

        Raises:
            OSError: If the length cannot be read
        """
        ...


@runtime_checkable
class BundleSizer(Protocol):
    """Shortcut sizing strategy for opaque bundles (e.g. ``.app`` packages)."""

    async def size_of(self, path: Path) -> int | None:
        """Return the bundle size in bytes, or None when no usable value exists.

        Implementations must not raise for ordinary failures; returning None
        makes the caller fall back to a full recursive walk.
        """
        ...


class SnapshotObserver(Protocol):
    """Consumer of scan session updates (the presentation layer)."""

    def on_snapshot(self, snapshot: ScanSnapshot) -> None:
        """Receive a snapshot on every refresh pass and once on completion."""
        ...

    def on_list_failed(self, failure: ListFailure) -> None:
        """Receive the structured notification for a failed top-level listing."""
        ...
