"""File and directory sizing with live partial progress.

This module provides:
- ProgressTable: running byte totals of directory walks still in progress
- FileSizer: single-file length lookup
- DirectorySizer: recursive walk that tolerates per-entry failures, paces
  itself, and tries an opaque-bundle shortcut before walking

Blocking filesystem calls are offloaded with ``asyncio.to_thread``, one call
per directory, so the event loop stays responsive while many directories are
sized concurrently. Both sizers write their final outcome through to the
SizeCache, failures included, so a denied path is not retried every session.
"""

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Final

from dirscope.core.bundles import is_opaque_bundle
from dirscope.core.cache import SizeCache
from dirscope.core.classifier import report_access_failure
from dirscope.core.config import DEFAULT_BUNDLE_SUFFIXES
from dirscope.types.models import (
    Computed,
    EntryKind,
    ErrorKind,
    Failed,
    SizeOutcome,
)
from dirscope.types.protocols import BundleSizer, Filesystem

logger = logging.getLogger(__name__)

DEFAULT_PACE_EVERY_FILES: Final[int] = 256
DEFAULT_PACE_DELAY: Final[float] = 0.001


class ProgressTable:
    """Running byte totals keyed by the directory being walked.

    A path is present only while its walk is in progress. Totals for a path
    never decrease while it is present, and a path is removed as soon as its
    walk finishes, whether it succeeded or failed.

    The table is mutated from the event loop thread only.
    """

    def __init__(self) -> None:
        self._partials: dict[Path, int] = {}

    def start(self, path: Path) -> None:
        """Register a walk for path with a zero running total."""
        self._partials[path] = 0

    def update(self, path: Path, total: int) -> None:
        """Record a new running total for an active walk.

        Updates for paths that are not being walked are ignored, and a
        smaller total never replaces a larger one.
        """
        current = self._partials.get(path)
        if current is None:
            return
        if total > current:
            self._partials[path] = total

    def finish(self, path: Path) -> None:
        """Remove the running total of a walk that has ended."""
        _ = self._partials.pop(path, None)

    def get(self, path: Path) -> int | None:
        """Return the running total of an active walk, or None."""
        return self._partials.get(path)

    def snapshot(self) -> dict[Path, int]:
        """Return a copy of all running totals."""
        return dict(self._partials)

    def __contains__(self, path: object) -> bool:
        return path in self._partials

    def __len__(self) -> int:
        return len(self._partials)


class FileSizer:
    """Resolve the size of one file."""

    def __init__(self, *, filesystem: Filesystem, cache: SizeCache) -> None:
        self.filesystem: Filesystem = filesystem
        self.cache: SizeCache = cache

    async def size(self, path: Path) -> SizeOutcome:
        """Read a file's length and cache the outcome.

        Args:
            path: File path

        Returns:
            Computed(length), or Failed(PERMISSION_DENIED) if the length
            cannot be read
        """
        outcome: SizeOutcome
        try:
            length = await asyncio.to_thread(self.filesystem.file_size, path)
        except OSError as exc:
            _ = report_access_failure(path, str(exc), action="size file")
            outcome = Failed(ErrorKind.PERMISSION_DENIED)
        else:
            outcome = Computed(length)

        self.cache.put(path, outcome, kind=EntryKind.FILE)
        return outcome


class DirectorySizer:
    """Recursively size one directory while publishing partial progress.

    The walk inside one directory tree is sequential; separate directories
    are sized concurrently by running several ``size`` coroutines at once.
    """

    def __init__(
        self,
        *,
        filesystem: Filesystem,
        cache: SizeCache,
        progress: ProgressTable,
        bundle_sizer: BundleSizer | None = None,
        bundle_suffixes: Iterable[str] = DEFAULT_BUNDLE_SUFFIXES,
        pace_every_files: int = DEFAULT_PACE_EVERY_FILES,
        pace_delay: float = DEFAULT_PACE_DELAY,
    ) -> None:
        if pace_every_files <= 0:
            msg = "pace_every_files must be greater than zero"
            raise ValueError(msg)
        if pace_delay < 0:
            msg = "pace_delay must be non-negative"
            raise ValueError(msg)

        self.filesystem: Filesystem = filesystem
        self.cache: SizeCache = cache
        self.progress: ProgressTable = progress
        self.bundle_sizer: BundleSizer | None = bundle_sizer
        self.bundle_suffixes: tuple[str, ...] = tuple(bundle_suffixes)
        self.pace_every_files: int = pace_every_files
        self.pace_delay: float = pace_delay

    async def size(self, path: Path) -> SizeOutcome:
        """Size a directory and cache the outcome.

        The outcome is cached before the partial total is removed, with no
        suspension point in between, so observers always see one of the two.

        Args:
            path: Directory path

        Returns:
            Computed(total) when the directory could be opened and either
            nothing failed or at least one file was readable; otherwise
            Failed(PERMISSION_DENIED)
        """
        self.progress.start(path)
        try:
            outcome = await self._resolve(path)
            self.cache.put(path, outcome, kind=EntryKind.DIRECTORY)
        finally:
            self.progress.finish(path)
        return outcome

    async def _resolve(self, path: Path) -> SizeOutcome:
        if self.bundle_sizer is not None and is_opaque_bundle(path, self.bundle_suffixes):
            shortcut = await self.bundle_sizer.size_of(path)
            if shortcut is not None and shortcut > 0:
                logger.debug(
                    "Sized opaque bundle without walking",
                    extra={"path": str(path), "bytes": shortcut},
                )
                return Computed(shortcut)

        return await self._walk(path)

    async def _walk(self, root: Path) -> SizeOutcome:
        total = 0
        accessible_files = 0
        files_seen = 0
        failures = 0
        pending: list[Path] = [root]

        while pending:
            current = pending.pop()
            try:
                items = await asyncio.to_thread(self.filesystem.scan_dir, current)
            except OSError as exc:
                if current == root:
                    _ = report_access_failure(root, str(exc), action="list directory for sizing")
                    return Failed(ErrorKind.PERMISSION_DENIED)
                _ = report_access_failure(current, str(exc), action="list subdirectory")
                failures += 1
                continue

            for item in items:
                match item.kind:
                    case EntryKind.DIRECTORY:
                        pending.append(item.path)
                    case EntryKind.FILE:
                        files_seen += 1
                        if item.error is not None or item.size is None:
                            # Individual unreadable files are routine; keep walking
                            logger.debug(
                                "Skipping unreadable file",
                                extra={"path": str(item.path), "error": item.error},
                            )
                            failures += 1
                        else:
                            total += item.size
                            accessible_files += 1
                            self.progress.update(root, total)

                        if files_seen % self.pace_every_files == 0:
                            await asyncio.sleep(self.pace_delay)
                    case EntryKind.OTHER:
                        if item.error is not None:
                            failures += 1

        if failures and accessible_files == 0:
            logger.debug(
                "No readable files in directory",
                extra={"path": str(root), "failures": failures},
            )
            return Failed(ErrorKind.PERMISSION_DENIED)

        if failures:
            logger.debug(
                "Directory sized from readable subset",
                extra={
                    "path": str(root),
                    "bytes": total,
                    "accessible_files": accessible_files,
                    "failures": failures,
                },
            )
        return Computed(total)
