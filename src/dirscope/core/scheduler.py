"""Process-wide scheduling of size computations.

The Scheduler owns everything that must outlive a single scan session: the
SizeCache, the table of live partial totals, and the set of in-flight sizing
tasks. Sessions ask it for work and only ever observe the results, so when a
session is closed its computations keep running and still populate the cache
for the next session that needs them.
"""

import asyncio
import logging
from functools import partial
from pathlib import Path

from dirscope.core.bundles import DiskUsageBundleSizer, NullBundleSizer
from dirscope.core.cache import SizeCache
from dirscope.core.config import ScanConfig
from dirscope.core.filesystem import LocalFilesystem
from dirscope.core.sizing import DirectorySizer, FileSizer, ProgressTable
from dirscope.types.models import CacheStats, Computed, Entry, EntryKind, Failed, SizeOutcome
from dirscope.types.protocols import BundleSizer, Filesystem

logger = logging.getLogger(__name__)


class Scheduler:
    """Deduplicating owner of file and directory size computations.

    At most one computation runs per path at any time. Requesting a path
    that is already being sized returns the existing task, so sessions that
    overlap (for example after navigating away and back) join the same work.

    Example:
        >>> scheduler = Scheduler()
        >>> task = scheduler.request(entry)  # doctest: +SKIP
        >>> outcome = await asyncio.shield(task)  # doctest: +SKIP
    """

    def __init__(
        self,
        *,
        config: ScanConfig | None = None,
        filesystem: Filesystem | None = None,
        cache: SizeCache | None = None,
        progress: ProgressTable | None = None,
        bundle_sizer: BundleSizer | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            config: Scan configuration (defaults apply when omitted)
            filesystem: Filesystem access (local filesystem when omitted)
            cache: Size cache shared by all sessions (new cache when omitted)
            progress: Partial total table (new table when omitted)
            bundle_sizer: Opaque-bundle shortcut; derived from config when omitted
        """
        self.config: ScanConfig = config if config is not None else ScanConfig()
        self.filesystem: Filesystem = filesystem if filesystem is not None else LocalFilesystem()
        self.cache: SizeCache = cache if cache is not None else SizeCache()
        self.progress: ProgressTable = progress if progress is not None else ProgressTable()

        if bundle_sizer is None:
            bundle_sizer = _bundle_sizer_from_config(self.config)
        self.bundle_sizer: BundleSizer = bundle_sizer

        self.file_sizer: FileSizer = FileSizer(filesystem=self.filesystem, cache=self.cache)
        self.directory_sizer: DirectorySizer = DirectorySizer(
            filesystem=self.filesystem,
            cache=self.cache,
            progress=self.progress,
            bundle_sizer=self.bundle_sizer,
            bundle_suffixes=self.config.bundle_suffixes,
            pace_every_files=self.config.pace_every_files,
            pace_delay=self.config.pace_delay,
        )

        self._inflight: dict[Path, asyncio.Task[SizeOutcome]] = {}

    def cached(self, path: Path) -> Computed | Failed | None:
        """Return the cached outcome for a path, or None."""
        return self.cache.get(path)

    def partials(self) -> dict[Path, int]:
        """Return a copy of all live partial totals."""
        return self.progress.snapshot()

    def is_computing(self, path: Path) -> bool:
        """Check whether a computation for path is in flight."""
        return path in self._inflight

    @property
    def inflight_count(self) -> int:
        """Number of computations currently in flight."""
        return len(self._inflight)

    def request(self, entry: Entry) -> asyncio.Task[SizeOutcome] | None:
        """Start (or join) the size computation for an entry.

        Must be called from a running event loop. Callers should await the
        returned task through ``asyncio.shield`` so cancelling the caller does
        not cancel the shared computation.

        Args:
            entry: File or directory to size

        Returns:
            Task resolving to the entry's final outcome, or None for entries
            that are never sized (symbolic links and special files)
        """
        existing = self._inflight.get(entry.path)
        if existing is not None:
            return existing

        match entry.kind:
            case EntryKind.FILE:
                coro = self.file_sizer.size(entry.path)
            case EntryKind.DIRECTORY:
                coro = self.directory_sizer.size(entry.path)
            case EntryKind.OTHER:
                return None

        task = asyncio.create_task(coro, name=f"dirscope-size:{entry.path}")
        self._inflight[entry.path] = task
        task.add_done_callback(partial(self._on_done, entry.path))
        logger.debug(
            "Scheduled size computation",
            extra={"path": str(entry.path), "kind": entry.kind.value},
        )
        return task

    def _on_done(self, path: Path, task: asyncio.Task[SizeOutcome]) -> None:
        if self._inflight.get(path) is task:
            del self._inflight[path]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Size computation raised unexpectedly",
                extra={"path": str(path), "error": str(exc), "error_type": type(exc).__name__},
            )

    async def drain(self) -> None:
        """Wait until every in-flight computation has finished."""
        while self._inflight:
            _ = await asyncio.gather(*self._inflight.values(), return_exceptions=True)

    def clear_cache(self) -> None:
        """Drop all cached sizes so later sessions recompute them.

        Computations already in flight are not affected and write their
        outcomes when they finish.
        """
        self.cache.clear()

    def cache_stats(self) -> CacheStats:
        """Return counts of cached directories, files and errors."""
        return self.cache.stats()


def _bundle_sizer_from_config(config: ScanConfig) -> BundleSizer:
    if not config.bundle_shortcut:
        return NullBundleSizer()
    return DiskUsageBundleSizer(config.bundle_command, unit=config.bundle_command_unit)
