"""Scan session: one directory listing request from start to finish.

A session lists a directory, seeds every child from the SizeCache, asks the
Scheduler for the sizes that are still unknown, and periodically folds final
outcomes and live partial totals into an ordered snapshot for its observer.

Lifecycle:
    1. ``run()`` lists the directory (a listing failure ends the session)
    2. Cached children resolve immediately; the rest are scheduled at once
    3. A ticker refreshes every ``refresh_interval`` seconds while anything
       is calculating
    4. When the last child resolves, one final refresh pushes the completed
       snapshot and the ticker stops

``close()`` detaches the observer and stops the ticker. Sizing tasks belong
to the Scheduler and keep running, so their results still reach the cache.
"""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from uuid import uuid4

from dirscope.core.aggregation import aggregate, resolved_size, sort_entries
from dirscope.core.classifier import is_expected, is_system_protected, permission_category, report_access_failure
from dirscope.core.config import ScanConfig
from dirscope.core.errors import ListError
from dirscope.core.lister import EntryLister, resolve_target
from dirscope.core.scheduler import Scheduler
from dirscope.types.models import (
    PENDING,
    Computed,
    Entry,
    EntrySnapshot,
    Failed,
    ListFailure,
    Pending,
    ScanSnapshot,
    SizeOutcome,
)
from dirscope.types.protocols import SnapshotObserver
from dirscope.utils.logging import reset_scan_id, set_scan_id

__all__ = ["ScanSession"]

logger = logging.getLogger(__name__)


class ScanSession:
    """Compute and publish the sizes of one directory's children.

    A session is single-use: ``run()`` may be awaited once. Its state is
    mutated on the event loop thread only.
    """

    def __init__(
        self,
        path: Path | str | None,
        *,
        scheduler: Scheduler,
        lister: EntryLister | None = None,
        config: ScanConfig | None = None,
        observer: SnapshotObserver | None = None,
        scan_id: str | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            path: Directory to scan; None scans the filesystem root
            scheduler: Process-wide scheduler owning the cache and sizing tasks
            lister: Entry lister; built from config and the scheduler's
                filesystem when omitted
            config: Scan configuration; the scheduler's configuration when omitted
            observer: Receiver of snapshots and list failures
            scan_id: Identifier attached to log records of this session
        """
        self.scheduler: Scheduler = scheduler
        self.config: ScanConfig = config if config is not None else scheduler.config
        self.lister: EntryLister = (
            lister
            if lister is not None
            else EntryLister(
                filesystem=scheduler.filesystem,
                include_protected=self.config.include_protected,
            )
        )
        self.scan_id: str = scan_id or uuid4().hex[:12]

        self._requested_path: Path | str | None = path
        self._path: Path = resolve_target(path)
        self._observer: SnapshotObserver | None = observer

        self._entries: list[Entry] = []
        self._outcomes: dict[Path, SizeOutcome] = {}
        self._calculating: dict[Path, bool] = {}
        self._total_bytes: int = 0
        self._any_calculating: bool = True
        self._has_errors: bool = False
        self._list_failure: ListFailure | None = None

        self._started: bool = False
        self._closed: bool = False
        self._completed_published: bool = False
        self._last_sorted_total: int = 0
        self._ticker: asyncio.Task[None] | None = None

    @property
    def path(self) -> Path:
        """Absolute directory being scanned."""
        return self._path

    @property
    def entries(self) -> tuple[Entry, ...]:
        """Entries in their current display order."""
        return tuple(self._entries)

    @property
    def total_bytes(self) -> int:
        """Grand total as of the latest refresh."""
        return self._total_bytes

    @property
    def any_calculating(self) -> bool:
        """True until every entry has a final outcome."""
        return self._any_calculating

    @property
    def has_errors(self) -> bool:
        """True if any entry failed or the directory could not be listed."""
        return self._has_errors

    @property
    def list_failure(self) -> ListFailure | None:
        """Listing failure of the session's own directory, if any."""
        return self._list_failure

    @property
    def is_closed(self) -> bool:
        return self._closed

    def outcome(self, path: Path) -> SizeOutcome:
        """Return the current outcome of an entry, or Pending if unknown."""
        return self._effective_outcome(path)

    async def run(self) -> ScanSnapshot:
        """List the directory and size its children to completion.

        Returns:
            The final snapshot: every entry resolved, or the list failure

        Raises:
            RuntimeError: If the session was already run or closed
        """
        if self._started:
            msg = "ScanSession.run() may only be called once"
            raise RuntimeError(msg)
        if self._closed:
            msg = "ScanSession is closed"
            raise RuntimeError(msg)
        self._started = True

        token = set_scan_id(self.scan_id)
        try:
            return await self._run()
        finally:
            self._stop_ticker()
            reset_scan_id(token)

    async def _run(self) -> ScanSnapshot:
        logger.info("Scan started", extra={"path": str(self._path)})
        try:
            self._entries = await self.lister.list_entries(self._requested_path)
        except ListError as exc:
            return self._fail_listing(exc)

        pending: list[tuple[Entry, asyncio.Task[SizeOutcome]]] = []
        for entry in self._entries:
            cached = self.scheduler.cached(entry.path)
            if cached is not None:
                self._settle(entry.path, cached)
                continue

            task = self.scheduler.request(entry)
            if task is None:
                # Symbolic links and special files are not sized
                self._settle(entry.path, Computed(0))
                continue

            self._outcomes[entry.path] = PENDING
            self._calculating[entry.path] = True
            pending.append((entry, task))

        logger.debug(
            "Entries seeded",
            extra={
                "path": str(self._path),
                "entries": len(self._entries),
                "scheduled": len(pending),
            },
        )

        self._refresh(force_sort=True)
        if pending:
            self._start_ticker()
            _ = await asyncio.gather(*(self._track(entry, task) for entry, task in pending))

        self._refresh(force_sort=True)
        snapshot = self.snapshot()
        logger.info(
            "Scan completed",
            extra={
                "path": str(self._path),
                "total_bytes": snapshot.total_bytes,
                "has_errors": snapshot.has_errors,
            },
        )
        return snapshot

    def _fail_listing(self, exc: ListError) -> ScanSnapshot:
        _ = report_access_failure(exc.path, exc.message, action="list directory")
        failure = ListFailure(
            path=exc.path,
            message=exc.message,
            expected=is_expected(exc.path, exc.message),
            permission_category=permission_category(exc.path),
        )
        self._entries = []
        self._list_failure = failure
        self._has_errors = True
        self._any_calculating = False
        self._completed_published = True

        snapshot = self.snapshot()
        observer = self._observer
        if observer is not None:
            try:
                observer.on_list_failed(failure)
                observer.on_snapshot(snapshot)
            except Exception:
                logger.exception("Observer failed to handle list failure", extra={"path": str(exc.path)})
        return snapshot

    async def _track(self, entry: Entry, task: asyncio.Task[SizeOutcome]) -> None:
        try:
            outcome = await asyncio.shield(task)
        except Exception:
            # A sizer bug must not abort sibling entries
            logger.exception("Size computation failed", extra={"path": str(entry.path)})
            outcome = Failed()
        self._settle(entry.path, outcome)

    def _settle(self, path: Path, outcome: SizeOutcome) -> None:
        self._outcomes[path] = outcome
        self._calculating[path] = False

    def _effective_outcome(self, path: Path) -> SizeOutcome:
        outcome = self._outcomes.get(path, PENDING)
        if isinstance(outcome, Pending):
            # The sizer caches before its partial total disappears; reading the
            # cache here keeps the total from dipping before _track resumes
            cached = self.scheduler.cached(path)
            if cached is not None:
                return cached
        return outcome

    def _views(self) -> tuple[dict[Path, SizeOutcome], dict[Path, bool], dict[Path, int]]:
        outcomes: dict[Path, SizeOutcome] = {}
        calculating: dict[Path, bool] = {}
        for entry in self._entries:
            outcome = self._effective_outcome(entry.path)
            outcomes[entry.path] = outcome
            calculating[entry.path] = self._calculating.get(entry.path, False) and isinstance(outcome, Pending)
        return outcomes, calculating, self.scheduler.partials()

    def _refresh(self, *, force_sort: bool = False) -> None:
        """Re-aggregate, re-sort when warranted, and publish a snapshot."""
        if self._list_failure is not None:
            return

        outcomes, calculating, partials = self._views()
        result = aggregate(self._entries, outcomes, calculating, partials)

        was_calculating = self._any_calculating
        self._total_bytes = result.total_bytes
        self._has_errors = result.has_errors
        self._any_calculating = was_calculating and result.any_calculating
        just_completed = was_calculating and not self._any_calculating

        delta = abs(result.total_bytes - self._last_sorted_total)
        material = delta > 0 and delta >= self.config.resort_min_delta_bytes
        if force_sort or material or just_completed:
            self._entries = sort_entries(self._entries, outcomes, calculating, partials)
            self._last_sorted_total = result.total_bytes

        if just_completed:
            self._stop_ticker()

        if not self._any_calculating:
            if self._completed_published:
                return
            self._completed_published = True
        self._publish(self._build_snapshot(outcomes, calculating, partials))

    def snapshot(self) -> ScanSnapshot:
        """Build a snapshot of the current state without publishing it."""
        outcomes, calculating, partials = self._views()
        return self._build_snapshot(outcomes, calculating, partials)

    def _build_snapshot(
        self,
        outcomes: dict[Path, SizeOutcome],
        calculating: dict[Path, bool],
        partials: dict[Path, int],
    ) -> ScanSnapshot:
        entries = tuple(self._entry_snapshot(entry, outcomes, calculating, partials) for entry in self._entries)
        return ScanSnapshot(
            path=self._path,
            entries=entries,
            total_bytes=self._total_bytes,
            any_calculating=self._any_calculating,
            has_errors=self._has_errors,
            list_failure=self._list_failure,
        )

    @staticmethod
    def _entry_snapshot(
        entry: Entry,
        outcomes: dict[Path, SizeOutcome],
        calculating: dict[Path, bool],
        partials: dict[Path, int],
    ) -> EntrySnapshot:
        outcome = outcomes.get(entry.path, PENDING)
        partial: int | None = None
        if entry.is_directory and isinstance(outcome, Pending):
            partial = partials.get(entry.path)
        return EntrySnapshot(
            entry=entry,
            outcome=outcome,
            calculating=calculating.get(entry.path, False),
            partial_bytes=partial,
            resolved_bytes=resolved_size(entry, outcome, partials),
            possibly_partial=(
                entry.is_directory and isinstance(outcome, Computed) and is_system_protected(entry.path)
            ),
        )

    def _publish(self, snapshot: ScanSnapshot) -> None:
        observer = self._observer
        if observer is None:
            return
        try:
            observer.on_snapshot(snapshot)
        except Exception:
            logger.exception("Observer failed to handle snapshot", extra={"path": str(self._path)})

    def _start_ticker(self) -> None:
        if self._ticker is not None or self._closed:
            return
        self._ticker = asyncio.create_task(self._tick_loop(), name=f"dirscope-ticker:{self.scan_id}")

    async def _tick_loop(self) -> None:
        while not self._closed and self._any_calculating:
            await asyncio.sleep(self.config.refresh_interval)
            if self._closed:
                break
            self._refresh()

    def _stop_ticker(self) -> None:
        ticker = self._ticker
        if ticker is None:
            return
        self._ticker = None
        # The ticker may stop itself from inside _refresh
        if ticker is not asyncio.current_task():
            _ = ticker.cancel()
        logger.debug("Refresh ticker stopped", extra={"path": str(self._path)})

    def close(self) -> None:
        """Detach the observer and stop refreshing.

        Size computations already scheduled keep running and populate the
        cache. Awaiting ``run()`` after close still returns its snapshot.
        """
        if self._closed:
            return
        self._closed = True
        self._observer = None
        self._stop_ticker()
        logger.debug("Scan session closed", extra={"path": str(self._path)})

    def pending_entries(self) -> Sequence[Entry]:
        """Entries that are still calculating."""
        return [entry for entry in self._entries if self._calculating.get(entry.path, False)]
