"""Unit tests for scan sessions.

Tests cover:
- Full run over a mixed-access tree with observer notifications
- Listing failures as a terminal, structured outcome
- Seeding from the cache and joining in-flight computations
- Ticker-driven progress snapshots and single completion notification
- Closing a session without cancelling shared sizing work
"""

import asyncio
from pathlib import Path
from typing import override

import pytest

from dirscope.core.config import ScanConfig
from dirscope.core.scheduler import Scheduler
from dirscope.core.session import ScanSession
from dirscope.types.models import Computed, EntryKind, Failed, ListFailure, ScanSnapshot, SizeOutcome
from tests.fixtures.filesystem import FakeFilesystem, RecordingObserver


class ExplodingObserver(RecordingObserver):
    """Observer whose snapshot handler always raises."""

    @override
    def on_snapshot(self, snapshot: ScanSnapshot) -> None:
        super().on_snapshot(snapshot)
        msg = "display went away"
        raise RuntimeError(msg)


def _by_name(snapshot: ScanSnapshot) -> dict[str, SizeOutcome]:
    return {item.entry.name: item.outcome for item in snapshot.entries}


@pytest.mark.unit
@pytest.mark.asyncio
class TestScanSessionRun:
    """Test complete session runs."""

    async def test_mixed_access_tree(self, scheduler: Scheduler, example_tree: Path) -> None:
        observer = RecordingObserver()
        session = ScanSession(example_tree, scheduler=scheduler, observer=observer)

        snapshot = await session.run()

        assert [item.entry.name for item in snapshot.entries] == ["fileA", "dirB", "dirE"]
        assert _by_name(snapshot) == {"fileA": Computed(1000), "dirB": Computed(500), "dirE": Failed()}
        assert snapshot.total_bytes == 1500
        assert snapshot.has_errors is True
        assert snapshot.any_calculating is False
        assert snapshot.list_failure is None
        assert len(observer.completed_snapshots) == 1
        assert observer.completed_snapshots[0] == snapshot

    async def test_session_state_properties(self, scheduler: Scheduler, example_tree: Path) -> None:
        session = ScanSession(example_tree, scheduler=scheduler)

        _ = await session.run()

        assert session.path == example_tree
        assert session.total_bytes == 1500
        assert session.has_errors is True
        assert session.any_calculating is False
        assert [e.name for e in session.entries] == ["fileA", "dirB", "dirE"]
        assert session.outcome(example_tree / "dirB") == Computed(500)
        assert session.pending_entries() == []

    async def test_empty_directory_completes_immediately(
        self, scheduler: Scheduler, fake_fs: FakeFilesystem
    ) -> None:
        _ = fake_fs.add_dir("/empty")
        observer = RecordingObserver()

        snapshot = await ScanSession(Path("/empty"), scheduler=scheduler, observer=observer).run()

        assert snapshot.entries == ()
        assert snapshot.total_bytes == 0
        assert snapshot.has_errors is False
        assert snapshot.completed
        assert len(observer.snapshots) == 1

    async def test_other_entries_resolve_without_sizing(
        self, scheduler: Scheduler, fake_fs: FakeFilesystem
    ) -> None:
        _ = fake_fs.add_other("/mixed/link")
        _ = fake_fs.add_file("/mixed/file", 9)

        snapshot = await ScanSession(Path("/mixed"), scheduler=scheduler).run()

        by_name = {item.entry.name: item for item in snapshot.entries}
        assert by_name["link"].entry.kind is EntryKind.OTHER
        assert by_name["link"].outcome == Computed(0)
        assert by_name["link"].calculating is False
        assert snapshot.total_bytes == 9
        assert fake_fs.file_size_calls == [Path("/mixed/file")]

    async def test_protected_directory_flagged_possibly_partial(
        self, scheduler: Scheduler, fake_fs: FakeFilesystem
    ) -> None:
        _ = fake_fs.add_file("/usr/lib/libc.so", 100)
        _ = fake_fs.add_file("/usr/README", 5)

        snapshot = await ScanSession(Path("/usr"), scheduler=scheduler).run()

        flags = {item.entry.name: item.possibly_partial for item in snapshot.entries}
        assert flags == {"lib": True, "README": False}

    async def test_temporary_directory_not_flagged_possibly_partial(
        self, scheduler: Scheduler, fake_fs: FakeFilesystem
    ) -> None:
        _ = fake_fs.add_file("/tmp/build/out.o", 10)

        snapshot = await ScanSession(Path("/tmp"), scheduler=scheduler).run()

        (item,) = snapshot.entries
        assert item.outcome == Computed(10)
        assert item.possibly_partial is False

    async def test_run_only_once(self, scheduler: Scheduler, fake_fs: FakeFilesystem) -> None:
        _ = fake_fs.add_dir("/once")
        session = ScanSession(Path("/once"), scheduler=scheduler)
        _ = await session.run()

        with pytest.raises(RuntimeError, match="only be called once"):
            _ = await session.run()

    async def test_observer_errors_do_not_abort_the_session(
        self, scheduler: Scheduler, example_tree: Path
    ) -> None:
        observer = ExplodingObserver()

        snapshot = await ScanSession(example_tree, scheduler=scheduler, observer=observer).run()

        assert snapshot.total_bytes == 1500
        assert observer.snapshots


@pytest.mark.unit
@pytest.mark.asyncio
class TestScanSessionListFailure:
    """Test sessions whose own directory cannot be listed."""

    async def test_list_failure_snapshot(self, scheduler: Scheduler, fake_fs: FakeFilesystem) -> None:
        _ = fake_fs.add_dir("/Users/alex/Desktop")
        fake_fs.deny("/Users/alex/Desktop")
        observer = RecordingObserver()

        snapshot = await ScanSession(Path("/Users/alex/Desktop"), scheduler=scheduler, observer=observer).run()

        assert snapshot.entries == ()
        assert snapshot.has_errors is True
        assert snapshot.completed
        assert snapshot.list_failure is not None
        assert observer.failures == [snapshot.list_failure]
        failure: ListFailure = observer.failures[0]
        assert failure.path == Path("/Users/alex/Desktop")
        assert "Permission denied" in failure.message
        assert failure.expected is True
        assert failure.permission_category == "Desktop Access"

    async def test_missing_directory_is_not_expected(self, scheduler: Scheduler) -> None:
        snapshot = await ScanSession(Path("/opt/gone"), scheduler=scheduler).run()

        assert snapshot.list_failure is not None
        assert snapshot.list_failure.expected is False
        assert snapshot.list_failure.permission_category == "File Access"


@pytest.mark.unit
@pytest.mark.asyncio
class TestScanSessionCaching:
    """Test reuse of sizes across sessions."""

    async def test_second_session_reads_cache(
        self, scheduler: Scheduler, fake_fs: FakeFilesystem, example_tree: Path
    ) -> None:
        first = await ScanSession(example_tree, scheduler=scheduler).run()
        scans_after_first = len(fake_fs.scan_calls)
        sizes_after_first = len(fake_fs.file_size_calls)

        observer = RecordingObserver()
        second = await ScanSession(example_tree, scheduler=scheduler, observer=observer).run()

        assert len(fake_fs.scan_calls) == scans_after_first
        assert len(fake_fs.file_size_calls) == sizes_after_first
        assert second.entries == first.entries
        assert second.total_bytes == first.total_bytes
        assert len(observer.snapshots) == 1
        assert observer.snapshots[0].completed

    async def test_clear_cache_recomputes(
        self, scheduler: Scheduler, fake_fs: FakeFilesystem, example_tree: Path
    ) -> None:
        _ = await ScanSession(example_tree, scheduler=scheduler).run()
        scans_after_first = len(fake_fs.scan_calls)

        scheduler.clear_cache()
        again = await ScanSession(example_tree, scheduler=scheduler).run()

        assert len(fake_fs.scan_calls) > scans_after_first
        assert again.total_bytes == 1500


@pytest.mark.unit
@pytest.mark.asyncio
class TestScanSessionProgress:
    """Test ticker-driven progress publication."""

    async def test_progress_snapshots_while_walking(
        self, scheduler: Scheduler, fake_fs: FakeFilesystem
    ) -> None:
        _ = fake_fs.add_file("/tree/small", 10)
        _ = fake_fs.add_file("/tree/big/a", 400)
        _ = fake_fs.add_file("/tree/big/deeper/b", 600)
        fake_fs.hold_path = Path("/tree/big/deeper")
        observer = RecordingObserver()
        session = ScanSession(Path("/tree"), scheduler=scheduler, observer=observer)

        run = asyncio.create_task(session.run())
        assert await asyncio.to_thread(fake_fs.held.wait, 5)
        await asyncio.sleep(0.05)

        live = observer.snapshots[-1]
        assert live.any_calculating is True
        assert live.total_bytes == 410
        big = next(item for item in live.entries if item.entry.name == "big")
        assert big.calculating is True
        assert big.partial_bytes == 400
        assert big.resolved_bytes == 400
        assert [item.entry.name for item in live.entries] == ["big", "small"]

        fake_fs.release.set()
        final = await run

        assert final.total_bytes == 1010
        totals = [s.total_bytes for s in observer.snapshots]
        assert totals == sorted(totals)

    async def test_any_calculating_turns_false_exactly_once(
        self, scheduler: Scheduler, fake_fs: FakeFilesystem
    ) -> None:
        _ = fake_fs.add_file("/t/d/x", 1)
        _ = fake_fs.add_file("/t/f", 2)
        fake_fs.hold_path = Path("/t/d")
        observer = RecordingObserver()

        run = asyncio.create_task(ScanSession(Path("/t"), scheduler=scheduler, observer=observer).run())
        assert await asyncio.to_thread(fake_fs.held.wait, 5)
        await asyncio.sleep(0.03)
        fake_fs.release.set()
        _ = await run

        flags = [s.any_calculating for s in observer.snapshots]
        assert flags[0] is True
        assert flags[-1] is False
        assert flags.count(False) == 1

    async def test_resort_threshold_defers_reordering(self, fake_fs: FakeFilesystem) -> None:
        config = ScanConfig(
            refresh_interval=0.01,
            pace_delay=0,
            bundle_shortcut=False,
            resort_min_delta_bytes=10**9,
        )
        scheduler = Scheduler(config=config, filesystem=fake_fs)
        _ = fake_fs.add_file("/r/aaa", 500)
        _ = fake_fs.add_file("/r/zzz/a", 400)
        _ = fake_fs.add_file("/r/zzz/deeper/b", 1)
        fake_fs.hold_path = Path("/r/zzz/deeper")
        observer = RecordingObserver()

        run = asyncio.create_task(ScanSession(Path("/r"), scheduler=scheduler, observer=observer).run())
        assert await asyncio.to_thread(fake_fs.held.wait, 5)
        await asyncio.sleep(0.05)

        live = observer.snapshots[-1]
        assert live.total_bytes == 900
        assert [item.entry.name for item in live.entries] == ["zzz", "aaa"]

        fake_fs.release.set()
        final = await run
        assert [item.entry.name for item in final.entries] == ["aaa", "zzz"]


@pytest.mark.unit
@pytest.mark.asyncio
class TestScanSessionClose:
    """Test closing sessions while sizes are still computing."""

    async def test_close_detaches_observer_and_keeps_work(
        self, scheduler: Scheduler, fake_fs: FakeFilesystem
    ) -> None:
        _ = fake_fs.add_file("/c/d/x", 7)
        fake_fs.hold_path = Path("/c/d")
        observer = RecordingObserver()
        session = ScanSession(Path("/c"), scheduler=scheduler, observer=observer)

        run = asyncio.create_task(session.run())
        assert await asyncio.to_thread(fake_fs.held.wait, 5)
        session.close()
        seen = len(observer.snapshots)
        _ = run.cancel()
        with pytest.raises(asyncio.CancelledError):
            await run

        fake_fs.release.set()
        await scheduler.drain()

        assert session.is_closed
        assert len(observer.snapshots) == seen
        assert scheduler.cached(Path("/c/d")) == Computed(7)

    async def test_new_session_joins_inflight_work(
        self, scheduler: Scheduler, fake_fs: FakeFilesystem
    ) -> None:
        _ = fake_fs.add_file("/j/d/x", 7)
        fake_fs.hold_path = Path("/j/d")

        first = ScanSession(Path("/j"), scheduler=scheduler)
        first_run = asyncio.create_task(first.run())
        assert await asyncio.to_thread(fake_fs.held.wait, 5)
        first.close()
        _ = first_run.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first_run

        second_run = asyncio.create_task(ScanSession(Path("/j"), scheduler=scheduler).run())
        await asyncio.sleep(0)
        fake_fs.release.set()
        snapshot = await second_run

        assert snapshot.total_bytes == 7
        assert fake_fs.scan_calls.count(Path("/j/d")) == 1

    async def test_close_is_idempotent(self, scheduler: Scheduler, fake_fs: FakeFilesystem) -> None:
        _ = fake_fs.add_dir("/i")
        session = ScanSession(Path("/i"), scheduler=scheduler)

        session.close()
        session.close()

        assert session.is_closed
        with pytest.raises(RuntimeError, match="closed"):
            _ = await session.run()
