"""Unit tests for the process-wide scheduler."""

import asyncio
from pathlib import Path

import pytest

from dirscope.core.bundles import DiskUsageBundleSizer, NullBundleSizer
from dirscope.core.config import ScanConfig
from dirscope.core.scheduler import Scheduler
from dirscope.types.models import CacheStats, Computed, Entry, EntryKind, Failed, SizeOutcome
from tests.fixtures.filesystem import FakeFilesystem


@pytest.mark.unit
class TestSchedulerConstruction:
    """Test wiring derived from configuration."""

    def test_bundle_shortcut_enabled_uses_disk_usage(self) -> None:
        scheduler = Scheduler(
            config=ScanConfig(bundle_shortcut=True, bundle_command=["du", "-sk"], bundle_command_unit=1024),
        )

        assert isinstance(scheduler.bundle_sizer, DiskUsageBundleSizer)
        assert scheduler.bundle_sizer.command == ("du", "-sk")

    def test_bundle_shortcut_disabled(self) -> None:
        scheduler = Scheduler(config=ScanConfig(bundle_shortcut=False))

        assert isinstance(scheduler.bundle_sizer, NullBundleSizer)

    def test_sizers_share_cache_and_progress(self, fake_fs: FakeFilesystem) -> None:
        scheduler = Scheduler(filesystem=fake_fs)

        assert scheduler.file_sizer.cache is scheduler.cache
        assert scheduler.directory_sizer.cache is scheduler.cache
        assert scheduler.directory_sizer.progress is scheduler.progress


@pytest.mark.unit
@pytest.mark.asyncio
class TestSchedulerRequests:
    """Test scheduling and deduplication of size computations."""

    async def test_file_request_resolves_and_caches(self, scheduler: Scheduler, fake_fs: FakeFilesystem) -> None:
        path = fake_fs.add_file("/f", 12)

        task = scheduler.request(Entry(path, EntryKind.FILE))
        assert task is not None
        outcome = await task

        assert outcome == Computed(12)
        assert scheduler.cached(path) == Computed(12)
        assert scheduler.inflight_count == 0

    async def test_other_entries_are_not_scheduled(self, scheduler: Scheduler) -> None:
        assert scheduler.request(Entry(Path("/link"), EntryKind.OTHER)) is None

    async def test_concurrent_requests_share_one_walk(self, scheduler: Scheduler, fake_fs: FakeFilesystem) -> None:
        _ = fake_fs.add_file("/d/x", 5)
        fake_fs.hold_path = Path("/d")
        entry = Entry(Path("/d"), EntryKind.DIRECTORY)

        first = scheduler.request(entry)
        second = scheduler.request(entry)
        assert first is second
        assert scheduler.is_computing(entry.path)

        fake_fs.release.set()
        assert first is not None
        assert await first == Computed(5)
        assert fake_fs.scan_calls == [Path("/d")]
        assert not scheduler.is_computing(entry.path)

    async def test_partial_visible_while_walking(self, scheduler: Scheduler, fake_fs: FakeFilesystem) -> None:
        _ = fake_fs.add_file("/d/a", 40)
        _ = fake_fs.add_file("/d/sub/b", 60)
        fake_fs.hold_path = Path("/d/sub")
        entry = Entry(Path("/d"), EntryKind.DIRECTORY)

        task = scheduler.request(entry)
        assert task is not None
        assert await asyncio.to_thread(fake_fs.held.wait, 5)

        assert scheduler.partials() == {entry.path: 40}

        fake_fs.release.set()
        _ = await task
        assert scheduler.partials() == {}

    async def test_cancelling_a_shielded_waiter_keeps_computation(
        self, scheduler: Scheduler, fake_fs: FakeFilesystem
    ) -> None:
        _ = fake_fs.add_file("/d/x", 5)
        fake_fs.hold_path = Path("/d")
        entry = Entry(Path("/d"), EntryKind.DIRECTORY)
        task = scheduler.request(entry)
        assert task is not None

        async def observe() -> SizeOutcome:
            return await asyncio.shield(task)

        waiter = asyncio.create_task(observe())
        await asyncio.sleep(0)
        _ = waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        fake_fs.release.set()
        await scheduler.drain()

        assert not task.cancelled()
        assert scheduler.cached(entry.path) == Computed(5)

    async def test_clear_cache_forces_recomputation(self, scheduler: Scheduler, fake_fs: FakeFilesystem) -> None:
        path = fake_fs.add_file("/f", 3)
        entry = Entry(path, EntryKind.FILE)

        first = scheduler.request(entry)
        assert first is not None
        _ = await first
        scheduler.clear_cache()
        assert scheduler.cached(path) is None

        second = scheduler.request(entry)
        assert second is not None
        assert await second == Computed(3)
        assert fake_fs.file_size_calls == [path, path]

    async def test_cache_stats(self, scheduler: Scheduler, fake_fs: FakeFilesystem) -> None:
        _ = fake_fs.add_file("/a/f", 1)
        _ = fake_fs.add_file("/b", 2)
        _ = fake_fs.add_dir("/locked")
        fake_fs.deny("/locked")

        tasks = [
            scheduler.request(Entry(Path("/a"), EntryKind.DIRECTORY)),
            scheduler.request(Entry(Path("/b"), EntryKind.FILE)),
            scheduler.request(Entry(Path("/locked"), EntryKind.DIRECTORY)),
        ]
        results = await asyncio.gather(*(t for t in tasks if t is not None))

        assert results == [Computed(1), Computed(2), Failed()]
        assert scheduler.cache_stats() == CacheStats(directories=2, files=1, errors=1)
