"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from dirscope.core.config import ScanConfig
from dirscope.core.scheduler import Scheduler
from tests.fixtures.filesystem import FakeFilesystem


@pytest.fixture
def fake_fs() -> FakeFilesystem:
    """Provide an empty in-memory filesystem rooted at /."""
    return FakeFilesystem()


@pytest.fixture
def fast_config() -> ScanConfig:
    """Scan configuration with short refresh cadence and no pacing sleeps."""
    return ScanConfig(
        refresh_interval=0.01,
        pace_every_files=1000,
        pace_delay=0,
        bundle_shortcut=False,
    )


@pytest.fixture
def scheduler(fake_fs: FakeFilesystem, fast_config: ScanConfig) -> Scheduler:
    """Scheduler over the in-memory filesystem."""
    return Scheduler(config=fast_config, filesystem=fake_fs)


@pytest.fixture
def example_tree(fake_fs: FakeFilesystem) -> Path:
    """Build the canonical mixed-access tree and return its root.

    Layout::

        /data/fileA        1000 bytes
        /data/dirB/fileC    500 bytes
        /data/dirB/fileD    unreadable
        /data/dirE/         unreadable directory
    """
    root = fake_fs.add_dir("/data")
    _ = fake_fs.add_file("/data/fileA", 1000)
    _ = fake_fs.add_file("/data/dirB/fileC", 500)
    _ = fake_fs.add_file("/data/dirB/fileD", 700)
    _ = fake_fs.add_file("/data/dirE/secret", 900)
    fake_fs.deny("/data/dirB/fileD", "/data/dirE")
    return root
