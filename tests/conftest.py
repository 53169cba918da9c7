# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for edgebackup tests.

Provides temporary backup directories, engine state with a controllable
clock, and resource doubles that fail or block on demand.
"""

import asyncio
import tempfile
from datetime import datetime, timedelta, UTC
from pathlib import Path
from typing import AsyncIterator, Generator

import pytest
import pytest_asyncio

from edgebackup.backup.resources import BackupResource, BytesBackupResource
from edgebackup.config import BackupConfig
from edgebackup.core import initialize_backup_state


class FakeClock:
    """Clock that advances one second (or a given step) per call."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


class FailingResource(BackupResource):
    """Resource that yields some bytes, then fails like a broken producer."""

    def __init__(self, backup_path: str, fail_after: int = 1):
        super().__init__(backup_path, provider_key="failing")
        self.fail_after = fail_after

    async def iter_chunks(self, chunk_size: int = 65536) -> AsyncIterator[bytes]:
        for _ in range(self.fail_after):
            yield b"partial data"
        raise OSError("simulated read failure")


class GatedResource(BackupResource):
    """Resource that blocks mid-stream until released."""

    def __init__(self, backup_path: str):
        super().__init__(backup_path, provider_key="gated")
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def iter_chunks(self, chunk_size: int = 65536) -> AsyncIterator[bytes]:
        yield b"first half "
        self.started.set()
        await self.release.wait()
        yield b"second half"


def make_resources(*pairs: tuple[str, bytes]) -> list[BackupResource]:
    """Build in-memory resources from (backup_path, content) pairs."""
    return [BytesBackupResource(path, data, provider_key=path.split("/")[0]) for path, data in pairs]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at a fixed instant."""
    return FakeClock(datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def backup_config(temp_dir: Path) -> BackupConfig:
    """Create a test configuration keeping one extra archive."""
    return BackupConfig(
        backup_dir=temp_dir / "backups",
        additional_backup_count=1,
    )


@pytest_asyncio.fixture
async def backup_state(backup_config: BackupConfig, clock: FakeClock):
    """Engine state for owner id 42."""
    return await initialize_backup_state(
        backup_config,
        owner_id_supplier=lambda: 42,
        clock=clock,
    )


@pytest_asyncio.fixture
async def anonymous_state(backup_config: BackupConfig, clock: FakeClock):
    """Engine state for a device whose identity is unknown."""
    return await initialize_backup_state(backup_config, clock=clock)


def archive_names(directory: Path) -> list[str]:
    """Sorted file names in a directory (empty if it does not exist)."""
    if not directory.exists():
        return []
    return sorted(p.name for p in directory.iterdir())
