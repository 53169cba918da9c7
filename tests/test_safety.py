# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Critical Safety Tests for edgebackup.

These tests verify the core safety guarantees:
1. No partial artifacts - A failed backup leaves no file behind
2. Busy exclusion - Only one backup writes at a time
3. Recovery - A failure never wedges the engine
4. Retention bound - Only the newest archives survive, including the new one
5. Configuration - An unusable directory refuses writes

These tests MUST pass before any production deployment.
"""

import asyncio
from datetime import datetime, timedelta, UTC
from pathlib import Path

import pytest

from conftest import (
    FailingResource,
    FakeClock,
    GatedResource,
    archive_names,
    make_resources,
)
from edgebackup.backup import manager
from edgebackup.backup.status import BackupStatus, StatusGuard
from edgebackup.config import BackupConfig
from edgebackup.core import (
    available_backups,
    get_backup_status,
    initialize_backup_state,
    perform_backup,
    remove_all_backups,
)
from edgebackup.exceptions import BackupError, ConfigurationError


# ============================================================================
# Test 1: NO PARTIAL ARTIFACTS
# ============================================================================

@pytest.mark.asyncio
async def test_failed_backup_leaves_no_archive(backup_config, backup_state):
    """
    CRITICAL: An I/O failure while packaging must not leave a partial file.
    """
    before = archive_names(backup_config.backup_dir)

    resources = make_resources(("settings/a.txt", b"x")) + [FailingResource("keys/store.p12")]

    with pytest.raises(BackupError):
        await perform_backup(backup_config, backup_state, resources)

    assert archive_names(backup_config.backup_dir) == before
    assert backup_state["status"].current == BackupStatus.ERROR
    assert backup_state["last_error"]


@pytest.mark.asyncio
async def test_failure_on_first_chunk_leaves_no_archive(backup_config, backup_state):
    """A resource that fails before yielding anything is handled the same way."""
    with pytest.raises(BackupError):
        await perform_backup(
            backup_config, backup_state, [FailingResource("keys/store.p12", fail_after=0)]
        )

    assert archive_names(backup_config.backup_dir) == []


@pytest.mark.asyncio
async def test_failed_backup_keeps_existing_archives(backup_config, backup_state):
    """A failed attempt removes only its own file, never earlier backups."""
    first = await perform_backup(
        backup_config, backup_state, make_resources(("a.txt", b"x"))
    )
    assert first is not None
    before = archive_names(backup_config.backup_dir)

    with pytest.raises(BackupError):
        await perform_backup(backup_config, backup_state, [FailingResource("b.txt")])

    assert archive_names(backup_config.backup_dir) == before


@pytest.mark.asyncio
async def test_duplicate_backup_paths_rejected(backup_config, backup_state):
    """Producers must keep backup paths unique; a clash fails the backup cleanly."""
    resources = make_resources(("a.txt", b"one"), ("a.txt", b"two"))

    with pytest.raises(BackupError, match="Duplicate backup path"):
        await perform_backup(backup_config, backup_state, resources)

    assert archive_names(backup_config.backup_dir) == []


@pytest.mark.asyncio
async def test_cancelled_backup_leaves_no_archive(backup_config, backup_state):
    """Cancelling a backup mid-write removes the partial archive and frees the engine."""
    gated = GatedResource("gated/blob.bin")
    task = asyncio.create_task(perform_backup(backup_config, backup_state, [gated]))
    await gated.started.wait()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert archive_names(backup_config.backup_dir) == []
    assert backup_state["status"].current == BackupStatus.ERROR

    backup = await perform_backup(backup_config, backup_state, make_resources(("a.txt", b"x")))
    assert backup is not None


# ============================================================================
# Test 2: BUSY EXCLUSION
# ============================================================================

@pytest.mark.asyncio
async def test_concurrent_backup_is_turned_away(backup_config, backup_state):
    """
    CRITICAL: A backup started while another is running returns None
    and does not touch the backup directory.
    """
    gated = GatedResource("gated/blob.bin")
    first = asyncio.create_task(perform_backup(backup_config, backup_state, [gated]))
    await gated.started.wait()

    assert backup_state["status"].current == BackupStatus.RUNNING_BACKUP
    during = archive_names(backup_config.backup_dir)

    second = await perform_backup(
        backup_config, backup_state, make_resources(("a.txt", b"x"))
    )

    assert second is None
    assert archive_names(backup_config.backup_dir) == during

    gated.release.set()
    backup = await first
    assert backup is not None
    assert backup_state["status"].current == BackupStatus.CONFIGURED


@pytest.mark.asyncio
async def test_busy_engine_does_not_consume_resources(backup_config, backup_state):
    """Resources handed to a turned-away backup are not read."""
    gated = GatedResource("gated/blob.bin")
    first = asyncio.create_task(perform_backup(backup_config, backup_state, [gated]))
    await gated.started.wait()

    late = FailingResource("late.bin")
    assert await perform_backup(backup_config, backup_state, [late]) is None

    gated.release.set()
    await first


def test_status_guard_transition_if():
    """transition_if only moves from the expected status and reports the result."""
    guard = StatusGuard()

    assert guard.transition_if(BackupStatus.RUNNING_BACKUP, BackupStatus.CONFIGURED) == (
        BackupStatus.RUNNING_BACKUP
    )
    # Second caller sees the running status and does not change it
    assert guard.transition_if(BackupStatus.RUNNING_BACKUP, BackupStatus.CONFIGURED) == (
        BackupStatus.RUNNING_BACKUP
    )
    assert guard.transition_if(BackupStatus.RUNNING_BACKUP, BackupStatus.ERROR) == (
        BackupStatus.RUNNING_BACKUP
    )
    assert guard.transition_if(BackupStatus.CONFIGURED, BackupStatus.RUNNING_BACKUP) == (
        BackupStatus.CONFIGURED
    )


def test_status_guard_try_transition_reports_own_move_only():
    """A caller that finds the target status already set did not make the move."""
    guard = StatusGuard()

    assert guard.try_transition(BackupStatus.RUNNING_BACKUP, BackupStatus.CONFIGURED)
    assert not guard.try_transition(BackupStatus.RUNNING_BACKUP, BackupStatus.CONFIGURED)
    assert not guard.try_transition(BackupStatus.RUNNING_BACKUP, BackupStatus.ERROR)
    assert guard.current == BackupStatus.RUNNING_BACKUP

    assert guard.try_transition(BackupStatus.CONFIGURED, BackupStatus.RUNNING_BACKUP)
    assert not guard.try_transition(BackupStatus.CONFIGURED, BackupStatus.RUNNING_BACKUP)


@pytest.mark.asyncio
async def test_failing_caller_cannot_disturb_running_backup(backup_config, backup_state):
    """
    CRITICAL: A caller whose resources would fail is turned away while
    another backup runs, so it can neither flip the status nor cost the
    running backup its archive.
    """
    gated = GatedResource("gated/blob.bin")
    first = asyncio.create_task(perform_backup(backup_config, backup_state, [gated]))
    await gated.started.wait()

    assert await perform_backup(
        backup_config, backup_state, [FailingResource("broken.bin", fail_after=0)]
    ) is None
    assert backup_state["status"].current == BackupStatus.RUNNING_BACKUP
    assert backup_state["last_error"] is None

    gated.release.set()
    backup = await first

    assert backup is not None
    assert archive_names(backup_config.backup_dir) == [f"Edge-42-backup-{backup.key}.zip"]
    assert backup_state["status"].current == BackupStatus.CONFIGURED


@pytest.mark.asyncio
async def test_turned_away_producer_is_never_started(backup_config, backup_state):
    """A generator handed to a busy engine is not advanced at all."""
    gated = GatedResource("gated/blob.bin")
    first = asyncio.create_task(perform_backup(backup_config, backup_state, [gated]))
    await gated.started.wait()

    snapshots = []

    def producer():
        snapshots.append("taken")
        yield from make_resources(("a.txt", b"x"))

    assert await perform_backup(backup_config, backup_state, producer()) is None
    assert snapshots == []

    gated.release.set()
    await first


def test_status_guard_rejects_unconfigured_initial_state():
    """Unconfigured is derived from the directory and never stored."""
    with pytest.raises(ValueError):
        StatusGuard(BackupStatus.UNCONFIGURED)


# ============================================================================
# Test 3: RECOVERY AFTER FAILURE
# ============================================================================

@pytest.mark.asyncio
async def test_backup_succeeds_after_failure(backup_config, backup_state):
    """
    CRITICAL: An error status must not block the next backup.
    """
    with pytest.raises(BackupError):
        await perform_backup(backup_config, backup_state, [FailingResource("a.txt")])
    assert backup_state["status"].current == BackupStatus.ERROR

    backup = await perform_backup(
        backup_config, backup_state, make_resources(("a.txt", b"x"))
    )

    assert backup is not None
    assert backup.complete is True
    assert backup.size_bytes > 0
    assert backup_state["status"].current == BackupStatus.CONFIGURED
    assert backup_state["last_error"] is None


@pytest.mark.asyncio
async def test_existing_archive_name_is_not_overwritten(backup_config, temp_dir):
    """Two backups in the same second fail the second without deleting the first."""
    fixed = datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC)
    state = await initialize_backup_state(
        backup_config, owner_id_supplier=lambda: 42, clock=lambda: fixed
    )

    first = await perform_backup(backup_config, state, make_resources(("a.txt", b"x")))
    assert first is not None

    with pytest.raises(BackupError, match="already exists"):
        await perform_backup(backup_config, state, make_resources(("a.txt", b"y")))

    assert archive_names(backup_config.backup_dir) == ["Edge-42-backup-20240301T120000.zip"]


# ============================================================================
# Test 4: RETENTION BOUND
# ============================================================================

@pytest.mark.asyncio
async def test_retention_keeps_two_newest_of_three(backup_config, backup_state, clock):
    """
    keep=1, three backups at t1 < t2 < t3 for owner 42: t3 and t2 remain.
    """
    keys = []
    for _ in range(3):
        backup = await perform_backup(
            backup_config, backup_state, make_resources(("a.txt", b"x"))
        )
        assert backup is not None
        keys.append(backup.key)

    remaining = await available_backups(backup_config, backup_state)

    assert [b.key for b in remaining] == [keys[2], keys[1]]
    assert all(b.owner_id == 42 for b in remaining)


@pytest.mark.asyncio
@pytest.mark.parametrize("keep,runs", [(0, 1), (0, 4), (2, 2), (2, 6), (5, 3)])
async def test_retention_bound(temp_dir, keep, runs):
    """After N backups with keep=k, exactly min(N, k+1) of the newest remain."""
    config = BackupConfig(backup_dir=temp_dir / "backups", additional_backup_count=keep)
    clock = FakeClock(datetime(2024, 1, 1, tzinfo=UTC), step=timedelta(hours=1))
    state = await initialize_backup_state(config, owner_id_supplier=lambda: 7, clock=clock)

    created = []
    for i in range(runs):
        backup = await perform_backup(config, state, make_resources((f"r{i}.txt", b"data")))
        created.append(backup.key)

    remaining = [b.key for b in await available_backups(config, state)]

    assert len(remaining) == min(runs, keep + 1)
    assert remaining == list(reversed(created))[: keep + 1]


@pytest.mark.asyncio
async def test_new_backup_always_retained(temp_dir):
    """The archive just returned to the caller is never pruned, even with keep=0."""
    config = BackupConfig(backup_dir=temp_dir / "backups", additional_backup_count=0)
    clock = FakeClock(datetime(2024, 1, 1, tzinfo=UTC))
    state = await initialize_backup_state(config, owner_id_supplier=lambda: 3, clock=clock)

    for _ in range(3):
        backup = await perform_backup(config, state, make_resources(("a.txt", b"x")))
        remaining = await available_backups(config, state)
        assert [b.key for b in remaining] == [backup.key]
        assert (config.backup_dir / f"Edge-3-backup-{backup.key}.zip").is_file()


@pytest.mark.asyncio
async def test_retention_ignores_other_owners(backup_config, backup_state):
    """Pruning for one owner never deletes another owner's archives."""
    foreign = backup_config.backup_dir / "Edge-99-backup-20000101T000000.zip"
    foreign.write_bytes(b"PK\x05\x06" + b"\x00" * 18)

    for _ in range(3):
        await perform_backup(backup_config, backup_state, make_resources(("a.txt", b"x")))

    assert foreign.exists()


@pytest.mark.asyncio
async def test_retention_failure_does_not_fail_backup(backup_config, backup_state, monkeypatch):
    """Prune deletion errors are logged; the backup is still returned."""
    for _ in range(2):
        await perform_backup(backup_config, backup_state, make_resources(("a.txt", b"x")))

    original_unlink = Path.unlink

    def refusing_unlink(self, *args, **kwargs):
        if self.name.endswith(".zip"):
            raise PermissionError("read-only")
        return original_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", refusing_unlink)

    backup = await perform_backup(backup_config, backup_state, make_resources(("a.txt", b"x")))

    assert backup is not None
    assert backup_state["status"].current == BackupStatus.CONFIGURED
    assert len(archive_names(backup_config.backup_dir)) == 3


@pytest.mark.asyncio
async def test_retention_listing_failure_does_not_fail_backup(
    backup_config, backup_state, monkeypatch
):
    """A directory listing error during pruning keeps the new archive."""
    original_list = manager.list_backup_files

    def refusing_list(backup_dir, owner_id, strict_owner=False):
        if strict_owner:
            raise PermissionError("listing denied")
        return original_list(backup_dir, owner_id, strict_owner)

    monkeypatch.setattr(manager, "list_backup_files", refusing_list)

    backup = await perform_backup(backup_config, backup_state, make_resources(("a.txt", b"x")))

    assert backup is not None
    assert archive_names(backup_config.backup_dir) == [f"Edge-42-backup-{backup.key}.zip"]
    assert backup_state["status"].current == BackupStatus.CONFIGURED
    assert backup_state["last_error"] is None


@pytest.mark.asyncio
async def test_empty_input_after_failure_keeps_error_status(backup_config, backup_state):
    """Nothing to back up leaves the previous status untouched."""
    with pytest.raises(BackupError):
        await perform_backup(backup_config, backup_state, [FailingResource("a.txt")])

    assert await perform_backup(backup_config, backup_state, []) is None
    assert backup_state["status"].current == BackupStatus.ERROR


@pytest.mark.asyncio
async def test_remove_all_backups(backup_config, backup_state):
    """remove_all_backups deletes this owner's archives and leaves other files."""
    for _ in range(2):
        await perform_backup(backup_config, backup_state, make_resources(("a.txt", b"x")))
    (backup_config.backup_dir / "notes.txt").write_text("keep me")

    await remove_all_backups(backup_config, backup_state)

    assert archive_names(backup_config.backup_dir) == ["notes.txt"]


# ============================================================================
# Test 5: EMPTY INPUT AND CONFIGURATION
# ============================================================================

@pytest.mark.asyncio
async def test_empty_resources_produce_nothing(backup_config, backup_state):
    """An empty resource sequence returns None and creates no file."""
    assert await perform_backup(backup_config, backup_state, []) is None
    assert await perform_backup(backup_config, backup_state, iter(())) is None
    assert await perform_backup(backup_config, backup_state, None) is None

    assert archive_names(backup_config.backup_dir) == []
    assert backup_state["status"].current == BackupStatus.CONFIGURED


@pytest.mark.asyncio
async def test_unusable_backup_dir_is_unconfigured(temp_dir):
    """
    CRITICAL: A backup location that is not a directory reports
    unconfigured and refuses to write.
    """
    blocker = temp_dir / "not-a-dir"
    blocker.write_text("occupied")
    config = BackupConfig(backup_dir=blocker)
    state = await initialize_backup_state(config, owner_id_supplier=lambda: 1)

    assert await get_backup_status(config, state) == BackupStatus.UNCONFIGURED

    with pytest.raises(ConfigurationError):
        await perform_backup(config, state, make_resources(("a.txt", b"x")))

    assert blocker.read_text() == "occupied"
    assert state["status"].current == BackupStatus.CONFIGURED


@pytest.mark.asyncio
async def test_missing_backup_dir_is_created(temp_dir):
    """A missing directory is created on demand and the engine is configured."""
    config = BackupConfig(backup_dir=temp_dir / "deep" / "backups")
    state = await initialize_backup_state(config)

    assert config.backup_dir.is_dir()
    assert await get_backup_status(config, state) == BackupStatus.CONFIGURED


@pytest.mark.asyncio
async def test_custom_key_archive_does_not_displace_new_backup(temp_dir):
    """An archive filed under a custom key never pushes the new backup out of retention."""
    config = BackupConfig(backup_dir=temp_dir / "backups", additional_backup_count=0)
    state = await initialize_backup_state(
        config, owner_id_supplier=lambda: 42, clock=FakeClock(datetime(2024, 1, 1, tzinfo=UTC))
    )
    custom = config.backup_dir / "Edge-42-backup-factory-reset.zip"
    custom.write_bytes(b"PK\x05\x06" + b"\x00" * 18)

    backup = await perform_backup(config, state, make_resources(("a.txt", b"x")))

    assert (config.backup_dir / f"Edge-42-backup-{backup.key}.zip").is_file()
    assert custom.exists()
