# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Edge Backup Core - Backup engine operations.

This module ties the components together: naming, packaging, status,
enumeration and retention. The engine instance is the BackupState
returned by initialize_backup_state(); every operation takes the
configuration and that state.
"""

import zipfile
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Callable, List, Mapping, TypedDict

import structlog

from edgebackup.backup.manager import (
    find_archive_for_key,
    find_backup_by_key,
    get_backup_stats,
    list_backups,
    prune_old_backups,
)
from edgebackup.backup.manager import remove_all_backups as _remove_archives
from edgebackup.backup.models import Backup, BackupInfo
from edgebackup.backup.naming import (
    BACKUP_KEY_PROP,
    date_from_props,
    decode_archive_name,
    encode_archive_name,
    owner_id_from_props,
    parse_backup_token,
    to_utc_seconds,
)
from edgebackup.backup.packager import PeekableResources, ResourceSource, pack_resources
from edgebackup.backup.restore import (
    BackupResourceIterable,
    export_archive,
    open_archive_resources,
    open_backup_archive,
)
from edgebackup.backup.status import BackupStatus, StatusGuard
from edgebackup.config import BackupConfig
from edgebackup.errors import explain_unusable_backup_dir
from edgebackup.exceptions import BackupError, ConfigurationError, RestoreError

logger = structlog.get_logger()

OwnerIdSupplier = Callable[[], int | None]
Clock = Callable[[], datetime]


class BackupState(TypedDict):
    """Runtime state for one backup engine."""

    status: StatusGuard
    owner_id_supplier: OwnerIdSupplier | None  # Device identity; None means unknown
    clock: Clock
    total_backups: int
    last_backup_at: datetime | None
    last_error: str | None


def _utc_now() -> datetime:
    return datetime.now(UTC)


async def initialize_backup_state(
    config: BackupConfig,
    owner_id_supplier: OwnerIdSupplier | None = None,
    clock: Clock | None = None,
) -> BackupState:
    """
    Initialize runtime state for the backup engine.

    Creates the backup directory if needed. A directory that cannot be
    created is not fatal here: the engine reports itself unconfigured
    and refuses to write until the problem is fixed.

    Args:
        config: Backup configuration
        owner_id_supplier: Returns the device owner id (None/0 if unknown)
        clock: Time source, defaults to the current UTC time

    Returns:
        Initialized BackupState dictionary
    """
    if not _ensure_backup_dir(config):
        logger.warning("backup_dir_unusable", backup_dir=str(config.backup_dir))

    return BackupState(
        status=StatusGuard(BackupStatus.CONFIGURED),
        owner_id_supplier=owner_id_supplier,
        clock=clock or _utc_now,
        total_backups=0,
        last_backup_at=None,
        last_error=None,
    )


def _ensure_backup_dir(config: BackupConfig) -> bool:
    """Create the backup directory if missing; report whether it is usable."""
    backup_dir = config.backup_dir
    if not backup_dir.exists():
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(
                "backup_dir_create_failed",
                backup_dir=str(backup_dir),
                error=str(e),
            )
            return False
    if not backup_dir.is_dir():
        logger.error("backup_dir_not_directory", backup_dir=str(backup_dir))
        return False
    return True


def _owner_id(state: BackupState) -> int:
    supplier = state["owner_id_supplier"]
    owner_id = supplier() if supplier is not None else None
    return owner_id or 0


async def get_backup_status(config: BackupConfig, state: BackupState) -> BackupStatus:
    """
    Get the current engine status.

    UNCONFIGURED is derived from the backup directory and never stored.
    """
    if not _ensure_backup_dir(config):
        return BackupStatus.UNCONFIGURED
    return state["status"].current


# ============================================================================
# Backup
# ============================================================================

async def perform_backup(
    config: BackupConfig,
    state: BackupState,
    resources: ResourceSource | None,
) -> Backup | None:
    """
    Write a new backup archive from the given resources.

    Args:
        config: Backup configuration
        state: Runtime state
        resources: Ordered, single-pass resources to archive

    Returns:
        The new Backup, or None if there was nothing to back up or another
        backup is already running

    Raises:
        ConfigurationError: If the backup directory is unusable
        BackupError: If writing the archive failed (no file is left behind)
    """
    backup_date = to_utc_seconds(state["clock"]())
    return await _perform_backup_internal(
        config, state, resources, backup_date, _owner_id(state)
    )


async def import_backup(
    config: BackupConfig,
    state: BackupState,
    resources: ResourceSource | None,
    date: datetime | None = None,
    props: Mapping[str, str] | None = None,
) -> Backup | None:
    """
    File externally supplied resources as a local backup.

    Identical to perform_backup() except for the archive timestamp, which
    is ``date`` if given, else the date encoded in the BackupKey property,
    else the current time. The owner id likewise comes from the BackupKey
    property when present, else from the device identity.

    Returns:
        The new Backup, or None (see perform_backup())
    """
    backup_date = date_from_props(date, props, now=state["clock"]())
    owner_id = owner_id_from_props(props) or _owner_id(state)
    return await _perform_backup_internal(config, state, resources, backup_date, owner_id)


async def _perform_backup_internal(
    config: BackupConfig,
    state: BackupState,
    resources: ResourceSource | None,
    backup_date: datetime,
    owner_id: int,
) -> Backup | None:
    if resources is None:
        return None

    if not _ensure_backup_dir(config):
        raise ConfigurationError(explain_unusable_backup_dir(config.backup_dir))

    guard = state["status"]
    # A previous failure does not block new attempts
    for entered_from in (BackupStatus.CONFIGURED, BackupStatus.ERROR):
        if guard.try_transition(BackupStatus.RUNNING_BACKUP, entered_from):
            break
    else:
        logger.info("backup_busy", status=guard.current.value)
        return None

    pending = PeekableResources(resources)
    name = encode_archive_name(owner_id, backup_date)
    archive_path = config.backup_dir / name.filename
    nothing_to_do = False
    owns_archive = False
    backup: Backup | None = None

    try:
        if await pending.is_empty():
            nothing_to_do = True
            logger.debug("backup_nothing_to_do")
            return None

        logger.info("backup_started", archive=name.filename, owner_id=name.owner_id)

        if archive_path.exists():
            raise BackupError(
                f"Backup archive already exists: {name.filename}",
                details={"archive": str(archive_path)},
            )
        owns_archive = True

        compression = zipfile.ZIP_DEFLATED if config.archive_compression else zipfile.ZIP_STORED
        size = await pack_resources(
            archive_path,
            pending,
            compression=compression,
            chunk_size=config.chunk_size,
        )
        if size <= 0:
            raise BackupError(
                "Backup archive is empty",
                details={"archive": str(archive_path)},
            )

        backup = Backup(
            owner_id=name.owner_id,
            date=backup_date,
            key=name.key,
            size_bytes=size,
            complete=True,
        )
        logger.info("backup_completed", archive=name.filename, size=size)

    except BaseException as e:
        guard.try_transition(BackupStatus.ERROR, BackupStatus.RUNNING_BACKUP)
        state["last_error"] = str(e) or type(e).__name__
        logger.error("backup_failed", archive=name.filename, error=state["last_error"])
        if isinstance(e, Exception) and not isinstance(e, BackupError):
            raise BackupError(
                f"Failed to write backup archive: {e}",
                details={"archive": str(archive_path)},
            ) from e
        raise

    finally:
        if nothing_to_do:
            guard.try_transition(entered_from, BackupStatus.RUNNING_BACKUP)
        elif (
            not guard.try_transition(BackupStatus.CONFIGURED, BackupStatus.RUNNING_BACKUP)
            and owns_archive
        ):
            _discard_archive(archive_path)

    await prune_old_backups(config.backup_dir, name.owner_id, config.additional_backup_count)

    state["total_backups"] += 1
    state["last_backup_at"] = backup.date
    state["last_error"] = None
    return backup


def _discard_archive(archive_path: Path) -> None:
    try:
        archive_path.unlink(missing_ok=True)
        logger.info("backup_archive_discarded", archive=archive_path.name)
    except OSError as e:
        logger.warning(
            "backup_archive_discard_failed",
            archive=str(archive_path),
            error=str(e),
        )


# ============================================================================
# Enumeration
# ============================================================================

async def available_backups(config: BackupConfig, state: BackupState) -> List[Backup]:
    """List backups for this device, newest first."""
    return list_backups(config.backup_dir, _owner_id(state))


async def backup_for_key(config: BackupConfig, state: BackupState, key: str) -> Backup | None:
    """
    Look up a backup by key.

    When the device owner id is unknown, any archive whose name contains
    the key is accepted.
    """
    return find_backup_by_key(config.backup_dir, _owner_id(state), key)


async def remove_all_backups(config: BackupConfig, state: BackupState) -> None:
    """Delete every archive for this device. Failures are only logged."""
    deleted = _remove_archives(config.backup_dir, _owner_id(state))
    logger.info("backups_removed", count=deleted)


# ============================================================================
# Restore
# ============================================================================

def _archive_for_backup(config: BackupConfig, state: BackupState, backup: Backup) -> Path | None:
    owner_id = backup.owner_id or _owner_id(state)
    return find_archive_for_key(config.backup_dir, owner_id, backup.key)


def restore_resources(
    config: BackupConfig,
    state: BackupState,
    backup: Backup,
) -> BackupResourceIterable:
    """
    Open a backup and expose its entries as resources.

    The caller owns the returned iterable and must close it, preferably
    with ``with`` or ``async with``. A backup whose archive no longer
    exists yields no resources.

    Raises:
        RestoreError: If the archive exists but is not a valid ZIP file
    """
    return open_backup_archive(_archive_for_backup(config, state, backup), backup.key)


@asynccontextmanager
async def open_backup_resources(
    config: BackupConfig,
    state: BackupState,
    backup: Backup,
) -> AsyncIterator[BackupResourceIterable]:
    """
    Scoped variant of restore_resources().

    Example:
        async with open_backup_resources(config, state, backup) as resources:
            for resource in resources:
                data = await resource.read_bytes()
    """
    resources = restore_resources(config, state, backup)
    try:
        yield resources
    finally:
        resources.close()


async def export_backup_archive(
    config: BackupConfig,
    state: BackupState,
    key: str,
    out: BinaryIO,
) -> int:
    """
    Stream the raw archive for ``key`` to a binary writer.

    Returns:
        Number of bytes written

    Raises:
        RestoreError: If no archive exists for the key
    """
    archive = find_archive_for_key(config.backup_dir, _owner_id(state), key)
    if archive is None or not archive.is_file():
        raise RestoreError(
            f"No backup archive exists for key: {key}",
            details={"key": key},
        )
    return await export_archive(archive, out, chunk_size=config.chunk_size)


async def import_backup_archive(
    config: BackupConfig,
    state: BackupState,
    source: Path | BinaryIO,
    date: datetime | None = None,
    props: Mapping[str, str] | None = None,
) -> Backup | None:
    """
    Re-key an archive produced elsewhere as a local backup.

    The entries of ``source`` are copied into a new archive named for
    this device. If neither ``date`` nor a BackupKey property is given
    and ``source`` is a path following the archive naming grammar, the
    original backup date is kept.

    Raises:
        RestoreError: If the source is not a readable ZIP archive
        BackupError: If writing the local archive failed
    """
    has_key = bool(props and props.get(BACKUP_KEY_PROP))
    if date is None and not has_key and isinstance(source, Path):
        decoded = decode_archive_name(source.name)
        if decoded is not None:
            date = parse_backup_token(decoded.key)

    with open_archive_resources(source) as resources:
        return await import_backup(config, state, resources, date=date, props=props)


# ============================================================================
# Status report
# ============================================================================

async def get_backup_info(config: BackupConfig, state: BackupState) -> BackupInfo:
    """Get current engine status and storage figures."""
    stats = await get_backup_stats(config.backup_dir, _owner_id(state))

    return BackupInfo(
        status=await get_backup_status(config, state),
        backup_dir=config.backup_dir,
        additional_backup_count=config.additional_backup_count,
        available_count=stats["backup_count"],
        total_bytes=stats["backup_bytes"],
        total_backups=state["total_backups"],
        last_backup_at=state["last_backup_at"],
        last_error=state["last_error"],
    )
