# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Edge Backup Manager - Archive enumeration and retention.

Everything in this module is a query over the current directory listing:
nothing is cached, so the functions can be pointed at any directory
(including a temporary one in tests).
"""

import os
from datetime import datetime, UTC
from pathlib import Path
from typing import List

import structlog

from edgebackup.backup.models import Backup
from edgebackup.backup.naming import (
    ARCHIVE_EXTENSION,
    archive_key,
    decode_archive_name,
    encode_archive_name_for_key,
    matches_key,
    matches_owner,
    parse_backup_token,
)

logger = structlog.get_logger()


def _newest_first(archive: Path) -> tuple[str, str]:
    # Timestamp keys are fixed-width, so they order chronologically across owners
    return archive_key(archive.name), archive.name


def list_backup_files(
    backup_dir: Path,
    owner_id: int | None,
    strict_owner: bool = False,
) -> List[Path]:
    """
    List archive files for an owner, newest first.

    Archives are ordered by key, not by full name, so the owner id in the
    name does not disturb chronological order when several owners are listed.

    Args:
        backup_dir: Directory holding the archives
        owner_id: Owner to filter on; None or 0 lists every owner
        strict_owner: Match the owner id exactly, so 0 only lists owner 0

    Returns:
        Archive paths, or an empty list if the directory does not exist
    """
    if not backup_dir.is_dir():
        return []

    archives = [
        entry
        for entry in backup_dir.iterdir()
        if entry.name.endswith(f".{ARCHIVE_EXTENSION}")
        and matches_owner(entry.name, owner_id, strict=strict_owner)
        and entry.is_file()
    ]
    archives.sort(key=_newest_first, reverse=True)
    return archives


def backup_for_file(archive: Path, fallback_to_mtime: bool = False) -> Backup | None:
    """
    Describe an archive file as a Backup.

    Args:
        archive: Archive path following the naming grammar
        fallback_to_mtime: Use the file modification time when the key is
            not a timestamp (archives filed under a caller-supplied key)

    Returns:
        Backup, or None if the name does not decode or carries no date
    """
    decoded = decode_archive_name(archive.name)
    if decoded is None:
        return None

    date = parse_backup_token(decoded.key)
    stat = archive.stat()
    if date is None:
        if not fallback_to_mtime:
            logger.debug("backup_archive_undated", archive=archive.name)
            return None
        date = datetime.fromtimestamp(int(stat.st_mtime), UTC)

    return Backup(
        owner_id=decoded.owner_id,
        date=date,
        key=decoded.key,
        size_bytes=stat.st_size,
        complete=True,
    )


def list_backups(backup_dir: Path, owner_id: int | None) -> List[Backup]:
    """
    List available backups for an owner, newest first.

    Files that do not follow the naming grammar, or whose key is not a
    timestamp, are skipped.
    """
    backups: List[Backup] = []
    for archive in list_backup_files(backup_dir, owner_id):
        try:
            backup = backup_for_file(archive)
        except OSError as e:
            # Removed between listing and stat
            logger.debug("backup_archive_vanished", archive=archive.name, error=str(e))
            continue
        if backup is not None:
            backups.append(backup)
    return backups


def find_archive_for_key(backup_dir: Path, owner_id: int | None, key: str) -> Path | None:
    """
    Locate the archive for a backup key.

    With a known owner the exact file name is built from the key. With an
    unknown owner (None or 0), as on a device whose identity record was
    lost, the newest archive whose name contains the key is used.

    Returns:
        Path to the archive, or None if nothing matches
    """
    if owner_id:
        return backup_dir / encode_archive_name_for_key(owner_id, key)

    if not backup_dir.is_dir():
        return None

    matches = sorted(
        (
            entry
            for entry in backup_dir.iterdir()
            if decode_archive_name(entry.name) is not None and matches_key(entry.name, key)
        ),
        key=_newest_first,
        reverse=True,
    )
    return matches[0] if matches else None


def find_backup_by_key(backup_dir: Path, owner_id: int | None, key: str) -> Backup | None:
    """
    Look up a single backup by its key.

    Returns:
        Backup, or None if no readable archive exists for the key
    """
    archive = find_archive_for_key(backup_dir, owner_id, key)
    if archive is None or not archive.is_file() or not os.access(archive, os.R_OK):
        return None
    try:
        return backup_for_file(archive, fallback_to_mtime=True)
    except OSError:
        return None


async def prune_old_backups(backup_dir: Path, owner_id: int | None, keep: int) -> int:
    """
    Delete all but the newest ``keep + 1`` archives for an owner.

    The extra one is the archive that was just written. Deletion is
    best-effort: failures are logged and the remaining files are still
    processed.

    Only archives whose owner id equals ``owner_id`` exactly are
    considered, so an unknown owner never prunes another device's archives.
    Archives filed under a custom, non-timestamp key are never pruned.

    Args:
        backup_dir: Directory holding the archives
        owner_id: Owner whose archives are pruned
        keep: Number of older archives to retain

    Returns:
        Number of archives actually deleted
    """
    try:
        candidates = list_backup_files(backup_dir, owner_id, strict_owner=True)
    except OSError as e:
        logger.warning("backup_prune_failed", backup_dir=str(backup_dir), error=str(e))
        return 0

    # Only dated archives take part
    archives = [
        archive
        for archive in candidates
        if parse_backup_token(decode_archive_name(archive.name).key) is not None
    ]
    deleted = 0

    for archive in archives[keep + 1:]:
        try:
            archive.unlink()
            deleted += 1
            logger.info("backup_pruned", archive=archive.name)
        except OSError as e:
            logger.warning(
                "backup_prune_failed",
                archive=str(archive),
                error=str(e),
            )

    return deleted


def remove_all_backups(backup_dir: Path, owner_id: int | None) -> int:
    """
    Delete every archive belonging to an owner.

    Best-effort, like prune_old_backups().

    Returns:
        Number of archives deleted
    """
    deleted = 0
    for archive in list_backup_files(backup_dir, owner_id, strict_owner=True):
        try:
            archive.unlink()
            deleted += 1
            logger.debug("backup_archive_removed", archive=archive.name)
        except OSError as e:
            logger.warning(
                "backup_remove_failed",
                archive=str(archive),
                error=str(e),
            )
    return deleted


async def get_backup_stats(backup_dir: Path, owner_id: int | None) -> dict:
    """
    Get statistics about archive storage for an owner.

    Args:
        backup_dir: Directory holding the archives
        owner_id: Owner to report on

    Returns:
        Dict with backup statistics
    """
    backups = list_backups(backup_dir, owner_id)

    stats = {
        "backup_count": len(backups),
        "backup_bytes": sum(b.size_bytes for b in backups),
        "oldest_backup": None,
        "newest_backup": None,
    }

    if backups:
        stats["newest_backup"] = backups[0].date.isoformat()
        stats["oldest_backup"] = backups[-1].date.isoformat()

    return stats
