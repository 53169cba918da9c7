# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Edge Backup Restore - Read archives back out as resources.

Opening an archive returns a BackupResourceIterable that owns the
underlying ZipFile handle. It must always be closed; use it as a
context manager (sync or async) so the handle is released on every
exit path, including breaking out of the loop early.
"""

import os
import zipfile
from pathlib import Path
from typing import BinaryIO, Iterator, List

import aiofiles
import structlog

from edgebackup.backup.resources import (
    BackupResource,
    ZipEntryBackupResource,
    provider_key_for_path,
)
from edgebackup.config import DEFAULT_CHUNK_SIZE
from edgebackup.exceptions import RestoreError

logger = structlog.get_logger()


class BackupResourceIterable:
    """
    Resources of one archive plus the handle that backs them.

    Entry metadata is read up front; entry content is only read when a
    resource is consumed.
    """

    def __init__(
        self,
        resources: List[BackupResource] | None = None,
        archive: zipfile.ZipFile | None = None,
    ):
        self._resources = resources or []
        self._archive = archive

    def __iter__(self) -> Iterator[BackupResource]:
        return iter(self._resources)

    def __len__(self) -> int:
        return len(self._resources)

    @property
    def closed(self) -> bool:
        return self._archive is None

    def close(self) -> None:
        """Release the archive handle. Safe to call more than once."""
        if self._archive is not None:
            self._archive.close()
            self._archive = None

    def __enter__(self) -> "BackupResourceIterable":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "BackupResourceIterable":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


def empty_resources() -> BackupResourceIterable:
    """An iterable with no resources and nothing to close."""
    return BackupResourceIterable()


def open_archive_resources(source: Path | BinaryIO) -> BackupResourceIterable:
    """
    Open an archive and expose each file entry as a resource.

    Args:
        source: Archive path, or a seekable binary file object

    Returns:
        BackupResourceIterable owning the open archive

    Raises:
        RestoreError: If the source is not a readable ZIP archive
    """
    try:
        zf = zipfile.ZipFile(source, "r")
    except (zipfile.BadZipFile, OSError) as e:
        raise RestoreError(
            f"Failed to open backup archive: {e}",
            details={"source": str(source)},
        ) from e

    resources: List[BackupResource] = [
        ZipEntryBackupResource(zf, info, provider_key_for_path(info.filename))
        for info in zf.infolist()
        if not info.is_dir()
    ]

    logger.debug(
        "backup_archive_opened",
        source=str(source),
        entries=len(resources),
    )

    return BackupResourceIterable(resources, zf)


def open_backup_archive(archive: Path | None, key: str) -> BackupResourceIterable:
    """
    Open a local backup archive for restore.

    A missing or unreadable archive yields an empty iterable rather than
    an error, so a restore of a pruned backup simply restores nothing.

    Args:
        archive: Path to the archive, None if the key did not resolve
        key: Backup key, for logging

    Returns:
        BackupResourceIterable
    """
    if archive is None or not archive.is_file() or not os.access(archive, os.R_OK):
        logger.warning("restore_archive_missing", key=key)
        return empty_resources()
    return open_archive_resources(archive)


async def export_archive(
    archive: Path,
    out: BinaryIO,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """
    Copy the raw bytes of an archive to a binary writer.

    Args:
        archive: Archive to export
        out: Destination writer (left open)
        chunk_size: Bytes copied per read

    Returns:
        Number of bytes written
    """
    written = 0
    try:
        async with aiofiles.open(archive, "rb") as f:
            while True:
                chunk = await f.read(chunk_size)
                if not chunk:
                    break
                out.write(chunk)
                written += len(chunk)
    except OSError as e:
        raise RestoreError(
            f"Failed to export backup archive: {e}",
            details={"archive": str(archive)},
        ) from e

    logger.info("backup_archive_exported", archive=archive.name, size=written)
    return written
