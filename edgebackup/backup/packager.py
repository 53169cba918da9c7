# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Edge Backup Packager - Stream resources into a single ZIP archive.

Each resource becomes one archive entry named exactly after its
backup_path. Content is copied chunk by chunk straight into the entry,
so archives may be far larger than available memory.

The packager never removes what it wrote: on failure the exception
propagates and the caller decides what to do with the partial file.
"""

import zipfile
from datetime import datetime, UTC
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, Iterable, Set

import structlog

from edgebackup.backup.resources import BackupResource
from edgebackup.config import DEFAULT_CHUNK_SIZE
from edgebackup.exceptions import BackupError

logger = structlog.get_logger()

ResourceSource = Iterable[BackupResource] | AsyncIterable[BackupResource]


class PeekableResources:
    """
    Single-pass resource sequence with a one-element lookahead.

    Accepts both plain and async iterables so producers can be written
    either way. The peeked element is handed out again on iteration.
    """

    _EXHAUSTED = object()

    def __init__(self, resources: ResourceSource):
        if hasattr(resources, "__aiter__"):
            self._async_iter: AsyncIterator[BackupResource] | None = aiter(resources)
            self._sync_iter = None
        else:
            self._async_iter = None
            self._sync_iter = iter(resources)
        self._head: object | None = None

    async def _next(self) -> object:
        if self._async_iter is not None:
            return await anext(self._async_iter, self._EXHAUSTED)
        return next(self._sync_iter, self._EXHAUSTED)

    async def is_empty(self) -> bool:
        """Check for a first element without losing it."""
        if self._head is None:
            self._head = await self._next()
        return self._head is self._EXHAUSTED

    async def __aiter__(self) -> AsyncIterator[BackupResource]:
        if await self.is_empty():
            return
        item = self._head
        self._head = self._EXHAUSTED
        while item is not self._EXHAUSTED:
            yield item  # type: ignore[misc]
            item = await self._next()


async def pack_resources(
    destination: Path,
    resources: ResourceSource | PeekableResources,
    compression: int = zipfile.ZIP_DEFLATED,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """
    Write resources into a new archive at ``destination``.

    The destination is opened for exclusive creation; an existing file
    with the same name is never overwritten.

    Args:
        destination: Archive file to create
        resources: Ordered resources; entry names must be unique
        compression: zipfile compression constant
        chunk_size: Bytes copied per read

    Returns:
        Size of the written archive in bytes, or 0 if there was nothing
        to write (no file is created in that case)

    Raises:
        BackupError: If two resources share a backup_path
        OSError: On any I/O failure, including failures reading a resource
    """
    if not isinstance(resources, PeekableResources):
        resources = PeekableResources(resources)

    if await resources.is_empty():
        logger.debug("backup_nothing_to_do", archive=destination.name)
        return 0

    seen: Set[str] = set()
    entry_count = 0

    with open(destination, "xb") as raw:
        with zipfile.ZipFile(raw, "w", compression=compression) as zf:
            async for resource in resources:
                if resource.backup_path in seen:
                    raise BackupError(
                        f"Duplicate backup path in resources: {resource.backup_path}",
                        details={
                            "backup_path": resource.backup_path,
                            "provider_key": resource.provider_key,
                        },
                    )
                seen.add(resource.backup_path)

                logger.debug(
                    "backup_resource_added",
                    archive=destination.name,
                    backup_path=resource.backup_path,
                    provider_key=resource.provider_key,
                )

                entry = zipfile.ZipInfo(
                    resource.backup_path,
                    date_time=_entry_date_time(resource),
                )
                entry.compress_type = compression
                entry.external_attr = 0o600 << 16

                with zf.open(entry, "w", force_zip64=True) as out:
                    async for chunk in resource.iter_chunks(chunk_size):
                        out.write(chunk)

                entry_count += 1

    size = destination.stat().st_size

    logger.debug(
        "backup_archive_packed",
        archive=destination.name,
        entries=entry_count,
        size=size,
    )

    return size


def _entry_date_time(resource: BackupResource) -> tuple:
    """ZIP entry timestamp; the format cannot represent years before 1980."""
    ts = resource.modification_date or datetime.now(UTC)
    if ts.year < 1980:
        return (1980, 1, 1, 0, 0, 0)
    return ts.timetuple()[:6]
