# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Resources - Named byte streams that go into an archive.

Producers (settings store, key store, ...) hand the engine an ordered
sequence of BackupResource objects. Each resource is read exactly once,
chunk by chunk, so nothing here assumes the data fits in memory.
"""

import asyncio
import zipfile
from abc import ABC, abstractmethod
from datetime import datetime, UTC
from pathlib import Path
from typing import AsyncIterator

import aiofiles

from edgebackup.config import DEFAULT_CHUNK_SIZE


class BackupResource(ABC):
    """
    A named, lazily readable byte stream.

    Attributes:
        backup_path: Entry name inside the archive, namespaced by provider
        provider_key: Identifier of the producer that owns the resource
        modification_date: Last modification time, when known
    """

    def __init__(
        self,
        backup_path: str,
        provider_key: str | None = None,
        modification_date: datetime | None = None,
    ):
        self.backup_path = backup_path
        self.provider_key = provider_key
        self.modification_date = modification_date

    @abstractmethod
    def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield the resource content from start to finish."""

    async def read_bytes(self) -> bytes:
        """Read the whole resource into memory. Only for small resources."""
        parts = [chunk async for chunk in self.iter_chunks()]
        return b"".join(parts)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(backup_path={self.backup_path!r}, "
            f"provider_key={self.provider_key!r})"
        )


class BytesBackupResource(BackupResource):
    """Resource backed by an in-memory bytes value."""

    def __init__(
        self,
        backup_path: str,
        data: bytes,
        provider_key: str | None = None,
        modification_date: datetime | None = None,
    ):
        super().__init__(backup_path, provider_key, modification_date)
        self._data = data

    async def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        for offset in range(0, len(self._data), chunk_size):
            yield self._data[offset:offset + chunk_size]


class FileBackupResource(BackupResource):
    """Resource backed by a file on disk, read with aiofiles."""

    def __init__(
        self,
        backup_path: str,
        path: Path,
        provider_key: str | None = None,
        modification_date: datetime | None = None,
    ):
        if modification_date is None and path.exists():
            modification_date = datetime.fromtimestamp(path.stat().st_mtime, UTC)
        super().__init__(backup_path, provider_key, modification_date)
        self.path = path

    async def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        async with aiofiles.open(self.path, "rb") as f:
            while True:
                chunk = await f.read(chunk_size)
                if not chunk:
                    break
                yield chunk


class ZipEntryBackupResource(BackupResource):
    """
    Resource backed by one entry of an open archive.

    The archive handle is owned by whoever opened it; this resource only
    reads from it and must not outlive it.
    """

    def __init__(
        self,
        archive: zipfile.ZipFile,
        info: zipfile.ZipInfo,
        provider_key: str | None = None,
    ):
        modification_date = datetime(*info.date_time, tzinfo=UTC)
        super().__init__(info.filename, provider_key, modification_date)
        self._archive = archive
        self._info = info

    @property
    def size(self) -> int:
        """Uncompressed size of the entry."""
        return self._info.file_size

    async def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        with self._archive.open(self._info, "r") as stream:
            while True:
                chunk = stream.read(chunk_size)
                if not chunk:
                    break
                yield chunk
                # Large entries would otherwise hold the loop for the whole read
                await asyncio.sleep(0)


def provider_key_for_path(backup_path: str) -> str | None:
    """
    Guess the owning provider from a namespaced entry name.

    Producers prefix entries with their provider key, e.g.
    ``settings/settings.csv``; the first path segment is returned.
    """
    head, sep, _ = backup_path.partition("/")
    return head if sep and head else None
