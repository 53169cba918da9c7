# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup descriptor types.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from edgebackup.backup.status import BackupStatus


@dataclass(frozen=True)
class Backup:
    """A complete backup archive on durable storage."""

    owner_id: int  # 0 when the device identity is unknown
    date: datetime  # UTC, whole seconds
    key: str
    size_bytes: int
    complete: bool = True


@dataclass
class BackupInfo:
    """Status report for the backup engine."""

    status: BackupStatus
    backup_dir: Path
    additional_backup_count: int
    available_count: int
    total_bytes: int
    total_backups: int
    last_backup_at: datetime | None
    last_error: str | None
