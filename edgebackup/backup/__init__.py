# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine components - naming, packaging, status, enumeration and restore.
"""

from edgebackup.backup.status import BackupStatus, StatusGuard

from edgebackup.backup.models import Backup, BackupInfo

from edgebackup.backup.resources import (
    BackupResource,
    BytesBackupResource,
    FileBackupResource,
    ZipEntryBackupResource,
)

from edgebackup.backup.naming import (
    encode_archive_name,
    encode_archive_name_for_key,
    decode_archive_name,
    format_backup_token,
    parse_backup_token,
)

from edgebackup.backup.packager import pack_resources

from edgebackup.backup.manager import (
    list_backups,
    find_backup_by_key,
    prune_old_backups,
    get_backup_stats,
)

from edgebackup.backup.restore import (
    BackupResourceIterable,
    open_archive_resources,
    export_archive,
)

__all__ = [
    # Status
    "BackupStatus",
    "StatusGuard",
    # Types
    "Backup",
    "BackupInfo",
    "BackupResource",
    "BytesBackupResource",
    "FileBackupResource",
    "ZipEntryBackupResource",
    # Naming
    "encode_archive_name",
    "encode_archive_name_for_key",
    "decode_archive_name",
    "format_backup_token",
    "parse_backup_token",
    # Packager
    "pack_resources",
    # Manager
    "list_backups",
    "find_backup_by_key",
    "prune_old_backups",
    "get_backup_stats",
    # Restore
    "BackupResourceIterable",
    "open_archive_resources",
    "export_archive",
]
