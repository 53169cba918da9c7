# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Edge Backup - Backup archive engine for unattended field devices.

Captures named resources (security material, settings, application data)
into versioned ZIP archives, bounds disk usage through retention, and
restores or re-imports archives, including ones made on another device.
Package name: edgebackup.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from edgebackup.builder import create_config
from edgebackup.config import BackupConfig

# Core functions
from edgebackup.core import (
    initialize_backup_state,
    perform_backup,
    import_backup,
    import_backup_archive,
    export_backup_archive,
    restore_resources,
    open_backup_resources,
    available_backups,
    backup_for_key,
    remove_all_backups,
    get_backup_status,
    get_backup_info,
)

# Types
from edgebackup.backup import (
    Backup,
    BackupInfo,
    BackupResource,
    BytesBackupResource,
    FileBackupResource,
    BackupStatus,
)

# Environment-based configuration and profiles (additional helpers)
from edgebackup.env import (
    create_config_from_env,
    minimal_retention,
    archival,
)

__all__ = [
    # Version
    "__version__",
    # Configuration creation (primary user-facing APIs)
    "create_config",
    "create_config_from_env",
    "BackupConfig",
    # Core engine functions
    "initialize_backup_state",
    "perform_backup",
    "import_backup",
    "import_backup_archive",
    "export_backup_archive",
    "restore_resources",
    "open_backup_resources",
    "available_backups",
    "backup_for_key",
    "remove_all_backups",
    "get_backup_status",
    "get_backup_info",
    # Types
    "Backup",
    "BackupInfo",
    "BackupResource",
    "BytesBackupResource",
    "FileBackupResource",
    "BackupStatus",
]
