# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Edge Backup Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so a backup in
progress never observes a half-updated destination or retention count.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

# Default location for archives, relative to the working directory
DEFAULT_BACKUP_DIR = Path("./edge_backups")

# Number of older archives kept next to the newest one
DEFAULT_ADDITIONAL_BACKUP_COUNT = 1

# Bytes read from a resource per copy step
DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for the backup archive engine.

    This configuration is frozen after creation so that it can be shared
    between concurrent callers without copying.
    """

    # Directory that holds the backup archives
    backup_dir: Path = field(default_factory=lambda: DEFAULT_BACKUP_DIR)

    # Extra archives kept beyond the newest one (0 keeps only the newest)
    additional_backup_count: int = DEFAULT_ADDITIONAL_BACKUP_COUNT

    # Deflate archive entries (False stores them uncompressed)
    archive_compression: bool = True

    # Copy buffer size used when streaming resources into an archive
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not isinstance(self.backup_dir, Path):
            # Accept plain strings for convenience; frozen needs object.__setattr__
            object.__setattr__(self, "backup_dir", Path(self.backup_dir))

        if self.additional_backup_count < 0:
            errors.append(
                f"additional_backup_count must be >= 0, got {self.additional_backup_count}"
            )

        if self.chunk_size < 1:
            errors.append(f"chunk_size must be >= 1, got {self.chunk_size}")

        # Raise all errors at once
        if errors:
            from edgebackup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return BackupConfig(**current)
