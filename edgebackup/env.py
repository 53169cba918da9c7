# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers and retention profiles.

These helpers are small, convenient wrappers around create_config() and
BackupConfig.with_updates(). They make it easy to:

- Build a configuration from environment variables
- Apply ready-made retention profiles
"""

from __future__ import annotations

import os
from pathlib import Path

from edgebackup.builder import create_config
from edgebackup.config import BackupConfig
from edgebackup.errors import (
    explain_invalid_additional_count_env,
    explain_invalid_chunk_size_env,
    explain_invalid_compression_env,
)
from edgebackup.exceptions import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_additional_count(value: str | None) -> int | None:
    if not value:
        return None
    try:
        count = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_additional_count_env(value)) from exc
    if count < 0:
        raise ConfigurationError(explain_invalid_additional_count_env(value))
    return count


def _parse_compression(value: str | None) -> bool | None:
    if not value:
        return None
    lower = value.strip().lower()
    if lower in _TRUE_VALUES:
        return True
    if lower in _FALSE_VALUES:
        return False
    raise ConfigurationError(explain_invalid_compression_env(value))


def _parse_chunk_size(value: str | None) -> int | None:
    if not value:
        return None
    try:
        size = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_chunk_size_env(value)) from exc
    if size < 1:
        raise ConfigurationError(explain_invalid_chunk_size_env(value))
    return size


def create_config_from_env() -> BackupConfig:
    """
    Create a BackupConfig from environment variables.

    Optional environment variables:
        - EDGE_BACKUP_DIR: Directory for archives (default: ./edge_backups)
        - EDGE_BACKUP_ADDITIONAL_COUNT: Non-negative integer (default: 1)
        - EDGE_BACKUP_COMPRESSION: 'true' | 'false' (default: true)
        - EDGE_BACKUP_CHUNK_SIZE: Positive integer bytes (default: 65536)
    """

    backup_dir_env = os.getenv("EDGE_BACKUP_DIR")

    return create_config(
        Path(backup_dir_env) if backup_dir_env else None,
        additional_backup_count=_parse_additional_count(
            os.getenv("EDGE_BACKUP_ADDITIONAL_COUNT")
        ),
        archive_compression=_parse_compression(os.getenv("EDGE_BACKUP_COMPRESSION")),
        chunk_size=_parse_chunk_size(os.getenv("EDGE_BACKUP_CHUNK_SIZE")),
    )


# ============================================================================
# Profiles
# ============================================================================

def minimal_retention(config: BackupConfig) -> BackupConfig:
    """
    Keep only the newest archive.

    Suited to devices with very little flash storage.
    """

    return config.with_updates(additional_backup_count=0)


def archival(config: BackupConfig) -> BackupConfig:
    """
    Apply a history-friendly profile.

    - At least 5 older archives kept
    - Compression always enabled
    """

    return config.with_updates(
        additional_backup_count=max(config.additional_backup_count, 5),
        archive_compression=True,
    )
