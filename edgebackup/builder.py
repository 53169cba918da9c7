# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Edge Backup Builder - Functional builder pattern for configuration.

This module provides pure functions for building BackupConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict

from edgebackup.config import (
    BackupConfig,
    DEFAULT_ADDITIONAL_BACKUP_COUNT,
    DEFAULT_BACKUP_DIR,
    DEFAULT_CHUNK_SIZE,
)


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "backup_dir": DEFAULT_BACKUP_DIR,
        "additional_backup_count": DEFAULT_ADDITIONAL_BACKUP_COUNT,
        "archive_compression": True,
        "chunk_size": DEFAULT_CHUNK_SIZE,
    }


def with_backup_dir(config: ConfigDict, backup_dir: Path | str) -> ConfigDict:
    """
    Set the directory archives are written to.

    Args:
        config: Current configuration dictionary
        backup_dir: Destination directory (created on first use)

    Returns:
        New configuration dictionary with backup_dir set
    """
    path = Path(backup_dir) if isinstance(backup_dir, str) else backup_dir
    return {**config, "backup_dir": path}


def keep_additional_backups(config: ConfigDict, count: int) -> ConfigDict:
    """
    Set how many older archives survive pruning.

    The newest archive is always kept, so a count of 1 leaves two
    archives per device on disk.

    Args:
        config: Current configuration dictionary
        count: Number of extra archives to keep (>= 0)

    Returns:
        New configuration dictionary with the retention count set
    """
    return {**config, "additional_backup_count": count}


def store_uncompressed(config: ConfigDict) -> ConfigDict:
    """
    Store archive entries without deflate compression.

    Useful when resources are already compressed (certificates bundles,
    images) and CPU time on the device is scarce.
    """
    return {**config, "archive_compression": False}


def with_chunk_size(config: ConfigDict, chunk_size: int) -> ConfigDict:
    """
    Set the copy buffer size used while streaming resources.

    Args:
        config: Current configuration dictionary
        chunk_size: Bytes read per step (>= 1)

    Returns:
        New configuration dictionary with chunk_size set
    """
    return {**config, "chunk_size": chunk_size}


def build_config(config_dict: ConfigDict) -> BackupConfig:
    """
    Validate and build an immutable BackupConfig from a configuration dictionary.

    Args:
        config_dict: Configuration dictionary built using builder functions

    Returns:
        Validated, immutable BackupConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    return BackupConfig(**config_dict)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

    This allows a more readable pipeline style:

        config = pipe(
            lambda c: with_backup_dir(c, "/var/lib/edge/backups"),
            lambda c: keep_additional_backups(c, 3),
            store_uncompressed,
        )(create_empty_config())

    Args:
        *funcs: Builder functions to compose

    Returns:
        A single function that applies all functions in sequence
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def build_from_steps(*steps: BuilderFunc) -> BackupConfig:
    """
    Build config by applying a sequence of builder functions.

    This is a convenience function that combines pipe() and build_config().
    """
    return build_config(pipe(*steps)(create_empty_config()))


def create_config(
    backup_dir: Path | str | None = None,
    *,
    additional_backup_count: int | None = None,
    archive_compression: bool | None = None,
    chunk_size: int | None = None,
) -> BackupConfig:
    """
    Create a BackupConfig with sensible defaults.

    This is the main user-facing API for creating configuration.

    Args:
        backup_dir: Directory for archives (default: ./edge_backups)
        additional_backup_count: Older archives to keep (default: 1)
        archive_compression: Deflate entries (default: True)
        chunk_size: Copy buffer size in bytes (default: 64 KiB)

    Returns:
        Validated, immutable BackupConfig

    Example:
        config = create_config(
            "/var/lib/edge/backups",
            additional_backup_count=3,
        )
    """
    config_dict = create_empty_config()

    if backup_dir:
        config_dict = with_backup_dir(config_dict, backup_dir)

    if additional_backup_count is not None:
        config_dict = keep_additional_backups(config_dict, additional_backup_count)

    if archive_compression is False:
        config_dict = store_uncompressed(config_dict)

    if chunk_size is not None:
        config_dict = with_chunk_size(config_dict, chunk_size)

    return build_config(config_dict)
