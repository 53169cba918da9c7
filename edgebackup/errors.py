# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for Edge Backup.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""

from pathlib import Path


def explain_unusable_backup_dir(backup_dir: Path) -> str:
    """
    Explain that the backup directory cannot be used.
    """

    return (
        f"Backup directory {str(backup_dir)!r} does not exist and could not be created, "
        "or is not a directory. "
        "Set EDGE_BACKUP_DIR or pass backup_dir=... to create_config()."
    )


def explain_invalid_additional_count_env(value: str | None) -> str:
    """
    Explain that EDGE_BACKUP_ADDITIONAL_COUNT is invalid.
    """

    return (
        f"Invalid EDGE_BACKUP_ADDITIONAL_COUNT value: {value!r}. "
        "It must be a non-negative integer number of extra archives to keep."
    )


def explain_invalid_compression_env(value: str | None) -> str:
    """
    Explain that EDGE_BACKUP_COMPRESSION is invalid.
    """

    return (
        f"Invalid EDGE_BACKUP_COMPRESSION value: {value!r}. "
        "Expected one of: 'true', 'false', '1', '0', 'yes', or 'no'."
    )


def explain_invalid_chunk_size_env(value: str | None) -> str:
    """
    Explain that EDGE_BACKUP_CHUNK_SIZE is invalid.
    """

    return (
        f"Invalid EDGE_BACKUP_CHUNK_SIZE value: {value!r}. "
        "It must be a positive integer number of bytes."
    )
