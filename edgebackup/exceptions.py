# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Edge Backup Exceptions - Custom exceptions for the edgebackup package.
"""


class EdgeBackupError(Exception):
    """Base exception for all edgebackup errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(EdgeBackupError):
    """Raised when configuration is invalid or the backup directory is unusable."""

    pass


class BackupError(EdgeBackupError):
    """Raised when writing a backup archive fails."""

    pass


class RestoreError(EdgeBackupError):
    """Raised when reading or exporting a backup archive fails."""

    pass
