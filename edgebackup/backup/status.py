# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Status - Lock-guarded status shared by all callers of one engine.

Every check that gates a mutating operation goes through
StatusGuard.try_transition(), so two callers can never both observe
"configured" and start writing. transition_if() reports the resulting
status, which cannot tell the caller who made the move.
"""

import threading
from enum import Enum


class BackupStatus(str, Enum):
    """Lifecycle status of the backup engine."""

    UNCONFIGURED = "unconfigured"  # Derived: destination directory unusable
    CONFIGURED = "configured"  # Idle, ready for a backup
    RUNNING_BACKUP = "running_backup"  # An archive is being written
    ERROR = "error"  # Last backup failed; a new attempt may start


class StatusGuard:
    """
    Holds the engine status behind a single lock.

    The lock is never held across an await.
    """

    def __init__(self, initial: BackupStatus = BackupStatus.CONFIGURED):
        if initial == BackupStatus.UNCONFIGURED:
            raise ValueError("unconfigured is derived and cannot be stored")
        self._lock = threading.Lock()
        self._status = initial

    def transition_if(self, to: BackupStatus, from_: BackupStatus) -> BackupStatus:
        """
        Atomically move to ``to`` if the current status is ``from_``.

        Returns:
            The status after the call; compare it with ``to`` to learn
            whether the transition happened
        """
        with self._lock:
            if self._status == from_:
                self._status = to
            return self._status

    def try_transition(self, to: BackupStatus, from_: BackupStatus) -> bool:
        """
        Atomically move to ``to`` if the current status is ``from_``.

        Returns:
            True only if this call made the transition. A caller that finds
            the status already at ``to`` gets False.
        """
        with self._lock:
            if self._status != from_:
                return False
            self._status = to
            return True

    @property
    def current(self) -> BackupStatus:
        """Snapshot for reporting. Never use it to decide whether to start work."""
        with self._lock:
            return self._status

    def __repr__(self) -> str:
        return f"StatusGuard({self.current.value!r})"
