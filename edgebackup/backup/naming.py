# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Archive Naming - Encode and decode backup archive file names.

Archive names have the form::

    Edge-<owner_id>-backup-<token>.zip

where ``<token>`` is either a UTC timestamp formatted as
``YYYYMMDDTHHmmss`` (archives written by the engine) or an arbitrary key
supplied by a caller looking an archive up. All functions here are pure.
"""

import re
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Mapping, NamedTuple

ARCHIVE_PREFIX = "Edge"
ARCHIVE_EXTENSION = "zip"

# strftime form of YYYYMMDD'T'HHmmss
BACKUP_KEY_DATE_FORMAT = "%Y%m%dT%H%M%S"

# Property carrying a full backup key on import, e.g. "Edge-7-backup-20210101T000000"
BACKUP_KEY_PROP = "BackupKey"

# Single fixed-structure match; the key group is greedy so dashes in keys survive
_ARCHIVE_NAME_RE = re.compile(
    rf"^{re.escape(ARCHIVE_PREFIX)}-(\d+)-backup-(.+)\.{re.escape(ARCHIVE_EXTENSION)}$"
)

# Owner id and timestamp embedded anywhere in a string (used for props)
_OWNER_AND_DATE_RE = re.compile(
    rf"{re.escape(ARCHIVE_PREFIX)}-(\d+)-backup-(\d{{8}}T\d{{6}})"
)

_TOKEN_RE = re.compile(r"^\d{8}T\d{6}$")


class DecodedArchiveName(NamedTuple):
    """Owner id and key token recovered from an archive file name."""

    owner_id: int
    key: str


@dataclass(frozen=True)
class ArchiveName:
    """An encoded archive file name together with its parts."""

    filename: str
    owner_id: int
    key: str


def to_utc_seconds(ts: datetime) -> datetime:
    """
    Normalize a timestamp to UTC with whole-second precision.

    Naive datetimes are taken to already be in UTC.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC).replace(microsecond=0)


def format_backup_token(ts: datetime) -> str:
    """Format a timestamp as a fixed-width, sortable backup key."""
    return to_utc_seconds(ts).strftime(BACKUP_KEY_DATE_FORMAT)


def parse_backup_token(token: str) -> datetime | None:
    """
    Parse a backup key produced by format_backup_token().

    Returns:
        UTC datetime, or None if the token is not a timestamp
    """
    if not _TOKEN_RE.match(token):
        return None
    try:
        return datetime.strptime(token, BACKUP_KEY_DATE_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        return None


def encode_archive_name_for_key(owner_id: int | None, key: str) -> str:
    """
    Build the archive file name for a logical backup key.

    Args:
        owner_id: Device identifier (None or 0 when unknown)
        key: Key token, usually a formatted timestamp

    Returns:
        Archive file name
    """
    return f"{ARCHIVE_PREFIX}-{owner_id or 0}-backup-{key}.{ARCHIVE_EXTENSION}"


def encode_archive_name(owner_id: int | None, ts: datetime) -> ArchiveName:
    """
    Build the archive file name for a backup taken at ``ts``.

    Args:
        owner_id: Device identifier (None or 0 when unknown)
        ts: Backup timestamp (truncated to whole seconds, UTC)

    Returns:
        ArchiveName with the file name and the key token it embeds
    """
    key = format_backup_token(ts)
    return ArchiveName(
        filename=encode_archive_name_for_key(owner_id, key),
        owner_id=owner_id or 0,
        key=key,
    )


def decode_archive_name(filename: str) -> DecodedArchiveName | None:
    """
    Split an archive file name into owner id and key token.

    Returns:
        DecodedArchiveName, or None if the name does not follow the grammar
    """
    m = _ARCHIVE_NAME_RE.match(filename)
    if not m:
        return None
    return DecodedArchiveName(owner_id=int(m.group(1)), key=m.group(2))


def archive_key(filename: str) -> str:
    """Return the key token of an archive name, or the name itself if it does not decode."""
    decoded = decode_archive_name(filename)
    return decoded.key if decoded else filename


def matches_owner(filename: str, owner_id: int | None, strict: bool = False) -> bool:
    """
    Check whether a file name is an archive belonging to ``owner_id``.

    An unknown owner (None or 0) matches archives of every owner unless
    ``strict`` is set, in which case only owner 0 archives match.
    """
    decoded = decode_archive_name(filename)
    if decoded is None:
        return False
    if strict:
        return decoded.owner_id == (owner_id or 0)
    return not owner_id or decoded.owner_id == owner_id


def matches_key(filename: str, key: str) -> bool:
    """Substring match used when the owner id is unknown."""
    return key in filename


def owner_id_from_props(props: Mapping[str, str] | None) -> int:
    """
    Extract an owner id from the backup key carried in ``props``.

    Returns:
        Owner id, or 0 when props carry no usable key
    """
    key = props.get(BACKUP_KEY_PROP) if props else None
    if key:
        m = _OWNER_AND_DATE_RE.search(key)
        if m:
            return int(m.group(1))
    return 0


def date_from_props(
    date: datetime | None,
    props: Mapping[str, str] | None,
    now: datetime | None = None,
) -> datetime:
    """
    Resolve the date an imported backup should be filed under.

    Preference order: explicit ``date``, the timestamp encoded in the
    BACKUP_KEY_PROP property, then ``now``.
    """
    if date is not None:
        return to_utc_seconds(date)
    key = props.get(BACKUP_KEY_PROP) if props else None
    if key:
        m = _OWNER_AND_DATE_RE.search(key)
        if m:
            parsed = parse_backup_token(m.group(2))
            if parsed is not None:
                return parsed
    return to_utc_seconds(now or datetime.now(UTC))
