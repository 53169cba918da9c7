# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example: back up device settings and key material, then restore them.

Run with:
    python -m examples.basic_backup

Environment variables:
    EDGE_BACKUP_DIR: Directory for archives (default: ./edge_backups)
    EDGE_BACKUP_ADDITIONAL_COUNT: Older archives to keep (default: 1)
    EDGE_NODE_ID: Owner id of this device (default: unknown)
"""

import asyncio
import os
from pathlib import Path

import structlog

from edgebackup import (
    BytesBackupResource,
    FileBackupResource,
    available_backups,
    create_config_from_env,
    initialize_backup_state,
    open_backup_resources,
    perform_backup,
)

logger = structlog.get_logger()


def node_id() -> int | None:
    value = os.getenv("EDGE_NODE_ID")
    return int(value) if value else None


def settings_resources(settings_dir: Path):
    """Resources contributed by the settings store."""
    for path in sorted(settings_dir.glob("*.csv")):
        yield FileBackupResource(f"settings/{path.name}", path, provider_key="settings")


async def main() -> None:
    config = create_config_from_env()
    state = await initialize_backup_state(config, owner_id_supplier=node_id)

    settings_dir = Path("./settings")
    settings_dir.mkdir(exist_ok=True)
    (settings_dir / "settings.csv").write_text("key,value\nupload.interval,60\n")

    def resources():
        yield from settings_resources(settings_dir)
        yield BytesBackupResource("keys/node.pem", b"-----BEGIN CERTIFICATE-----\n", provider_key="keys")

    backup = await perform_backup(config, state, resources())
    if backup is None:
        logger.info("example_backup_skipped")
        return

    logger.info("example_backup_created", key=backup.key, size=backup.size_bytes)

    for available in await available_backups(config, state):
        logger.info("example_backup_available", key=available.key, date=available.date.isoformat())

    async with open_backup_resources(config, state, backup) as restored:
        for resource in restored:
            data = await resource.read_bytes()
            logger.info(
                "example_resource_restored",
                backup_path=resource.backup_path,
                provider_key=resource.provider_key,
                size=len(data),
            )


if __name__ == "__main__":
    asyncio.run(main())
