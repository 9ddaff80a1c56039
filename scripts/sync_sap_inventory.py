"""Refresh the SAP inventory snapshot from the command line.

Run this from a machine on the plant network (the SAP endpoint is not
reachable from outside), e.g. from cron every 15 minutes.

Usage:
    python -m scripts.sync_sap_inventory
    python -m scripts.sync_sap_inventory --batch-size 250 --no-mirror

Requires: DATABASE_URL (and optionally SAP_ENDPOINT) env vars.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from packportal.config import INSERT_BATCH_SIZE
from packportal.db import close_db, get_pool, init_db
from packportal.models.inventory import SyncResult
from packportal.services.sap_sync import SapSyncError, sync_sap_inventory


async def run(batch_size: int, mirror: bool) -> SyncResult:
    await init_db()
    try:
        get_pool()
        return await sync_sap_inventory(batch_size=batch_size, mirror=mirror)
    finally:
        await close_db()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Sync the SAP inventory snapshot into PostgreSQL")
    parser.add_argument("--batch-size", type=int, default=INSERT_BATCH_SIZE, help="Rows per insert batch")
    parser.add_argument(
        "--no-mirror",
        action="store_true",
        help="Skip refreshing available pallets in inventory_pallets",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    print("Syncing SAP inventory...")
    try:
        result = asyncio.run(run(args.batch_size, not args.no_mirror))
    except SapSyncError as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        return 1
    except RuntimeError as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        return 2

    print(f"  Inserted {result.count} rows (synced_at {result.synced_at.isoformat()})")
    if not args.no_mirror:
        if result.mirror_error:
            print(f"  Mirror pass failed: {result.mirror_error}")
        else:
            print(f"  Mirrored {result.mirrored} available pallets")
    print("\nDone!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
