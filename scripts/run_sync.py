#!/usr/bin/env python3
"""CLI script to run a catalog sync or a product backfill once."""

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import structlog

from catalog_sync.config import get_settings
from catalog_sync.infrastructure.database.connection import create_schema, dispose_engine
from catalog_sync.log_config import configure_logging
from catalog_sync.services.container import get_services

logger = structlog.get_logger()


async def run_sync() -> dict:
    services = get_services()
    result = await services.orchestrator.run_sync()
    return asdict(result)


async def run_backfill() -> dict:
    services = get_services()
    synced = await services.reconciler.backfill_missing()
    return {
        "products_synced": len(synced),
        "product_ids": [product.id for product in synced],
    }


async def main(command: str) -> None:
    """Main entry function."""
    configure_logging(get_settings())
    await create_schema()

    services = get_services()
    await services.client.connect()
    try:
        if command == "sync":
            logger.info("Running catalog sync")
            summary = await run_sync()
        else:
            logger.info("Running product backfill")
            summary = await run_backfill()
    finally:
        await services.client.close()
        await dispose_engine()

    print(json.dumps(summary, indent=2, default=str))
    logger.info("All operations completed successfully")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "command",
        choices=["sync", "backfill"],
        help="sync: fetch recent orders then apply retention; "
        "backfill: mirror missing products then prune",
    )
    args = parser.parse_args()
    asyncio.run(main(args.command))
