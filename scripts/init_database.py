#!/usr/bin/env python3
"""
Initialize MongoDB collections, indexes and schema validation.

Reads the collection policy from a JSON settings file or from MONGO_*
environment variables (.env supported) and applies it. Safe to re-run:
existing collections and indexes are left alone.

Usage:
    python scripts/init_database.py
    python scripts/init_database.py --settings config/mongo.json
    python scripts/init_database.py --dry-run  # Show the policy without connecting
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from repokit.common.config import MongoSettings, get_settings
from repokit.common.logger import setup_logging
from repokit.initializer import DatabaseInitializer, build_index_model, validate_index
from repokit.repositories import get_client, reset_client

logger = logging.getLogger(__name__)


def describe(settings: MongoSettings) -> None:
    """Log the collections and indexes that would be applied."""
    logger.info(settings.summary())
    for name, config in settings.collections.items():
        validation = "yes" if config.validation and config.validation.json_schema else "no"
        logger.info(f"  {name}: {len(config.indexes)} index(es), validation={validation}")
        for index_name, index in config.indexes.items():
            if not validate_index(index_name, index):
                continue
            keys, options = build_index_model(index_name, index)
            logger.info(f"    {index_name}: {keys} unique={options['unique']}")


async def run(settings: MongoSettings) -> None:
    try:
        await DatabaseInitializer(get_client(settings), settings).initialize()
    finally:
        await reset_client()


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Apply MongoDB collection, index and validation policy"
    )
    parser.add_argument(
        "--settings",
        type=Path,
        help="JSON settings file (defaults to MONGO_* environment variables)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the policy without connecting to MongoDB",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    setup_logging("DEBUG" if args.verbose else "INFO")

    try:
        settings = MongoSettings.from_file(args.settings) if args.settings else get_settings()
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Failed to load settings: {e}")
        return 1

    describe(settings)
    if args.dry_run:
        return 0

    try:
        settings.validate_required()
        asyncio.run(run(settings))
    except Exception as e:
        logger.error(f"Initialization failed: {e}")
        return 1

    logger.info("Done")
    return 0


if __name__ == "__main__":
    sys.exit(main())
