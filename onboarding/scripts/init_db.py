#!/usr/bin/env python3
"""
Database initialization script.

Creates the onboarding schema, either directly from the ORM metadata or by
running the alembic migrations.

Usage:
    python -m onboarding.scripts.init_db [--database-url URL] [--migrate]
"""

import argparse
import asyncio
import sys

from onboarding.common.logger import app_logger
from onboarding.database.init_db import (
    close_database, create_schema, initialize_database, run_migrations
)

logger = app_logger.getChild("scripts.init_db")


async def async_main(database_url=None):
    """Create every table from the ORM metadata."""
    try:
        await initialize_database(database_url)
        await create_schema()
        logger.info("Database initialized successfully")
    finally:
        await close_database()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Initialize the onboarding assessment database")
    parser.add_argument("--database-url", default=None, help="Database URL (defaults to settings)")
    parser.add_argument("--migrate", action="store_true", help="Run alembic migrations instead of create_all")
    args = parser.parse_args(argv)

    try:
        if args.migrate:
            run_migrations(args.database_url)
        else:
            asyncio.run(async_main(args.database_url))
    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
