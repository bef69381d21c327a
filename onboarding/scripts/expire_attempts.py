#!/usr/bin/env python3
"""
Close overdue attempts.

Submits every in-progress attempt whose time limit has run out, for
candidates who never came back to trigger the expiry themselves. Meant to
be run periodically (cron, a scheduler job).

Usage:
    python -m onboarding.scripts.expire_attempts [--database-url URL]
"""

import argparse
import asyncio
import sys

from onboarding.assessments.services import AssessmentServices
from onboarding.common.logger import app_logger
from onboarding.database.init_db import close_database, get_session_factory, initialize_database

logger = app_logger.getChild("scripts.expire_attempts")


async def async_main(database_url=None, clock=None):
    """Run one expiry sweep and return the IDs of the closed attempts."""
    try:
        await initialize_database(database_url)
        services = AssessmentServices(get_session_factory(), clock)
        closed = await services.attempts.expire_overdue()
        logger.info(f"Expiry sweep closed {len(closed)} attempts")
        return closed
    finally:
        await close_database()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Submit in-progress attempts whose time limit has passed")
    parser.add_argument("--database-url", default=None, help="Database URL (defaults to settings)")
    args = parser.parse_args(argv)

    try:
        asyncio.run(async_main(args.database_url))
    except Exception as e:
        logger.error(f"Error expiring attempts: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
