"""Manual test-data cleanup, outside the test runner.

    portal-e2e-cleanup                 # sweep everything tagged as test data
    portal-e2e-cleanup --dry-run       # only count what would be removed

Exit status: 0 on success, 1 when any step failed, 2 without a database URL.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from portal_e2e.config import SuiteConfig
from portal_e2e.database import Database, DatabaseError
from portal_e2e.entities import ORGANIZATIONS, USERS
from portal_e2e.lifecycle import sweep_patterns, sweep_test_data
from portal_e2e.log import configure_logging, log_success

logger = logging.getLogger("portal_e2e.cleanup")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portal-e2e-cleanup",
        description="Delete users and organizations created by the end-to-end suite.",
    )
    parser.add_argument(
        "--database-url",
        help="Database to clean (default: $DATABASE_URL)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Count matching rows without deleting them",
    )
    return parser


async def _run(database: Database, config: SuiteConfig, dry_run: bool) -> bool:
    await database.connect()
    try:
        if dry_run:
            for domain, pattern in sweep_patterns(config.test_data):
                count = await database.count_by_pattern(domain, pattern)
                print(f"Would delete {count} test {domain.name} rows ({pattern})")
            ok = True
        else:
            report = await sweep_test_data(database, config.test_data)
            for name, count in report.deleted.items():
                print(f"Deleted {count} test {name} rows")
            for name, exc in report.failures.items():
                print(f"FAILED to delete test {name} rows: {exc}", file=sys.stderr)
            ok = report.ok

        print("Final database state:")
        print(f"  Total users: {await database.count(USERS)}")
        print(f"  Total organizations: {await database.count(ORGANIZATIONS)}")
        return ok
    finally:
        await database.disconnect()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    config = SuiteConfig()

    url = args.database_url or config.database.url
    if not url:
        logger.error("No database configured: pass --database-url or set DATABASE_URL")
        return 2

    database = Database(url, pool_size=config.database.pool_size, pool_timeout=config.database.connect_timeout)
    logger.info("Starting manual test data cleanup...")
    try:
        ok = asyncio.run(_run(database, config, args.dry_run))
    except DatabaseError:
        logger.exception("Cleanup failed")
        return 1

    if not ok:
        logger.error("Cleanup finished with errors")
        return 1
    log_success(logger, "Cleanup complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
