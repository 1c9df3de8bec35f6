"""Suite-wide setup and teardown around the whole (parallel) run.

Setup and teardown fail differently on purpose:

* setup is fail-fast: if the store is configured but cannot be reached or
  swept, the run cannot be trusted and is aborted;
* teardown is fail-soft: everything is logged and nothing is raised, so a
  teardown problem never overwrites the verdict of the tests themselves.

Without a ``DATABASE_URL`` both are no-ops (UI-only runs).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from portal_e2e.config import SuiteConfig, TestDataSettings
from portal_e2e.database import Database, DatabaseError, like_prefix, like_suffix
from portal_e2e.entities import ORGANIZATIONS, USERS, EntityDomain
from portal_e2e.log import log_success

logger = logging.getLogger(__name__)


class LifecycleError(Exception):
    """Suite setup could not bring the database into a clean state."""


@dataclass
class SweepReport:
    deleted: Dict[str, int] = field(default_factory=dict)
    failures: Dict[str, Exception] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def total(self) -> int:
        return sum(self.deleted.values())


def sweep_patterns(config: TestDataSettings) -> List[Tuple[EntityDomain, str]]:
    """Domains and LIKE patterns that identify test-created rows.

    Organizations go first since members reference users.
    """
    return [
        (ORGANIZATIONS, like_prefix(config.org_prefix)),
        (USERS, like_suffix("@" + config.email_domain)),
    ]


async def sweep_test_data(database: Database, config: TestDataSettings) -> SweepReport:
    """Delete every tagged row; one failing domain does not stop the others."""
    report = SweepReport()
    for domain, pattern in sweep_patterns(config):
        try:
            report.deleted[domain.name] = await database.cleanup_by_pattern(domain, pattern)
        except DatabaseError as exc:
            logger.error("Failed to sweep test %s rows (%s): %s", domain, pattern, exc)
            report.failures[domain.name] = exc
    return report


def _describe(report: SweepReport) -> str:
    return ", ".join(f"{count} {name} rows" for name, count in report.deleted.items()) or "nothing"


async def global_setup(database: Database, config: SuiteConfig) -> None:
    logger.info("Starting global setup...")
    if not config.database.is_configured:
        logger.info("No DATABASE_URL found - skipping database setup")
        log_success(logger, "Global setup complete")
        return

    await database.connect()

    if config.database.cleanup_on_start:
        logger.info("Cleaning up old test data...")
        report = await sweep_test_data(database, config.test_data)
        if not report.ok:
            failed = ", ".join(sorted(report.failures))
            raise LifecycleError(f"Could not sweep stale test data for: {failed}")
        log_success(logger, "Cleaned up %s", _describe(report))

    log_success(logger, "Global setup complete")


async def global_teardown(database: Database, config: SuiteConfig) -> bool:
    """Run the end-of-suite sweep and close the pool. Never raises.

    Returns False when some step failed (already logged), True otherwise.
    """
    logger.info("Starting global teardown...")
    if not config.database.is_configured:
        log_success(logger, "Global teardown complete (no database configured)")
        return True

    try:
        await database.connect()
    except DatabaseError as exc:
        logger.warning("Could not connect to database for teardown: %s", exc)
        log_success(logger, "Global teardown complete (database cleanup skipped)")
        return True

    ok = True
    if config.database.cleanup_on_end:
        try:
            report = await sweep_test_data(database, config.test_data)
            ok = report.ok
            log_success(logger, "Cleaned up %s", _describe(report))
        except Exception:
            logger.exception("Test data sweep failed during teardown")
            ok = False

    try:
        await database.disconnect()
    except Exception:
        logger.exception("Failed to close database connection")
        ok = False

    if ok:
        log_success(logger, "Global teardown complete")
    else:
        logger.error("Global teardown finished with errors")
    return ok


async def run_global_setup(config: SuiteConfig) -> None:
    """Setup on a dedicated gateway whose pool lives only for this call."""
    database = Database.from_settings(config.database)
    try:
        await global_setup(database, config)
    finally:
        await database.disconnect()


async def run_global_teardown(config: SuiteConfig) -> bool:
    return await global_teardown(Database.from_settings(config.database), config)
