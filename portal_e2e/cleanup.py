"""Per-test registry of created entities, drained once at teardown.

A test registers exactly the keys it caused to be created, so cleanup never
reaches beyond its own data and parallel workers sharing one database stay
out of each other's way. Draining is best effort: every registered entity is
attempted, failures are logged and recorded, and the registry is always left
empty.
"""
from __future__ import annotations

import enum
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from portal_e2e.database import ConnectivityError, Database, DatabaseError
from portal_e2e.entities import (
    CLIENTS,
    ORGANIZATIONS,
    SUPPLIER_GROUPS,
    SUPPLIERS,
    USERS,
    EntityDomain,
)
from portal_e2e.log import log_success

logger = logging.getLogger(__name__)


class TrackerState(enum.Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    DRAINING = "draining"


@dataclass(frozen=True)
class CleanupEntry:
    domain: EntityDomain
    key: str


@dataclass
class CleanupReport:
    deleted: List[CleanupEntry] = field(default_factory=list)
    missing: List[CleanupEntry] = field(default_factory=list)
    failed: List[Tuple[CleanupEntry, Exception]] = field(default_factory=list)
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed


class CleanupTracker:
    """Tracks what one test created and deletes it when the test ends."""

    def __init__(self, database: Database, enabled: Optional[bool] = None) -> None:
        self.database = database
        self.enabled = database.is_configured if enabled is None else enabled
        self.state = TrackerState.IDLE
        self._entries: List[CleanupEntry] = []

    def register(self, domain: EntityDomain, key: str) -> None:
        self._entries.append(CleanupEntry(domain, key))
        self.state = TrackerState.TRACKING
        logger.debug("Registered %s for cleanup: %s", domain, key)

    def register_user(self, email: str) -> None:
        self.register(USERS, email)

    def register_organization(self, slug: str) -> None:
        self.register(ORGANIZATIONS, slug)

    def register_client(self, display_name: str) -> None:
        self.register(CLIENTS, display_name)

    def register_supplier(self, display_name: str) -> None:
        self.register(SUPPLIERS, display_name)

    def register_supplier_group(self, display_name: str) -> None:
        self.register(SUPPLIER_GROUPS, display_name)

    @property
    def pending(self) -> List[CleanupEntry]:
        return list(self._entries)

    def stats(self) -> Dict[str, int]:
        return dict(Counter(entry.domain.name for entry in self._entries))

    def _reset(self) -> None:
        self._entries = []
        self.state = TrackerState.IDLE

    async def cleanup(self) -> CleanupReport:
        """Delete everything registered, children before parents.

        Never raises for database problems: a missing configuration or an
        unreachable store skips the pass, and individual delete failures are
        logged and collected in the report.
        """
        report = CleanupReport()
        if not self.enabled:
            logger.info("Skipping database cleanup - no DATABASE_URL configured")
            report.skipped = True
            self._reset()
            return report

        if not self._entries:
            self._reset()
            return report

        self.state = TrackerState.DRAINING
        try:
            logger.info("Starting test cleanup of %d entities...", len(self._entries))
            try:
                await self.database.connect()
            except ConnectivityError as exc:
                logger.warning("Could not connect to database for cleanup: %s", exc)
                report.skipped = True
                return report

            # sorted() is stable, so registration order holds within a domain.
            for entry in sorted(self._entries, key=lambda e: e.domain.cleanup_order):
                try:
                    deleted = await self.database.delete_by_key(entry.domain, entry.key)
                except DatabaseError as exc:
                    logger.warning("Failed to cleanup %s %s: %s", entry.domain, entry.key, exc)
                    report.failed.append((entry, exc))
                    continue
                if deleted:
                    report.deleted.append(entry)
                else:
                    logger.debug("Nothing to clean up for %s %s", entry.domain, entry.key)
                    report.missing.append(entry)

            summary = ", ".join(f"{count} {name}" for name, count in sorted(self.stats().items()))
            if report.failed:
                logger.warning(
                    "Cleanup finished with %d failures (%s)", len(report.failed), summary
                )
            else:
                log_success(logger, "Cleanup complete: %s", summary)
        finally:
            self._reset()
        return report
