"""pytest wiring for the browser suite.

Session hooks run the suite-wide setup/teardown once, in the controlling
process only (pytest-xdist workers carry ``workerinput`` and skip them).
Fixtures give each test a tracker that deletes whatever it registered, a
shared per-worker database gateway and a configured Playwright page.
"""
import asyncio
import logging

import pytest
import pytest_asyncio

from portal_e2e.cleanup import CleanupTracker
from portal_e2e.config import settings
from portal_e2e.database import ConnectivityError, Database, DatabaseError
from portal_e2e.generators import EntityFactory, factory
from portal_e2e.lifecycle import LifecycleError, run_global_setup, run_global_teardown
from portal_e2e.log import log_success
from portal_e2e.playwright_client import PlaywrightClient

logger = logging.getLogger(__name__)


def _is_worker(config: pytest.Config) -> bool:
    return hasattr(config, "workerinput")


def pytest_sessionstart(session):
    if _is_worker(session.config):
        return
    try:
        asyncio.run(run_global_setup(settings))
    except (DatabaseError, LifecycleError) as exc:
        logger.error("Global setup failed: %s", exc)
        pytest.exit(f"Global setup failed: {exc}", returncode=pytest.ExitCode.INTERNAL_ERROR)


def pytest_sessionfinish(session, exitstatus):
    if _is_worker(session.config):
        return
    asyncio.run(run_global_teardown(settings))


# ============================================================================
# Database fixtures
# ============================================================================

@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def database():
    """Gateway shared by every test of this worker process."""
    db = Database.from_settings(settings.database)
    if settings.database.is_configured:
        try:
            await db.connect()
        except ConnectivityError as exc:
            logger.warning("Could not connect to database: %s", exc)
    else:
        logger.info("Skipping database connection - no DATABASE_URL")
    yield db
    await db.disconnect()


@pytest.fixture
def require_database(database):
    """Skip tests that assert persistence when no database is reachable."""
    if not database.is_connected:
        pytest.skip("Database not available - set DATABASE_URL to verify persistence")
    return database


@pytest_asyncio.fixture(loop_scope="session")
async def test_cleanup(database):
    """Tracker for entities the test creates; drained after the test.

    Usage:
        async def test_signup(page, entity_factory, test_cleanup):
            user = entity_factory.generate_user()
            ...  # submit the sign-up form
            test_cleanup.register_user(user.email)
    """
    tracker = CleanupTracker(database)
    yield tracker
    await tracker.cleanup()


@pytest.fixture
def entity_factory() -> EntityFactory:
    return factory


# ============================================================================
# Browser fixtures
# ============================================================================

@pytest_asyncio.fixture(loop_scope="session")
async def playwright_client():
    async with PlaywrightClient() as client:
        yield client


@pytest_asyncio.fixture(loop_scope="session")
async def page(playwright_client):
    return playwright_client.page


@pytest_asyncio.fixture(loop_scope="session")
async def authenticated_page(page):
    """Signs in as the configured test user and lands on the dashboard."""
    if not settings.has_test_user:
        pytest.skip("TEST_USER_EMAIL / TEST_USER_PASSWORD not set")

    logger.info("Setting up authenticated session")
    await page.goto("/sign-in")
    await page.fill("input[name='email']", settings.test_user_email)
    await page.fill("input[name='password']", settings.test_user_password)
    await page.click("button[type='submit']")
    await page.wait_for_url("**/dashboard", timeout=settings.timeouts.medium)
    log_success(logger, "User authenticated and on dashboard")
    return page
