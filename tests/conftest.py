"""Fixtures for the core tests: a throwaway SQLite database with the app schema.

Foreign keys are enforced on every connection so that deletion order is
actually checked, as it would be on Postgres.
"""
import asyncio
import uuid
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.engine import Engine

from portal_e2e.database import Database

SCHEMA = (
    """CREATE TABLE "user" (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        name TEXT,
        surname TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE organization (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE member (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES "user"(id),
        organization_id TEXT NOT NULL REFERENCES organization(id)
    )""",
    """CREATE TABLE invitation (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL,
        organization_id TEXT NOT NULL REFERENCES organization(id)
    )""",
    'CREATE TABLE session (id TEXT PRIMARY KEY, user_id TEXT NOT NULL REFERENCES "user"(id))',
    'CREATE TABLE account (id TEXT PRIMARY KEY, user_id TEXT NOT NULL REFERENCES "user"(id))',
    "CREATE TABLE client (id TEXT PRIMARY KEY, display_name TEXT NOT NULL)",
    "CREATE TABLE suppliers (id TEXT PRIMARY KEY, display_name TEXT NOT NULL)",
    "CREATE TABLE supplier_groups (id TEXT PRIMARY KEY, display_name TEXT NOT NULL)",
    """CREATE TABLE suppliers_to_supplier_groups (
        supplier_id TEXT NOT NULL REFERENCES suppliers(id),
        supplier_group_id TEXT NOT NULL REFERENCES supplier_groups(id)
    )""",
)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if "sqlite" not in type(dbapi_connection).__module__:
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _new_id() -> str:
    return uuid.uuid4().hex


class Seeder:
    """Inserts rows the way the application would after a UI action."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def user(self, email: str, name: str = "Test", surname: str = "User") -> str:
        user_id = _new_id()
        await self.database.query(
            'INSERT INTO "user" (id, email, name, surname) VALUES (:id, :email, :name, :surname)',
            {"id": user_id, "email": email, "name": name, "surname": surname},
        )
        return user_id

    async def organization(self, slug: str, name: Optional[str] = None) -> str:
        org_id = _new_id()
        await self.database.query(
            "INSERT INTO organization (id, name, slug) VALUES (:id, :name, :slug)",
            {"id": org_id, "name": name or slug, "slug": slug},
        )
        return org_id

    async def member(self, user_id: str, organization_id: str) -> None:
        await self.database.query(
            "INSERT INTO member (id, user_id, organization_id) VALUES (:id, :user_id, :org_id)",
            {"id": _new_id(), "user_id": user_id, "org_id": organization_id},
        )

    async def session(self, user_id: str) -> None:
        await self.database.query(
            "INSERT INTO session (id, user_id) VALUES (:id, :user_id)",
            {"id": _new_id(), "user_id": user_id},
        )

    async def supplier_in_group(self, supplier: str, group: str) -> None:
        supplier_id, group_id = _new_id(), _new_id()
        await self.database.query(
            "INSERT INTO suppliers (id, display_name) VALUES (:id, :name)",
            {"id": supplier_id, "name": supplier},
        )
        await self.database.query(
            "INSERT INTO supplier_groups (id, display_name) VALUES (:id, :name)",
            {"id": group_id, "name": group},
        )
        await self.database.query(
            "INSERT INTO suppliers_to_supplier_groups (supplier_id, supplier_group_id) "
            "VALUES (:supplier_id, :group_id)",
            {"supplier_id": supplier_id, "group_id": group_id},
        )


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}"


@pytest.fixture
def unreachable_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nested' / 'portal.db'}"


@pytest_asyncio.fixture
async def database(sqlite_url):
    db = Database(sqlite_url)
    await db.connect()
    for statement in SCHEMA:
        await db.query(statement)
    yield db
    await db.disconnect()


@pytest.fixture
def seed(database) -> Seeder:
    return Seeder(database)


async def _prepare(url: str) -> None:
    db = Database(url)
    await db.connect()
    try:
        for statement in SCHEMA:
            await db.query(statement)
        seeder = Seeder(db)
        owner = await seeder.user("test-owner-1-abcd@example.test")
        await seeder.user("test-other-2-efgh@example.test")
        await seeder.user("real.person@company.com")
        org_id = await seeder.organization("test-org-1-wxyz-acme")
        await seeder.member(owner, org_id)
    finally:
        await db.disconnect()


@pytest.fixture
def populated_url(sqlite_url) -> str:
    """SQLite database with two tagged users, one real user and one tagged org.

    Synchronous so that code calling ``asyncio.run`` itself can use it.
    """
    asyncio.run(_prepare(sqlite_url))
    return sqlite_url


@pytest.fixture
def suite_env(monkeypatch, sqlite_url):
    """Environment for a SuiteConfig pointing at the test database."""
    for key in ("DB_CLEANUP_ON_START", "DB_CLEANUP_ON_END", "TEST_EMAIL_DOMAIN", "TEST_ORG_PREFIX"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DATABASE_URL", sqlite_url)
    return monkeypatch
