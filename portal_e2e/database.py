"""Direct database access for test setup, verification and cleanup.

The suite never goes through the application to check or remove its own
data: it talks to the store through :class:`Database`, a thin gateway over a
SQLAlchemy async engine (and therefore its connection pool).

Contract shared by every per-domain operation:

* "not found" is a normal outcome (``None``, ``False`` or ``0``), never an
  exception;
* an unreachable store raises :class:`ConnectivityError`;
* a failing statement raises :class:`QueryError`, logged with full detail and
  never retried.

Each statement commits on its own; nothing is wrapped in a long-lived
transaction.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, cast

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from portal_e2e.config import DatabaseSettings
from portal_e2e.entities import (
    ORGANIZATIONS,
    USERS,
    EntityDomain,
    OrganizationRecord,
    UserRecord,
)
from portal_e2e.log import log_success

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

_CONNECT_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)
_POSTGRES_SCHEME = re.compile(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://")


class DatabaseError(Exception):
    """Base class for gateway failures."""


class ConnectivityError(DatabaseError):
    """The store is not configured, not reachable or not connected."""


class QueryError(DatabaseError):
    """A statement failed (syntax, constraint violation, ...)."""

    def __init__(self, message: str, sql: str = "", params: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.sql = sql
        self.params = dict(params or {})


def normalize_url(url: str) -> str:
    """Rewrite any Postgres URL flavour to the asyncpg driver.

    Other URLs (``sqlite+aiosqlite://...``) are returned unchanged.
    """
    return _POSTGRES_SCHEME.sub("postgresql+asyncpg://", url, count=1)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def like_prefix(tag: str) -> str:
    """LIKE pattern matching values that start with ``tag`` literally."""
    return escape_like(tag) + "%"


def like_suffix(tag: str) -> str:
    """LIKE pattern matching values that end with ``tag`` literally."""
    return "%" + escape_like(tag)


class Database:
    """Pooled gateway to the application's database.

    One instance per worker process. ``connect()`` is lazy and idempotent and
    ``disconnect()`` can be followed by another ``connect()``.
    """

    def __init__(
        self,
        url: Optional[str],
        *,
        pool_size: int = 10,
        pool_timeout: float = 10.0,
    ) -> None:
        self.url = normalize_url(url) if url else None
        self.pool_size = pool_size
        self.pool_timeout = pool_timeout
        self._engine: Optional[AsyncEngine] = None
        self._lock: Optional[asyncio.Lock] = None

    @classmethod
    def from_settings(cls, config: DatabaseSettings) -> "Database":
        return cls(config.url, pool_size=config.pool_size, pool_timeout=config.connect_timeout)

    # ---- connection lifecycle ---------------------------------------------------
    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def safe_url(self) -> str:
        if not self.url:
            return "<not configured>"
        try:
            return make_url(self.url).render_as_string(hide_password=True)
        except ArgumentError:
            return "<invalid url>"

    def _create_engine(self) -> AsyncEngine:
        url = make_url(self.url)
        options: Dict[str, Any] = {"pool_pre_ping": True}
        if url.get_backend_name() == "postgresql":
            options.update(
                pool_size=self.pool_size,
                max_overflow=0,
                pool_timeout=self.pool_timeout,
                connect_args={"timeout": self.pool_timeout},
            )
        return create_async_engine(url, **options)

    async def connect(self) -> None:
        """Create the pool and check that the store answers."""
        if self._engine is not None:
            logger.debug("Database already connected")
            return
        if not self.url:
            raise ConnectivityError("No database URL configured (set DATABASE_URL)")
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            if self._engine is not None:
                return
            logger.info("Connecting to database %s", self.safe_url)
            try:
                engine = self._create_engine()
            except (ArgumentError, ImportError) as exc:
                raise ConnectivityError(f"Invalid database URL {self.safe_url}: {exc}") from exc
            try:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            except _CONNECT_ERRORS as exc:
                await engine.dispose()
                raise ConnectivityError(f"Could not connect to {self.safe_url}: {exc}") from exc
            self._engine = engine
        log_success(logger, "Database connected successfully")

    async def disconnect(self) -> None:
        """Release the pool; a no-op when not connected."""
        engine, self._engine = self._engine, None
        if engine is None:
            return
        await engine.dispose()
        logger.info("Database connection closed")

    async def _acquire(self) -> AsyncConnection:
        if self._engine is None:
            raise ConnectivityError("Database not connected. Call connect() first.")
        conn = self._engine.connect()
        try:
            await conn.start()
        except _CONNECT_ERRORS as exc:
            raise ConnectivityError(f"Could not acquire a connection from the pool: {exc}") from exc
        return conn

    # ---- raw access -------------------------------------------------------------
    async def query(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Row]:
        """Run one parameterized statement and return its rows as dicts.

        Values are always bound (``:name`` placeholders), never formatted into
        ``sql``. Statements without a result set return ``[]``.
        """
        conn = await self._acquire()
        try:
            async with conn.begin():
                result = await conn.execute(text(sql), dict(params or {}))
                rows = [dict(row) for row in result.mappings()] if result.returns_rows else []
        except SQLAlchemyError as exc:
            logger.error("Database query failed: %s (params=%r)", sql, params, exc_info=True)
            raise QueryError(str(exc), sql=sql, params=params) from exc
        finally:
            await conn.close()
        return rows

    # ---- per-domain operations --------------------------------------------------
    async def _delete_links(self, domain: EntityDomain, where: str, params: Mapping[str, Any]) -> int:
        table = quote_identifier(domain.table)
        id_column = quote_identifier(domain.id_column)
        removed = 0
        for link in domain.links:
            foreign_key = quote_identifier(link.foreign_key)
            rows = await self.query(
                f"DELETE FROM {quote_identifier(link.table)} "
                f"WHERE {foreign_key} IN (SELECT {id_column} FROM {table} WHERE {where}) "
                f"RETURNING {foreign_key}",
                params,
            )
            if rows:
                logger.debug("Removed %d %s rows linked to %s", len(rows), link.table, domain)
            removed += len(rows)
        return removed

    async def find_by_key(self, domain: EntityDomain, key: str) -> Optional[Row]:
        columns = ", ".join(quote_identifier(column) for column in domain.columns)
        rows = await self.query(
            f"SELECT {columns} FROM {quote_identifier(domain.table)} "
            f"WHERE {quote_identifier(domain.key_column)} = :key LIMIT 1",
            {"key": key},
        )
        return rows[0] if rows else None

    async def exists(self, domain: EntityDomain, key: str) -> bool:
        return await self.find_by_key(domain, key) is not None

    async def _delete_one(self, domain: EntityDomain, column: str, value: Any) -> bool:
        table = quote_identifier(domain.table)
        id_column = quote_identifier(domain.id_column)
        # Resolve one id first so link rows of other rows sharing the value stay put.
        found = await self.query(
            f"SELECT {id_column} AS row_id FROM {table} WHERE {quote_identifier(column)} = :value LIMIT 1",
            {"value": value},
        )
        if not found:
            return False
        params = {"row_id": found[0]["row_id"]}
        await self._delete_links(domain, f"{id_column} = :row_id", params)
        rows = await self.query(
            f"DELETE FROM {table} WHERE {id_column} = :row_id RETURNING {id_column}",
            params,
        )
        return bool(rows)

    async def delete_by_key(self, domain: EntityDomain, key: str) -> bool:
        """Delete the row identified by ``key``; False when there was none."""
        deleted = await self._delete_one(domain, domain.key_column, key)
        if deleted:
            logger.info("Deleted %s: %s", domain, key)
        return deleted

    async def delete_by_id(self, domain: EntityDomain, entity_id: Any) -> bool:
        deleted = await self._delete_one(domain, domain.id_column, entity_id)
        if deleted:
            logger.info("Deleted %s id=%s", domain, entity_id)
        return deleted

    async def cleanup_by_pattern(self, domain: EntityDomain, pattern: str) -> int:
        """Bulk delete every row whose key matches a LIKE ``pattern``.

        Only for suite-level sweeps; per-test cleanup goes through
        :meth:`delete_by_key`. Build patterns with :func:`like_prefix` or
        :func:`like_suffix` so ``%`` and ``_`` in a tag stay literal.
        """
        where = f"{quote_identifier(domain.key_column)} LIKE :pattern ESCAPE '\\'"
        params = {"pattern": pattern}
        await self._delete_links(domain, where, params)
        rows = await self.query(
            f"DELETE FROM {quote_identifier(domain.table)} WHERE {where} "
            f"RETURNING {quote_identifier(domain.id_column)}",
            params,
        )
        count = len(rows)
        logger.info("Cleaned up %d %s rows matching %r", count, domain, pattern)
        return count

    async def count(self, domain: EntityDomain) -> int:
        rows = await self.query(f"SELECT COUNT(*) AS total FROM {quote_identifier(domain.table)}")
        return int(rows[0]["total"]) if rows else 0

    async def count_by_pattern(self, domain: EntityDomain, pattern: str) -> int:
        rows = await self.query(
            f"SELECT COUNT(*) AS total FROM {quote_identifier(domain.table)} "
            f"WHERE {quote_identifier(domain.key_column)} LIKE :pattern ESCAPE '\\'",
            {"pattern": pattern},
        )
        return int(rows[0]["total"]) if rows else 0

    # ---- user / organization shortcuts ------------------------------------------
    async def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        return cast(Optional[UserRecord], await self.find_by_key(USERS, email))

    async def delete_user_by_email(self, email: str) -> bool:
        return await self.delete_by_key(USERS, email)

    async def verify_user_exists(self, email: str) -> bool:
        return await self.exists(USERS, email)

    async def cleanup_test_users(self, email_pattern: str) -> int:
        return await self.cleanup_by_pattern(USERS, email_pattern)

    async def get_user_count(self) -> int:
        return await self.count(USERS)

    async def find_organization_by_slug(self, slug: str) -> Optional[OrganizationRecord]:
        return cast(Optional[OrganizationRecord], await self.find_by_key(ORGANIZATIONS, slug))

    async def delete_organization_by_slug(self, slug: str) -> bool:
        return await self.delete_by_key(ORGANIZATIONS, slug)

    async def verify_organization_exists(self, slug: str) -> bool:
        return await self.exists(ORGANIZATIONS, slug)

    async def cleanup_test_organizations(self, slug_pattern: str) -> int:
        return await self.cleanup_by_pattern(ORGANIZATIONS, slug_pattern)

    async def get_organization_count(self) -> int:
        return await self.count(ORGANIZATIONS)
