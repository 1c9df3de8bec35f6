"""Tables the suite reads and deletes, described declaratively.

The application owns the schema; the suite only needs to know, per kind of
entity, which column identifies a row and which link tables reference it.
Link rows are removed before the owning row so foreign keys never block a
delete.

The link tables below (``member``, ``invitation``, ``session``, ``account``,
``suppliers_to_supplier_groups``) are assumed to exist in the application
schema. If a deployment lacks one, every delete of the owning domain fails
with ``QueryError`` before the owner row is touched, and a start-of-run sweep
with ``DB_CLEANUP_ON_START`` aborts the suite. Adjust ``links`` here to match the
schema being tested.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, TypedDict


@dataclass(frozen=True)
class LinkTable:
    """A table whose ``foreign_key`` column points at the owner's ``id``."""

    table: str
    foreign_key: str


@dataclass(frozen=True)
class EntityDomain:
    name: str
    table: str
    key_column: str
    columns: Tuple[str, ...]
    # Lower values are deleted first during per-test cleanup.
    cleanup_order: int = 0
    links: Tuple[LinkTable, ...] = ()
    id_column: str = "id"

    def __str__(self) -> str:
        return self.name


class UserRecord(TypedDict):
    id: str
    email: str
    name: Optional[str]
    surname: Optional[str]
    created_at: Optional[datetime]


class OrganizationRecord(TypedDict):
    id: str
    name: str
    slug: str
    created_at: Optional[datetime]


CLIENTS = EntityDomain(
    name="client",
    table="client",
    key_column="display_name",
    columns=("id", "display_name"),
    cleanup_order=0,
)

SUPPLIERS = EntityDomain(
    name="supplier",
    table="suppliers",
    key_column="display_name",
    columns=("id", "display_name"),
    cleanup_order=0,
    links=(LinkTable("suppliers_to_supplier_groups", "supplier_id"),),
)

SUPPLIER_GROUPS = EntityDomain(
    name="supplier_group",
    table="supplier_groups",
    key_column="display_name",
    columns=("id", "display_name"),
    cleanup_order=0,
    links=(LinkTable("suppliers_to_supplier_groups", "supplier_group_id"),),
)

ORGANIZATIONS = EntityDomain(
    name="organization",
    table="organization",
    key_column="slug",
    columns=("id", "name", "slug", "created_at"),
    cleanup_order=10,
    links=(
        LinkTable("member", "organization_id"),
        LinkTable("invitation", "organization_id"),
    ),
)

USERS = EntityDomain(
    name="user",
    table="user",
    key_column="email",
    columns=("id", "email", "name", "surname", "created_at"),
    cleanup_order=20,
    links=(
        LinkTable("member", "user_id"),
        LinkTable("session", "user_id"),
        LinkTable("account", "user_id"),
    ),
)

ALL_DOMAINS: Tuple[EntityDomain, ...] = (CLIENTS, SUPPLIERS, SUPPLIER_GROUPS, ORGANIZATIONS, USERS)
