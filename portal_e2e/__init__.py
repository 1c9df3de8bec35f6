"""End-to-end suite helpers: tagged test data, direct database access and cleanup."""

from .cleanup import CleanupReport, CleanupTracker
from .database import ConnectivityError, Database, DatabaseError, QueryError
from .generators import EntityFactory, OrganizationData, UserData, generate_slug
from .lifecycle import LifecycleError, global_setup, global_teardown

__all__ = [
    "CleanupReport",
    "CleanupTracker",
    "ConnectivityError",
    "Database",
    "DatabaseError",
    "EntityFactory",
    "LifecycleError",
    "OrganizationData",
    "QueryError",
    "UserData",
    "generate_slug",
    "global_setup",
    "global_teardown",
]
