"""Hierarchy storage backends.

Provides abstract base class and implementations for PostgreSQL and SQLite.
"""

import logging

from taxoclass.exceptions import ValidationError
from taxoclass.store.base import HierarchyStore

logger = logging.getLogger(__name__)

POSTGRES_PREFIXES = ('postgresql://', 'postgres://')
SQLITE_EXTENSIONS = ('.db', '.sqlite', '.sqlite3')


def get_hierarchy_store(locator: str) -> HierarchyStore:
    """Factory function to create appropriate hierarchy store.

    Detects backend type from the locator:
    - postgresql:// or postgres:// -> PostgresHierarchyStore
    - ':memory:' or file path with .db, .sqlite, .sqlite3 -> SqliteHierarchyStore

    Args:
        locator: Database connection string or file path

    Returns:
        Appropriate HierarchyStore implementation

    Raises:
        ValidationError: If backend type cannot be determined
        ImportError: If required dependencies are not available
    """
    if not isinstance(locator, str) or not locator.strip():
        raise ValidationError(
            "store locator must be a non-empty string",
            value=locator,
            expected_type="non-empty string"
        )

    if locator.startswith(POSTGRES_PREFIXES):
        from taxoclass.store.postgres import PostgresHierarchyStore
        logger.info("Using PostgreSQL hierarchy store")
        return PostgresHierarchyStore(locator)

    if locator == ':memory:' or locator.lower().endswith(SQLITE_EXTENSIONS):
        from taxoclass.store.sqlite import SqliteHierarchyStore
        logger.info(f"Using SQLite hierarchy store: {locator}")
        return SqliteHierarchyStore(locator)

    raise ValidationError(
        f"Cannot determine store type from locator: {locator}. "
        "Use 'postgresql://...' for PostgreSQL or a file path ending in .db/.sqlite for SQLite.",
        value=locator,
        expected_type="postgresql:// URI or SQLite file path"
    )


__all__ = [
    'HierarchyStore',
    'get_hierarchy_store',
]
