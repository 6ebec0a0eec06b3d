"""PostgreSQL backend for hierarchy storage.

Uses psycopg2 with an autocommit connection; parents are stored as JSONB.
"""

import logging
import threading
from typing import Optional

from taxoclass.exceptions import StorageError
from taxoclass.models import DEAD_END_SENTINEL, IGNORED_SENTINEL, HierarchyNode
from taxoclass.store.base import HierarchyStore

try:
    import psycopg2
    import psycopg2.extras
    _PSYCOPG2_AVAILABLE = True
except ImportError:
    _PSYCOPG2_AVAILABLE = False

logger = logging.getLogger(__name__)


_CREATE_HIERARCHY_SCHEMA = """
CREATE TABLE IF NOT EXISTS wikidata_hierarchy (
    qid TEXT PRIMARY KEY,
    name TEXT DEFAULT '',
    parents JSONB,
    category TEXT DEFAULT '',
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_wh_category ON wikidata_hierarchy (category);
"""


class PostgresHierarchyStore(HierarchyStore):
    """PostgreSQL backend for hierarchy storage."""

    def __init__(self, connection_string: str):
        """Initialize with PostgreSQL connection.

        Args:
            connection_string: PostgreSQL connection URI
        """
        if not _PSYCOPG2_AVAILABLE:
            raise ImportError("psycopg2 not available. Install with: pip install psycopg2-binary")

        # Normalize connection string
        if connection_string.startswith('postgres://'):
            connection_string = 'postgresql://' + connection_string[len('postgres://'):]

        self._conn_string = connection_string
        self._lock = threading.RLock()
        try:
            self._conn = psycopg2.connect(connection_string)
            self._conn.autocommit = True
            self._init_schema()
        except psycopg2.Error as e:
            raise StorageError(f"failed to open hierarchy store: {e}", operation="open") from e

    def _init_schema(self):
        """Initialize database schema."""
        with self._conn.cursor() as cur:
            cur.execute(_CREATE_HIERARCHY_SCHEMA)
        logger.debug("Hierarchy schema initialized")

    def close(self):
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    # ===================================
    # Classification operations
    # ===================================

    def get_classification(self, qid: str) -> tuple[str, bool]:
        try:
            with self._lock, self._conn.cursor() as cur:
                cur.execute("SELECT category FROM wikidata_hierarchy WHERE qid = %s", (qid,))
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise StorageError(str(e), operation="get_classification", key=qid) from e
        if row is None:
            return "", False
        return row[0] or "", True

    def save_classification(
        self,
        qid: str,
        category: str,
        parents: Optional[list[str]] = None,
        label: str = ""
    ) -> None:
        parents_json = psycopg2.extras.Json(list(parents)) if parents is not None else None
        logger.debug(f"Saving classification {qid} -> {category!r}")
        try:
            with self._lock, self._conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO wikidata_hierarchy (qid, name, parents, category)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (qid) DO UPDATE SET
                        name = CASE WHEN EXCLUDED.name = '' THEN wikidata_hierarchy.name
                                    ELSE EXCLUDED.name END,
                        parents = COALESCE(EXCLUDED.parents, wikidata_hierarchy.parents),
                        category = EXCLUDED.category,
                        updated_at = NOW()
                    """,
                    (qid, label or "", parents_json, category or "")
                )
        except psycopg2.Error as e:
            logger.error(f"SaveClassification failed for {qid}: {e}")
            raise StorageError(str(e), operation="save_classification", key=qid) from e

    # ===================================
    # Hierarchy operations
    # ===================================

    def get_hierarchy(self, qid: str) -> Optional[HierarchyNode]:
        try:
            with self._lock, self._conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT qid, name, parents, category, created_at, updated_at
                    FROM wikidata_hierarchy
                    WHERE qid = %s
                    """,
                    (qid,)
                )
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise StorageError(str(e), operation="get_hierarchy", key=qid) from e
        if row is None:
            return None
        return self._row_to_node(row)

    def save_hierarchy(self, node: HierarchyNode) -> None:
        try:
            with self._lock, self._conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO wikidata_hierarchy (qid, name, parents, category, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, COALESCE(%s, NOW()), NOW())
                    ON CONFLICT (qid) DO UPDATE SET
                        name = EXCLUDED.name,
                        parents = EXCLUDED.parents,
                        category = EXCLUDED.category,
                        updated_at = NOW()
                    """,
                    (
                        node.qid,
                        node.name or "",
                        psycopg2.extras.Json(list(node.parents)),
                        node.category or "",
                        node.created_at,
                    )
                )
        except psycopg2.Error as e:
            raise StorageError(str(e), operation="save_hierarchy", key=node.qid) from e

    def _row_to_node(self, row) -> HierarchyNode:
        """Convert a database row to HierarchyNode."""
        return HierarchyNode(
            qid=row[0],
            name=row[1] or "",
            parents=list(row[2] or []),
            category=row[3] or "",
            created_at=row[4],
            updated_at=row[5],
        )

    # ===================================
    # Utility methods
    # ===================================

    def get_stats(self) -> dict:
        """Get statistics about the hierarchy cache."""
        with self._lock, self._conn.cursor() as cur:
            cur.execute(
                """
                SELECT
                    COUNT(*),
                    COUNT(*) FILTER (WHERE category = %s),
                    COUNT(*) FILTER (WHERE category = %s),
                    COUNT(*) FILTER (WHERE category IS NULL OR category = '')
                FROM wikidata_hierarchy
                """,
                (IGNORED_SENTINEL, DEAD_END_SENTINEL)
            )
            nodes, ignored, dead_ends, unresolved = cur.fetchone()
        return {
            "nodes": nodes,
            "ignored": ignored,
            "dead_ends": dead_ends,
            "unresolved": unresolved,
            "categorized": nodes - ignored - dead_ends - unresolved,
        }

    def clear_all(self):
        """Clear all cached nodes (use with caution!)."""
        with self._lock, self._conn.cursor() as cur:
            cur.execute("TRUNCATE TABLE wikidata_hierarchy")
        logger.warning("All hierarchy data cleared")
