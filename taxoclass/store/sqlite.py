"""SQLite backend for hierarchy storage.

Parents are stored as JSON text. A single connection is shared between
threads and serialized with a lock.
"""

import json
import logging
import sqlite3
import threading
from datetime import datetime
from typing import Optional

from taxoclass.exceptions import StorageError
from taxoclass.models import DEAD_END_SENTINEL, IGNORED_SENTINEL, HierarchyNode
from taxoclass.store.base import HierarchyStore

logger = logging.getLogger(__name__)


_CREATE_HIERARCHY_SCHEMA = """
CREATE TABLE IF NOT EXISTS wikidata_hierarchy (
    qid TEXT PRIMARY KEY,
    name TEXT DEFAULT '',
    parents TEXT,
    category TEXT DEFAULT '',
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_wh_category ON wikidata_hierarchy (category);
"""

_UPSERT_CLASSIFICATION = """
INSERT INTO wikidata_hierarchy (qid, name, parents, category, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT(qid) DO UPDATE SET
    name = CASE WHEN excluded.name = '' THEN wikidata_hierarchy.name ELSE excluded.name END,
    parents = COALESCE(excluded.parents, wikidata_hierarchy.parents),
    category = excluded.category,
    updated_at = excluded.updated_at
"""


class SqliteHierarchyStore(HierarchyStore):
    """SQLite backend for hierarchy storage."""

    def __init__(self, db_path: str):
        """Initialize with SQLite database path.

        Args:
            db_path: Path to SQLite database file (or ':memory:')
        """
        self._db_path = db_path
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            # WAL mode for concurrent readers
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA synchronous = NORMAL")
            self._init_schema()
        except sqlite3.Error as e:
            raise StorageError(f"failed to open hierarchy store {db_path}: {e}", operation="open") from e

    def _init_schema(self):
        """Initialize database schema."""
        self._conn.executescript(_CREATE_HIERARCHY_SCHEMA)
        self._conn.commit()
        logger.debug("SQLite hierarchy schema initialized")

    def close(self):
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def _now(self) -> str:
        return datetime.now().isoformat()

    # ===================================
    # Classification operations
    # ===================================

    def get_classification(self, qid: str) -> tuple[str, bool]:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT category FROM wikidata_hierarchy WHERE qid = ?", (qid,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(str(e), operation="get_classification", key=qid) from e
        if row is None:
            return "", False
        return row["category"] or "", True

    def save_classification(
        self,
        qid: str,
        category: str,
        parents: Optional[list[str]] = None,
        label: str = ""
    ) -> None:
        parents_json = json.dumps(list(parents)) if parents is not None else None
        now = self._now()
        logger.debug(f"Saving classification {qid} -> {category!r}")
        try:
            with self._lock:
                self._conn.execute(
                    _UPSERT_CLASSIFICATION,
                    (qid, label or "", parents_json, category or "", now, now),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            logger.error(f"SaveClassification failed for {qid}: {e}")
            raise StorageError(str(e), operation="save_classification", key=qid) from e

    # ===================================
    # Hierarchy operations
    # ===================================

    def get_hierarchy(self, qid: str) -> Optional[HierarchyNode]:
        try:
            with self._lock:
                row = self._conn.execute(
                    """
                    SELECT qid, name, parents, category, created_at, updated_at
                    FROM wikidata_hierarchy
                    WHERE qid = ?
                    """,
                    (qid,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(str(e), operation="get_hierarchy", key=qid) from e
        if row is None:
            return None
        return self._row_to_node(row)

    def save_hierarchy(self, node: HierarchyNode) -> None:
        now = self._now()
        created_at = node.created_at.isoformat() if node.created_at else now
        try:
            with self._lock:
                self._conn.execute(
                    """
                    INSERT OR REPLACE INTO wikidata_hierarchy
                        (qid, name, parents, category, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        node.qid, node.name or "", json.dumps(list(node.parents)),
                        node.category or "", created_at, now
                    )
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise StorageError(str(e), operation="save_hierarchy", key=node.qid) from e

    def _row_to_node(self, row) -> HierarchyNode:
        """Convert a database row to HierarchyNode."""
        parents = []
        if row["parents"]:
            try:
                parents = json.loads(row["parents"]) or []
            except json.JSONDecodeError:
                logger.warning(f"Corrupt parents column for {row['qid']}, treating as empty")

        created_at = row["created_at"]
        updated_at = row["updated_at"]
        return HierarchyNode(
            qid=row["qid"],
            name=row["name"] or "",
            parents=parents,
            category=row["category"] or "",
            created_at=datetime.fromisoformat(created_at) if isinstance(created_at, str) else created_at,
            updated_at=datetime.fromisoformat(updated_at) if isinstance(updated_at, str) else updated_at,
        )

    # ===================================
    # Utility methods
    # ===================================

    def get_stats(self) -> dict:
        """Get statistics about the hierarchy cache."""
        with self._lock:
            row = self._conn.execute(
                """
                SELECT
                    COUNT(*) AS nodes,
                    SUM(CASE WHEN category = ? THEN 1 ELSE 0 END) AS ignored,
                    SUM(CASE WHEN category = ? THEN 1 ELSE 0 END) AS dead_ends,
                    SUM(CASE WHEN category IS NULL OR category = '' THEN 1 ELSE 0 END) AS unresolved
                FROM wikidata_hierarchy
                """,
                (IGNORED_SENTINEL, DEAD_END_SENTINEL)
            ).fetchone()
        nodes = row["nodes"] or 0
        ignored = row["ignored"] or 0
        dead_ends = row["dead_ends"] or 0
        unresolved = row["unresolved"] or 0
        return {
            "nodes": nodes,
            "ignored": ignored,
            "dead_ends": dead_ends,
            "unresolved": unresolved,
            "categorized": nodes - ignored - dead_ends - unresolved,
        }

    def clear_all(self):
        """Clear all cached nodes (use with caution!)."""
        with self._lock:
            self._conn.execute("DELETE FROM wikidata_hierarchy")
            self._conn.commit()
        logger.warning("All hierarchy data cleared")
