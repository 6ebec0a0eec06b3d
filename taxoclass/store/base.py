"""Abstract base class for hierarchy storage backends.

Defines the interface that PostgreSQL and SQLite backends must implement.
"""

from abc import ABC, abstractmethod
from typing import Optional

from taxoclass.models import HierarchyNode


class HierarchyStore(ABC):
    """Durable map from taxonomy QID to (category slot, parents, label).

    Implementations must provide:
    - the flat classification lookup used by the classifier's fast path
    - structural node reads and writes
    - upsert semantics (last writer wins) for concurrent saves
    """

    @abstractmethod
    def close(self):
        """Close the database connection."""
        pass

    # ===================================
    # Classification operations
    # ===================================

    @abstractmethod
    def get_classification(self, qid: str) -> tuple[str, bool]:
        """Get the stored category slot of a node.

        Returns:
            (category, found). An existing node with an empty slot
            returns ("", True).
        """
        pass

    @abstractmethod
    def save_classification(
        self,
        qid: str,
        category: str,
        parents: Optional[list[str]] = None,
        label: str = ""
    ) -> None:
        """Upsert the category slot of a node.

        A parents value of None and an empty label keep whatever the node
        already stores.
        """
        pass

    # ===================================
    # Hierarchy operations
    # ===================================

    @abstractmethod
    def get_hierarchy(self, qid: str) -> Optional[HierarchyNode]:
        """Get a structural node, or None if it is not cached."""
        pass

    @abstractmethod
    def save_hierarchy(self, node: HierarchyNode) -> None:
        """Save or replace a structural node."""
        pass

    # ===================================
    # Utility methods
    # ===================================

    @abstractmethod
    def get_stats(self) -> dict:
        """Get statistics about the hierarchy cache."""
        pass

    def clear_all(self):
        """Clear all cached nodes (use with caution!).

        Default implementation raises NotImplementedError.
        """
        raise NotImplementedError("clear_all not implemented for this backend")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
