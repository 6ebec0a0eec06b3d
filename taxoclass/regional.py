"""Regional category overrides.

Thread-safe, resettable QID -> category map layered on top of the static
configuration. Entries are never persisted to the hierarchy store.
"""

import threading
from typing import Optional


class RegionalCategories:
    """Copy-on-write set of regional category overrides.

    Mutators build new dictionaries and swap them in under the lock, so a
    reader holding a snapshot never observes a half-updated map.

    Example:
        >>> regional = RegionalCategories()
        >>> regional.add({"Q1234": "Castle"}, {"Q1234": "hill fort"})
        >>> regional.get("Q1234")
        'Castle'
        >>> regional.reset()
        >>> regional.active()
        False
    """

    def __init__(self):
        self._categories: dict[str, str] = {}
        self._labels: dict[str, str] = {}
        self._lock = threading.RLock()

    def add(self, categories: dict[str, str], labels: Optional[dict[str, str]] = None) -> None:
        """Merge new overrides into the active set.

        Args:
            categories: QID -> category name
            labels: Optional QID -> human label
        """
        with self._lock:
            merged = dict(self._categories)
            merged.update(categories)
            merged_labels = dict(self._labels)
            if labels:
                merged_labels.update(labels)
            self._categories = merged
            self._labels = merged_labels

    def reset(self) -> None:
        """Drop all overrides."""
        with self._lock:
            self._categories = {}
            self._labels = {}

    def _snapshot(self) -> tuple[dict[str, str], dict[str, str]]:
        with self._lock:
            return self._categories, self._labels

    def get(self, qid: str) -> Optional[str]:
        """Regional category for a QID, or None."""
        categories, _ = self._snapshot()
        return categories.get(qid)

    def active(self) -> bool:
        """True if any override is set."""
        categories, _ = self._snapshot()
        return len(categories) > 0

    def categories(self) -> dict[str, str]:
        """Copy of the active QID -> category map."""
        categories, _ = self._snapshot()
        return dict(categories)

    def labels(self) -> dict[str, str]:
        """Copy of the active QID -> label map."""
        _, labels = self._snapshot()
        return dict(labels)

    def __len__(self) -> int:
        categories, _ = self._snapshot()
        return len(categories)

    def __contains__(self, qid: str) -> bool:
        return self.get(qid) is not None
