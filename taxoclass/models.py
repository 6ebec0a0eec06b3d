"""Domain models for hierarchy classification.

These dataclasses represent cached taxonomy nodes, the resolved state of
a node's category slot, and the results handed back to callers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


# Reserved values of the persisted category slot
IGNORED_SENTINEL = "__IGNORED__"
DEAD_END_SENTINEL = "__DEADEND__"

DEFAULT_SIZE = "M"


class ResolutionKind(str, Enum):
    """State of a hierarchy node's category slot."""
    UNRESOLVED = "unresolved"
    IGNORED = "ignored"
    DEAD_END = "dead_end"
    CATEGORY = "category"


@dataclass(frozen=True)
class Resolution:
    """Typed view of the stored category slot.

    The store keeps a plain string; this is the only place that knows
    how sentinels and empty values are encoded.

    Attributes:
        kind: Which of the resolution states applies
        category: Category name when kind is CATEGORY, else None
    """
    kind: ResolutionKind
    category: Optional[str] = None

    @classmethod
    def parse(cls, stored: Optional[str]) -> "Resolution":
        """Decode a stored category string."""
        if not stored:
            return UNRESOLVED
        if stored == IGNORED_SENTINEL:
            return IGNORED
        if stored == DEAD_END_SENTINEL:
            return DEAD_END
        return cls(ResolutionKind.CATEGORY, stored)

    @classmethod
    def of(cls, category: str) -> "Resolution":
        return cls(ResolutionKind.CATEGORY, category)

    def to_stored(self) -> str:
        """Encode for storage."""
        if self.kind == ResolutionKind.IGNORED:
            return IGNORED_SENTINEL
        if self.kind == ResolutionKind.DEAD_END:
            return DEAD_END_SENTINEL
        if self.kind == ResolutionKind.CATEGORY:
            return self.category
        return ""


UNRESOLVED = Resolution(ResolutionKind.UNRESOLVED)
IGNORED = Resolution(ResolutionKind.IGNORED)
DEAD_END = Resolution(ResolutionKind.DEAD_END)


@dataclass
class HierarchyNode:
    """A taxonomy class cached in the hierarchy store.

    Attributes:
        qid: Wikidata identifier of the class
        name: English label of the class
        parents: "subclass of" targets of the class
        category: Stored category slot (category name, sentinel or "")
        created_at: Timestamp of first save
        updated_at: Timestamp of last save
    """
    qid: str
    name: str = ""
    parents: list[str] = field(default_factory=list)
    category: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def resolution(self) -> Resolution:
        return Resolution.parse(self.category)

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "qid": self.qid,
            "name": self.name,
            "parents": list(self.parents),
            "category": self.category,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HierarchyNode":
        """Create from dictionary."""
        created_at = data.get("created_at")
        updated_at = data.get("updated_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        if isinstance(updated_at, str):
            updated_at = datetime.fromisoformat(updated_at)

        return cls(
            qid=data["qid"],
            name=data.get("name") or "",
            parents=list(data.get("parents") or []),
            category=data.get("category") or "",
            created_at=created_at,
            updated_at=updated_at,
        )


@dataclass
class ClassificationResult:
    """Outcome of classifying a QID.

    An ignored result carries no category. "No opinion" is expressed by
    returning None instead of a result.
    """
    category: str = ""
    size: str = ""
    ignored: bool = False

    @classmethod
    def ignored_result(cls) -> "ClassificationResult":
        return cls(ignored=True)

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "size": self.size,
            "ignored": self.ignored,
        }


@dataclass
class ExplanationResult:
    """Detailed account of a classification, for operator tooling.

    Attributes:
        category: Winning category ("" if none)
        size: Declared size tier of the category
        ignored: True if the subject resolved to ignored
        reason: Human-readable explanation
        matched_qid: Instance QID that produced the verdict
        sitelinks_min: Notability threshold of the winning category
    """
    category: str = ""
    size: str = ""
    ignored: bool = False
    reason: str = ""
    matched_qid: str = ""
    sitelinks_min: int = 0

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "size": self.size,
            "ignored": self.ignored,
            "reason": self.reason,
            "matched_qid": self.matched_qid,
            "sitelinks_min": self.sitelinks_min,
        }


@dataclass
class EntityMetadata:
    """Labels and item-valued claims of an entity, as fetched in bulk."""
    labels: dict[str, str] = field(default_factory=dict)
    claims: dict[str, list[str]] = field(default_factory=dict)
