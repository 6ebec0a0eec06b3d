"""Abstract base class for knowledge graph clients.

Defines the interface the classifier consumes. The Wikidata HTTP client
and the in-memory test fakes implement it.
"""

from abc import ABC, abstractmethod

from taxoclass.models import EntityMetadata

# Relation identifiers used by the classifier
INSTANCE_OF = "P31"
SUBCLASS_OF = "P279"


class GraphClient(ABC):
    """Read-only access to entity claims in a knowledge graph."""

    @abstractmethod
    def get_entity_claims(self, qid: str, prop: str) -> tuple[list[str], str]:
        """Fetch item-valued claims of one entity.

        Returns:
            (target QIDs, English label)
        """
        pass

    @abstractmethod
    def get_entity_claims_batch(
        self,
        qids: list[str],
        prop: str
    ) -> tuple[dict[str, list[str]], dict[str, str]]:
        """Fetch item-valued claims of several entities.

        Entities without the property are absent from the claims map.

        Returns:
            (QID -> target QIDs, QID -> English label)
        """
        pass

    @abstractmethod
    def get_entities_batch(self, qids: list[str]) -> dict[str, EntityMetadata]:
        """Fetch labels and all item-valued claims of several entities."""
        pass

    def close(self):
        """Release network resources. Default is a no-op."""
        pass
