"""Knowledge graph clients.

Provides the GraphClient interface consumed by the classifier and a
Wikidata API implementation.
"""

from taxoclass.graph.base import GraphClient, INSTANCE_OF, SUBCLASS_OF
from taxoclass.graph.wikidata import WikidataClient, extract_item_ids

__all__ = [
    'GraphClient',
    'INSTANCE_OF',
    'SUBCLASS_OF',
    'WikidataClient',
    'extract_item_ids',
]
