from contextlib import contextmanager
from typing import Optional

from taxoclass.classifier import Classifier, MAX_DEPTH
from taxoclass.config import CategoriesConfig, Category, Settings, load_categories
from taxoclass.exceptions import (
    ConfigError,
    EntityNotFoundError,
    GraphClientError,
    StorageError,
    TaxoclassError,
    ValidationError,
)
from taxoclass.models import (
    DEAD_END_SENTINEL,
    IGNORED_SENTINEL,
    ClassificationResult,
    EntityMetadata,
    ExplanationResult,
    HierarchyNode,
)


def create_classifier(settings: Optional[Settings] = None) -> Classifier:
    """Returns a Classifier wired from settings.

    The hierarchy store is picked from settings.db (SQLite path or
    postgresql:// URI) and the graph client talks to the Wikidata API.

    Args:
        settings: Wiring options. Read from the environment if omitted.

    Returns:
        A ready Classifier with no regional overrides.

    Raises:
        ConfigError: If no categories file is configured or it is invalid.
        ValidationError: If the store locator is not recognized.
        StorageError: If the store cannot be opened.

    Examples:
        clf = create_classifier(Settings(db='hierarchy.db',
                                         categories_path='categories.yaml'))
        clf.classify('Q64')
    """
    from taxoclass.graph.wikidata import WikidataClient
    from taxoclass.store import get_hierarchy_store

    if settings is None:
        settings = Settings.from_env()

    if not settings.categories_path:
        raise ConfigError("categories file required. Pass categories_path or set TAXOCLASS_CATEGORIES")

    config = load_categories(settings.categories_path)
    store = get_hierarchy_store(settings.db)
    client = WikidataClient(
        endpoint=settings.api_endpoint,
        user_agent=settings.user_agent,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
    )
    return Classifier(store, client, config)


@contextmanager
def copen(*args, **kwds):
    clf = create_classifier(*args, **kwds)
    try:
        yield clf
    finally:
        clf.close()


__all__ = [
    'Classifier',
    'ClassificationResult',
    'ExplanationResult',
    'create_classifier',
    'load_categories',
    'Settings',
]
