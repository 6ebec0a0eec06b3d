"""Hierarchy classification engine.

Decides which configured category (if any) a Wikidata QID belongs to by
following "instance of" (P31) and then "subclass of" (P279) edges.

Results for taxonomy classes are cached in the hierarchy store, including
two sentinels for negative outcomes:
- __IGNORED__: the class leads to an explicitly uninteresting root
- __DEADEND__: nothing was found within the search bound

Regional overrides (see RegionalCategories) add categories on top of the
static configuration. They are never persisted, and while any override is
active the negative sentinels are re-checked instead of trusted.

Usage:
    from taxoclass import Classifier, load_categories
    from taxoclass.graph import WikidataClient
    from taxoclass.store import get_hierarchy_store

    clf = Classifier(
        get_hierarchy_store("hierarchy.db"),
        WikidataClient(),
        load_categories("categories.yaml"),
    )
    result = clf.classify("Q64")
"""

import logging
from typing import Optional

from taxoclass.config import CategoriesConfig
from taxoclass.exceptions import GraphClientError, StorageError, TaxoclassError, ValidationError
from taxoclass.graph.base import INSTANCE_OF, SUBCLASS_OF, GraphClient
from taxoclass.models import (
    DEAD_END,
    IGNORED,
    UNRESOLVED,
    ClassificationResult,
    EntityMetadata,
    ExplanationResult,
    Resolution,
    ResolutionKind,
)
from taxoclass.regional import RegionalCategories
from taxoclass.store.base import HierarchyStore

logger = logging.getLogger(__name__)

# Number of "subclass of" layers explored beyond the direct parents
MAX_DEPTH = 4

# Returned by _cached_outcome when the cache has no usable verdict
_FALL_THROUGH = object()


def _validate_qid(qid) -> str:
    if not isinstance(qid, str) or not qid.strip():
        raise ValidationError(
            f"qid must be a non-empty string, got {qid!r}",
            value=qid,
            expected_type="non-empty string"
        )
    return qid.strip()


class Classifier:
    """Classifies Wikidata items into configured categories.

    Safe to use from several threads: the only shared mutable state is
    the regional override set, which is copy-on-write.
    """

    def __init__(self, store: HierarchyStore, client: GraphClient, config: CategoriesConfig):
        """Initialize the classifier.

        Args:
            store: Hierarchy cache
            client: Knowledge graph client
            config: Static category configuration (not mutated)
        """
        self._store = store
        self._client = client
        self._config = config
        self._lookup = config.build_lookup()
        self._regional = RegionalCategories()

    # ===================================
    # Public API
    # ===================================

    def classify(self, qid: str) -> Optional[ClassificationResult]:
        """Classify a subject QID (usually an article's item).

        The subject itself is never cached; the classes reached from it are.

        Returns:
            The winning result, an ignored result, or None for no match.

        Raises:
            GraphClientError: If the subject's instances cannot be fetched
            StorageError: If a verdict cannot be persisted
        """
        qid = _validate_qid(qid)

        match = self._lookup_match(qid)
        if match:
            return self._result_for(match[0])

        targets, _ = self._client.get_entity_claims(qid, INSTANCE_OF)
        result, _ = self._resolve_instances(targets, skip=(GraphClientError,))
        return result

    def classify_batch(
        self,
        entities: dict[str, EntityMetadata]
    ) -> dict[str, Optional[ClassificationResult]]:
        """Classify many subjects using pre-fetched metadata.

        Instance claims come from the metadata, so no per-subject P31 call
        is made. Each distinct instance QID is resolved once per batch.
        Failures are logged and yield no result for the affected subject.
        """
        results: dict[str, Optional[ClassificationResult]] = {}
        memo: dict[str, Optional[ClassificationResult]] = {}

        for qid, meta in entities.items():
            match = self._lookup_match(qid)
            if match:
                results[qid] = self._result_for(match[0])
                continue

            instances = meta.claims.get(INSTANCE_OF, []) if meta else []
            result, _ = self._resolve_instances(instances, skip=(TaxoclassError,), memo=memo)
            results[qid] = result

        logger.debug(
            f"Batch classified {len(entities)} subjects via {len(memo)} distinct instances"
        )
        return results

    def explain(self, qid: str) -> ExplanationResult:
        """Explain why a subject is (or is not) classified.

        Runs the same traversal as classify() but reports which instance
        produced the verdict. Any collaborator failure is raised.
        """
        qid = _validate_qid(qid)

        match = self._lookup_match(qid)
        if match:
            category, is_regional = match
            source = "regional override" if is_regional else "static configuration"
            return self._explain_match(category, qid, f"Configured directly in {source}")

        targets, _ = self._client.get_entity_claims(qid, INSTANCE_OF)
        if not targets:
            return ExplanationResult(reason=f"No {INSTANCE_OF} instances found")

        result, inst = self._resolve_instances(targets, skip=())
        if result is None:
            return ExplanationResult(
                reason=f"Traversed {len(targets)} instances, no category match found"
            )
        if result.ignored:
            return ExplanationResult(
                ignored=True,
                reason=f"Ignored via instance {inst}",
                matched_qid=inst,
            )
        return self._explain_match(result.category, inst, f"Matched via instance {inst}")

    def is_covered_by_static_config(self, qid: str) -> bool:
        """True if the class resolves to a category without regional help."""
        qid = _validate_qid(qid)
        result = self._classify_hierarchy_node(qid, static_only=True)
        return result is not None and not result.ignored

    def get_config(self) -> CategoriesConfig:
        return self._config

    def close(self):
        """Close the graph client and the hierarchy store."""
        self._client.close()
        self._store.close()

    # ===================================
    # Regional overrides
    # ===================================

    def add_regional_categories(
        self,
        categories: dict[str, str],
        labels: Optional[dict[str, str]] = None
    ) -> None:
        """Merge regional QID -> category overrides into the active set."""
        self._regional.add(categories, labels)
        logger.info(f"Regional categories updated: {len(self._regional)} active")

    def reset_regional_categories(self) -> None:
        self._regional.reset()
        logger.info("Regional categories reset")

    def get_regional_categories(self) -> dict[str, str]:
        return self._regional.categories()

    def get_regional_labels(self) -> dict[str, str]:
        return self._regional.labels()

    def has_regional_categories(self) -> bool:
        return self._regional.active()

    # ===================================
    # Lookup helpers
    # ===================================

    def _lookup_match(self, qid: str, static_only: bool = False) -> Optional[tuple[str, bool]]:
        """Match a QID against static config, then regional overrides.

        Returns:
            (category, is_regional) or None
        """
        category = self._lookup.get(qid)
        if category is not None:
            return category, False
        if static_only:
            return None
        category = self._regional.get(qid)
        if category is not None:
            return category, True
        return None

    def _bypass_sentinels(self, static_only: bool) -> bool:
        """Negative sentinels are re-checked while regional overrides are active."""
        return not static_only and self._regional.active()

    def _result_for(self, category: str) -> ClassificationResult:
        return ClassificationResult(category=category, size=self._config.get_size(category))

    def _explain_match(self, category: str, matched_qid: str, reason: str) -> ExplanationResult:
        return ExplanationResult(
            category=category,
            size=self._config.get_size(category),
            reason=reason,
            matched_qid=matched_qid,
            sitelinks_min=self._config.get_sitelinks_min(category),
        )

    def _resolve_instances(
        self,
        instances: list[str],
        skip: tuple,
        memo: Optional[dict] = None,
    ) -> tuple[Optional[ClassificationResult], str]:
        """Resolve instance classes, preferring a match over an ignore.

        Args:
            instances: Instance-of targets of a subject
            skip: Exception types that are logged and skip the instance
            memo: Optional per-call cache of instance results

        Returns:
            (result, instance that produced it)
        """
        fallback: tuple[Optional[ClassificationResult], str] = (None, "")

        for inst in instances:
            if memo is not None and inst in memo:
                result = memo[inst]
            else:
                try:
                    result = self._classify_hierarchy_node(inst)
                except skip as e:
                    logger.warning(f"Failed to classify hierarchy node {inst}: {e}")
                    continue
                if memo is not None:
                    memo[inst] = result

            if result is None:
                continue
            if not result.ignored:
                return result, inst
            if fallback[0] is None:
                fallback = (result, inst)

        return fallback

    def _cached_outcome(self, qid: str, resolution: Resolution, bypass: bool):
        """Turn a cached resolution into a result, or _FALL_THROUGH."""
        if resolution.kind == ResolutionKind.CATEGORY:
            return self._result_for(resolution.category)
        if resolution.kind == ResolutionKind.IGNORED:
            if not bypass:
                return ClassificationResult.ignored_result()
            logger.debug(f"Bypassing {IGNORED.to_stored()} sentinel for {qid}: regional categories active")
        elif resolution.kind == ResolutionKind.DEAD_END:
            if not bypass:
                return None
            logger.debug(f"Bypassing {DEAD_END.to_stored()} sentinel for {qid}: regional categories active")
        return _FALL_THROUGH

    # ===================================
    # Class resolution
    # ===================================

    def _classify_hierarchy_node(
        self,
        qid: str,
        static_only: bool = False
    ) -> Optional[ClassificationResult]:
        """Determine the category of a taxonomy class, using the cache."""
        match = self._lookup_match(qid, static_only)
        if match:
            return self._result_for(match[0])

        bypass = self._bypass_sentinels(static_only)

        try:
            stored, found = self._store.get_classification(qid)
        except StorageError as e:
            logger.warning(f"Classification lookup failed for {qid}, treating as miss: {e}")
            found = False

        if found:
            outcome = self._cached_outcome(qid, Resolution.parse(stored), bypass)
            if outcome is not _FALL_THROUGH:
                return outcome

        return self._slow_path(qid, static_only, bypass)

    def _slow_path(
        self,
        qid: str,
        static_only: bool,
        bypass: bool
    ) -> Optional[ClassificationResult]:
        """Resolve a class from its structural node or a fresh P279 fetch."""
        try:
            node = self._store.get_hierarchy(qid)
        except StorageError as e:
            logger.warning(f"Hierarchy lookup failed for {qid}, fetching instead: {e}")
            node = None

        if node is not None:
            parents, label = list(node.parents), node.name
            outcome = self._cached_outcome(qid, node.resolution, bypass)
            if outcome is not _FALL_THROUGH:
                return outcome
        else:
            parents, label = self._client.get_entity_claims(qid, SUBCLASS_OF)

        # Any direct parent match outranks a direct parent ignore
        for parent in parents:
            match = self._lookup_match(parent, static_only)
            if match:
                logger.debug(f"Match found as direct subclass: {qid} -> {parent} ({match[0]})")
                return self._finalize_match(qid, match[0], parents, label, match[1])

        for parent in parents:
            if self._config.is_ignored(parent):
                logger.debug(f"Ignored category found as direct subclass: {qid} -> {parent}")
                return self._finalize_ignored(qid, parents, label)

        return self._search_hierarchy(qid, parents, label, static_only, bypass)

    def _search_hierarchy(
        self,
        qid: str,
        parents: list[str],
        label: str,
        static_only: bool,
        bypass: bool
    ) -> Optional[ClassificationResult]:
        """Breadth-first search over "subclass of" layers.

        The visited set is seeded with the root and its direct parents,
        so cycles and diamonds are expanded at most once.
        """
        visited = {qid, *parents}
        traversed = list(dict.fromkeys(parents))
        queue = list(traversed)
        known_parents: dict[str, list[str]] = {}
        fetch_failed = False
        depth = 1

        while queue and depth <= MAX_DEPTH:
            parents_of, resolved, to_fetch = self._scan_layer_cache(queue)

            if to_fetch:
                fetched = self._fetch_and_cache_layer(to_fetch)
                if fetched is None:
                    fetch_failed = True
                else:
                    parents_of.update(fetched)
            known_parents.update(parents_of)

            # 1. Layer-wide match first
            match = self._layer_match(queue, parents_of, resolved, static_only)
            if match:
                category, is_regional = match
                return self._finalize_match(qid, category, parents, label, is_regional)

            # 2. Then ignore
            if self._layer_ignored(queue, parents_of, resolved, bypass):
                self._propagate_ignored(traversed, known_parents)
                return self._finalize_ignored(qid, parents, label)

            # 3. Descend
            next_queue = []
            for node in queue:
                if resolved.get(node) == DEAD_END and not bypass:
                    continue
                for parent in parents_of.get(node, []):
                    if parent not in visited:
                        visited.add(parent)
                        next_queue.append(parent)

            traversed.extend(next_queue)
            queue = next_queue
            depth += 1

        if fetch_failed:
            # Incomplete search, nothing is cached for the root
            logger.warning(f"Hierarchy search for {qid} incomplete after fetch failure, not caching")
            return None

        logger.debug(f"No category within {MAX_DEPTH} layers for {qid}, marking dead end")
        try:
            self._store.save_classification(qid, DEAD_END.to_stored(), parents, label)
        except StorageError as e:
            logger.warning(f"Failed to save dead end for {qid}: {e}")
        return None

    def _scan_layer_cache(
        self,
        queue: list[str]
    ) -> tuple[dict[str, list[str]], dict[str, Resolution], list[str]]:
        """Split a layer into cached nodes and nodes that must be fetched.

        Returns:
            (parents of cached nodes, resolutions of cached nodes, QIDs to fetch)
        """
        parents_of: dict[str, list[str]] = {}
        resolved: dict[str, Resolution] = {}
        to_fetch: list[str] = []

        for node_id in queue:
            try:
                node = self._store.get_hierarchy(node_id)
            except StorageError as e:
                logger.warning(f"Hierarchy lookup failed for {node_id}, refetching: {e}")
                node = None

            if node is None:
                to_fetch.append(node_id)
                continue
            parents_of[node_id] = list(node.parents)
            resolved[node_id] = node.resolution

        return parents_of, resolved, to_fetch

    def _fetch_and_cache_layer(self, ids: list[str]) -> Optional[dict[str, list[str]]]:
        """Batch fetch P279 for a layer and cache each node with its parents.

        Every fetched node is resolved from its own parents using the
        static configuration only, so no regional verdict reaches the
        shared cache. Nodes without a verdict are stored with an empty
        slot so their parent list survives later sentinel writes.

        Returns:
            QID -> parents, or None if the fetch failed
        """
        try:
            claims, labels = self._client.get_entity_claims_batch(ids, SUBCLASS_OF)
        except GraphClientError as e:
            logger.error(f"Failed to batch fetch hierarchy for {len(ids)} nodes: {e}")
            return None

        results: dict[str, list[str]] = {}
        for node_id in ids:
            node_parents = claims.get(node_id, [])
            resolution = self._resolve_static(node_parents)
            try:
                self._store.save_classification(
                    node_id, resolution.to_stored(), node_parents, labels.get(node_id, "")
                )
            except StorageError as e:
                logger.warning(f"Failed to save hierarchy node {node_id}: {e}")
            results[node_id] = node_parents

        return results

    def _resolve_static(self, parents: list[str]) -> Resolution:
        """Resolve a node from its parents with the static configuration."""
        if not parents:
            return DEAD_END
        for parent in parents:
            category = self._lookup.get(parent)
            if category is not None:
                return Resolution.of(category)
        for parent in parents:
            if self._config.is_ignored(parent):
                return IGNORED
        return UNRESOLVED

    def _layer_match(
        self,
        queue: list[str],
        parents_of: dict[str, list[str]],
        resolved: dict[str, Resolution],
        static_only: bool
    ) -> Optional[tuple[str, bool]]:
        for node_id in queue:
            resolution = resolved.get(node_id)
            if resolution is not None and resolution.kind == ResolutionKind.CATEGORY:
                # Stored categories are always static
                return resolution.category, False
            for parent in parents_of.get(node_id, []):
                match = self._lookup_match(parent, static_only)
                if match:
                    return match
        return None

    def _layer_ignored(
        self,
        queue: list[str],
        parents_of: dict[str, list[str]],
        resolved: dict[str, Resolution],
        bypass: bool
    ) -> bool:
        for node_id in queue:
            if resolved.get(node_id) == IGNORED and not bypass:
                return True
            for parent in parents_of.get(node_id, []):
                if self._config.is_ignored(parent):
                    return True
        return False

    # ===================================
    # Finalization
    # ===================================

    def _finalize_match(
        self,
        qid: str,
        category: str,
        parents: list[str],
        label: str,
        is_regional: bool
    ) -> ClassificationResult:
        """Persist a match for the traversal root unless it is regional."""
        if is_regional:
            logger.debug(f"Not persisting regional classification {qid} -> {category}")
        else:
            try:
                self._store.save_classification(qid, category, parents, label)
            except StorageError as e:
                raise StorageError(
                    f"failed to save classification: {e}",
                    operation="finalize_match",
                    key=qid
                ) from e
        return self._result_for(category)

    def _finalize_ignored(self, qid: str, parents: list[str], label: str) -> ClassificationResult:
        try:
            self._store.save_classification(qid, IGNORED.to_stored(), parents, label)
        except StorageError as e:
            raise StorageError(
                f"failed to save ignored classification: {e}",
                operation="finalize_ignored",
                key=qid
            ) from e
        return ClassificationResult.ignored_result()

    def _propagate_ignored(self, nodes: list[str], known_parents: dict[str, list[str]]) -> None:
        """Mark every node on an ignored path so siblings short-circuit.

        Parents seen during the search are written along with the sentinel,
        so a later regional bypass can still walk through these nodes.
        """
        for node_id in nodes:
            try:
                self._store.save_classification(
                    node_id, IGNORED.to_stored(), known_parents.get(node_id)
                )
            except StorageError as e:
                logger.warning(f"Failed to propagate ignored to node {node_id}: {e}")
