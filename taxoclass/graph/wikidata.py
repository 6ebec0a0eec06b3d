"""Wikidata API client.

Uses the MediaWiki ``wbgetentities`` action to read labels and claims.
Requests are chunked to the API limit of 50 IDs and retried with a
linear backoff on timeouts, rate limiting and server errors.

Usage:
    from taxoclass.graph import WikidataClient, INSTANCE_OF

    client = WikidataClient()
    targets, label = client.get_entity_claims("Q64", INSTANCE_OF)

API Documentation: https://www.wikidata.org/w/api.php?action=help&modules=wbgetentities
"""

import logging
import time
from typing import Optional

import requests

from taxoclass.config import DEFAULT_API_ENDPOINT, DEFAULT_USER_AGENT
from taxoclass.exceptions import EntityNotFoundError, GraphClientError
from taxoclass.graph.base import GraphClient
from taxoclass.models import EntityMetadata

logger = logging.getLogger(__name__)

# Wikidata allows max 50 IDs per request
BATCH_SIZE = 50

DEFAULT_TIMEOUT = 30
DEFAULT_RETRY_DELAY = 2.0
MAX_RETRIES = 3

RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


def extract_item_ids(claims: list[dict]) -> list[str]:
    """Extract target QIDs from a list of Wikidata claim statements.

    Only item-valued main snaks carry an ``id``; other datatypes
    (strings, quantities, novalue/somevalue snaks) are skipped.
    """
    targets = []
    for claim in claims or []:
        datavalue = (claim.get("mainsnak") or {}).get("datavalue")
        if not isinstance(datavalue, dict):
            continue
        value = datavalue.get("value")
        if isinstance(value, dict) and isinstance(value.get("id"), str):
            targets.append(value["id"])
    return targets


def _chunks(ids: list[str], size: int = BATCH_SIZE):
    for i in range(0, len(ids), size):
        yield ids[i:i + size]


class WikidataClient(GraphClient):
    """GraphClient backed by the public Wikidata API."""

    def __init__(
        self,
        endpoint: str = DEFAULT_API_ENDPOINT,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            endpoint: MediaWiki API endpoint
            user_agent: User-Agent header (Wikimedia requires a descriptive one)
            timeout: Per-request timeout in seconds
            max_retries: Attempts per request
            retry_delay: Base delay between attempts, multiplied by attempt number
            session: Optional pre-configured requests session
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._session = session or requests.Session()
        self._session.headers.update({
            "User-Agent": user_agent,
            "Accept": "application/json",
        })

    def close(self):
        if self._session:
            self._session.close()
            self._session = None

    def _get(self, params: dict, ids_label: str) -> dict:
        """Issue one GET with retries and return the decoded JSON body."""
        last_error = None
        status_code = None

        for attempt in range(self.max_retries):
            try:
                response = self._session.get(self.endpoint, params=params, timeout=self.timeout)
            except (requests.Timeout, requests.ConnectionError) as e:
                last_error = e
                logger.warning(
                    f"Network error fetching {ids_label}, attempt {attempt + 1}/{self.max_retries}: {e}"
                )
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_delay * (attempt + 1))
                continue
            except requests.RequestException as e:
                raise GraphClientError(f"request failed: {e}", qid=ids_label) from e

            status_code = response.status_code
            if status_code in RETRY_STATUS_CODES:
                last_error = None
                wait_time = self.retry_delay * (attempt + 1)
                logger.warning(f"HTTP {status_code} fetching {ids_label}, waiting {wait_time}s...")
                if attempt < self.max_retries - 1:
                    time.sleep(wait_time)
                continue

            try:
                response.raise_for_status()
            except requests.HTTPError as e:
                raise GraphClientError(
                    f"HTTP error: {e}", qid=ids_label, status_code=status_code
                ) from e

            try:
                data = response.json()
            except ValueError as e:
                raise GraphClientError(
                    f"failed to decode json: {e}", qid=ids_label, status_code=status_code
                ) from e

            if "error" in data:
                info = data["error"].get("info", data["error"])
                raise GraphClientError(f"API error: {info}", qid=ids_label, status_code=status_code)
            return data

        raise GraphClientError(
            f"failed to fetch {ids_label} after {self.max_retries} attempts"
            + (f": {last_error}" if last_error else ""),
            qid=ids_label,
            status_code=status_code,
        )

    def _fetch_entities(self, ids: list[str], languages: Optional[str] = "en") -> dict:
        params = {
            "action": "wbgetentities",
            "format": "json",
            "ids": "|".join(ids),
            "props": "claims|labels",
        }
        if languages:
            params["languages"] = languages
        data = self._get(params, params["ids"])
        return data.get("entities") or {}

    def get_entity_claims(self, qid: str, prop: str) -> tuple[list[str], str]:
        entities = self._fetch_entities([qid])
        entity = entities.get(qid)
        if entity is None or "missing" in entity:
            raise EntityNotFoundError(f"entity {qid} not found in response", qid=qid)

        label = ((entity.get("labels") or {}).get("en") or {}).get("value", "")
        targets = extract_item_ids((entity.get("claims") or {}).get(prop))
        logger.debug(f"{qid} {prop} -> {targets}")
        return targets, label

    def get_entity_claims_batch(
        self,
        qids: list[str],
        prop: str
    ) -> tuple[dict[str, list[str]], dict[str, str]]:
        claims: dict[str, list[str]] = {}
        labels: dict[str, str] = {}

        for chunk in _chunks(list(qids)):
            entities = self._fetch_entities(chunk)
            for qid, entity in entities.items():
                if "missing" in entity:
                    continue
                label = ((entity.get("labels") or {}).get("en") or {}).get("value")
                if label:
                    labels[qid] = label
                prop_claims = (entity.get("claims") or {}).get(prop)
                if prop_claims is not None:
                    claims[qid] = extract_item_ids(prop_claims)

        logger.debug(f"Batch {prop}: {len(qids)} requested, {len(claims)} with claims")
        return claims, labels

    def get_entities_batch(self, qids: list[str]) -> dict[str, EntityMetadata]:
        if not qids:
            return {}

        # Stable ordering keeps chunk composition reproducible
        sorted_ids = sorted(set(qids))
        result: dict[str, EntityMetadata] = {}

        for chunk in _chunks(sorted_ids):
            entities = self._fetch_entities(chunk, languages=None)
            for qid, entity in entities.items():
                if "missing" in entity:
                    continue
                labels = {
                    lang: lbl.get("value", "")
                    for lang, lbl in (entity.get("labels") or {}).items()
                }
                claims = {
                    prop: extract_item_ids(statements)
                    for prop, statements in (entity.get("claims") or {}).items()
                }
                result[qid] = EntityMetadata(labels=labels, claims=claims)

        return result
