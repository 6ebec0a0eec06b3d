"""Tests for the Wikidata API client.

The HTTP session is mocked; no network access is needed.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from taxoclass.exceptions import EntityNotFoundError, GraphClientError
from taxoclass.graph.wikidata import BATCH_SIZE, WikidataClient, extract_item_ids


def claim(target):
    return {"mainsnak": {"snaktype": "value", "datavalue": {"type": "wikibase-entityid", "value": {"id": target}}}}


def entity(qid, label=None, **props):
    data = {"id": qid, "claims": {prop: [claim(t) for t in targets] for prop, targets in props.items()}}
    if label:
        data["labels"] = {"en": {"language": "en", "value": label}}
    return data


def response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload if payload is not None else {}
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return resp


def make_client(*responses, max_retries=3):
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = list(responses)
    client = WikidataClient(session=session, max_retries=max_retries, retry_delay=0)
    return client, session


class TestExtractItemIds:
    """Tests for claim value extraction."""

    def test_item_values(self):
        assert extract_item_ids([claim("Q1"), claim("Q2")]) == ["Q1", "Q2"]

    def test_skips_non_item_values(self):
        claims = [
            {"mainsnak": {"snaktype": "novalue"}},
            {"mainsnak": {"datavalue": {"type": "string", "value": "text"}}},
            claim("Q3"),
        ]
        assert extract_item_ids(claims) == ["Q3"]

    def test_none(self):
        assert extract_item_ids(None) == []


class TestGetEntityClaims:
    """Tests for single-entity claim fetches."""

    def test_returns_targets_and_label(self):
        payload = {"entities": {"Q64": entity("Q64", "Berlin", P31=["Q515", "Q5119"])}}
        client, session = make_client(response(payload=payload))

        targets, label = client.get_entity_claims("Q64", "P31")

        assert targets == ["Q515", "Q5119"]
        assert label == "Berlin"
        params = session.get.call_args.kwargs["params"]
        assert params["action"] == "wbgetentities"
        assert params["ids"] == "Q64"
        assert params["props"] == "claims|labels"
        assert params["languages"] == "en"

    def test_missing_property(self):
        payload = {"entities": {"Q1": entity("Q1", "thing")}}
        client, _ = make_client(response(payload=payload))
        assert client.get_entity_claims("Q1", "P279") == ([], "thing")

    def test_missing_entity(self):
        payload = {"entities": {"Q404": {"id": "Q404", "missing": ""}}}
        client, _ = make_client(response(payload=payload))
        with pytest.raises(EntityNotFoundError):
            client.get_entity_claims("Q404", "P31")

    def test_user_agent_header(self):
        session = MagicMock()
        session.headers = {}
        WikidataClient(session=session, user_agent="test-agent/1.0")
        assert session.headers["User-Agent"] == "test-agent/1.0"


class TestBatch:
    """Tests for batched fetches."""

    def test_chunks_requests(self):
        qids = [f"Q{i}" for i in range(BATCH_SIZE + 5)]
        first = {"entities": {q: entity(q, P279=["Q1"]) for q in qids[:BATCH_SIZE]}}
        second = {"entities": {q: entity(q) for q in qids[BATCH_SIZE:]}}
        client, session = make_client(response(payload=first), response(payload=second))

        claims, labels = client.get_entity_claims_batch(qids, "P279")

        assert session.get.call_count == 2
        assert len(claims) == BATCH_SIZE
        assert labels == {}

    def test_skips_missing_entities(self):
        payload = {"entities": {
            "Q1": entity("Q1", "one", P279=["Q2"]),
            "Q9": {"id": "Q9", "missing": ""},
        }}
        client, _ = make_client(response(payload=payload))

        claims, labels = client.get_entity_claims_batch(["Q1", "Q9"], "P279")

        assert claims == {"Q1": ["Q2"]}
        assert labels == {"Q1": "one"}

    def test_entities_batch(self):
        payload = {"entities": {
            "Q1": entity("Q1", "one", P31=["Q5"], P279=["Q2"]),
        }}
        client, session = make_client(response(payload=payload))

        result = client.get_entities_batch(["Q1", "Q1"])

        assert result["Q1"].claims == {"P31": ["Q5"], "P279": ["Q2"]}
        assert result["Q1"].labels == {"en": "one"}
        params = session.get.call_args.kwargs["params"]
        assert params["ids"] == "Q1"
        assert "languages" not in params

    def test_entities_batch_empty(self):
        client, session = make_client()
        assert client.get_entities_batch([]) == {}
        session.get.assert_not_called()


class TestRetries:
    """Tests for retry and error handling."""

    def test_retries_on_rate_limit(self):
        payload = {"entities": {"Q1": entity("Q1", P31=["Q5"])}}
        client, session = make_client(response(429), response(payload=payload))

        with patch("taxoclass.graph.wikidata.time.sleep"):
            targets, _ = client.get_entity_claims("Q1", "P31")

        assert targets == ["Q5"]
        assert session.get.call_count == 2

    def test_retries_on_timeout(self):
        payload = {"entities": {"Q1": entity("Q1", P31=["Q5"])}}
        client, session = make_client(requests.Timeout("slow"), response(payload=payload))

        with patch("taxoclass.graph.wikidata.time.sleep"):
            targets, _ = client.get_entity_claims("Q1", "P31")

        assert targets == ["Q5"]

    def test_gives_up_after_max_retries(self):
        client, session = make_client(response(503), response(503), max_retries=2)

        with patch("taxoclass.graph.wikidata.time.sleep"):
            with pytest.raises(GraphClientError) as exc_info:
                client.get_entity_claims("Q1", "P31")

        assert session.get.call_count == 2
        assert exc_info.value.status_code == 503

    def test_client_error_not_retried(self):
        client, session = make_client(response(400))

        with pytest.raises(GraphClientError) as exc_info:
            client.get_entity_claims("Q1", "P31")

        assert session.get.call_count == 1
        assert exc_info.value.status_code == 400

    def test_api_error(self):
        payload = {"error": {"code": "no-such-entity", "info": "Could not find an entity"}}
        client, _ = make_client(response(payload=payload))

        with pytest.raises(GraphClientError, match="Could not find"):
            client.get_entity_claims("Q1", "P31")

    def test_invalid_json(self):
        resp = response()
        resp.json.side_effect = ValueError("bad json")
        client, _ = make_client(resp)

        with pytest.raises(GraphClientError):
            client.get_entity_claims("Q1", "P31")
