"""Tests for domain models."""

from datetime import datetime

import pytest

from taxoclass.models import (
    DEAD_END,
    DEAD_END_SENTINEL,
    IGNORED,
    IGNORED_SENTINEL,
    UNRESOLVED,
    ClassificationResult,
    ExplanationResult,
    HierarchyNode,
    Resolution,
    ResolutionKind,
)


class TestResolution:
    """Tests for the category slot encoding."""

    @pytest.mark.parametrize("stored", [None, ""])
    def test_empty_is_unresolved(self, stored):
        assert Resolution.parse(stored) == UNRESOLVED

    def test_sentinels(self):
        """Sentinels decode to their kinds and encode back unchanged."""
        assert Resolution.parse(IGNORED_SENTINEL) == IGNORED
        assert Resolution.parse(DEAD_END_SENTINEL) == DEAD_END
        assert IGNORED.to_stored() == IGNORED_SENTINEL
        assert DEAD_END.to_stored() == DEAD_END_SENTINEL

    def test_category(self):
        res = Resolution.parse("city")
        assert res.kind == ResolutionKind.CATEGORY
        assert res.category == "city"
        assert res == Resolution.of("city")
        assert res.to_stored() == "city"

    def test_unresolved_stores_empty(self):
        assert UNRESOLVED.to_stored() == ""


class TestHierarchyNode:
    """Tests for HierarchyNode."""

    def test_defaults(self):
        node = HierarchyNode(qid="Q1")
        assert node.parents == []
        assert node.resolution == UNRESOLVED

    def test_resolution(self):
        assert HierarchyNode(qid="Q1", category=IGNORED_SENTINEL).resolution == IGNORED
        assert HierarchyNode(qid="Q1", category="city").resolution.category == "city"

    def test_dict_conversion(self):
        now = datetime(2024, 5, 1, 12, 0, 0)
        node = HierarchyNode(qid="Q1", name="n", parents=["Q2"], category="city",
                             created_at=now, updated_at=now)
        data = node.to_dict()
        assert data["created_at"] == "2024-05-01T12:00:00"
        assert HierarchyNode.from_dict(data) == node

    def test_from_dict_missing_fields(self):
        node = HierarchyNode.from_dict({"qid": "Q1", "parents": None, "category": None})
        assert node.parents == []
        assert node.category == ""
        assert node.created_at is None


class TestResults:
    """Tests for result types."""

    def test_ignored_result(self):
        result = ClassificationResult.ignored_result()
        assert result.to_dict() == {"category": "", "size": "", "ignored": True}

    def test_explanation_defaults(self):
        exp = ExplanationResult(reason="No P31 instances found")
        assert exp.category == ""
        assert exp.sitelinks_min == 0
        assert exp.to_dict()["reason"] == "No P31 instances found"
