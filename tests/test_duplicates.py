"""Tests for semantic-hash duplicate detection."""

import pytest

from relgraph.config import CanonicalSelection
from relgraph.inference.duplicates import DuplicateDetector
from relgraph.models import RelationSource, RelationType


class TestDuplicateDetector:
    """k members of a hash group produce k-1 edges to one canonical member."""

    def test_group_links_to_first_created(self, duplicate_objects):
        relations = DuplicateDetector().detect(duplicate_objects)

        assert len(relations) == 2
        assert {r.from_id for r in relations} == {"O4", "O5"}
        assert all(r.to_id == "O3" for r in relations)
        assert all(r.type is RelationType.DUPLICATE_OF for r in relations)
        assert all(r.source is RelationSource.COMPUTED for r in relations)
        assert all(r.confidence == 1.0 for r in relations)
        assert not any("O6" in (r.from_id, r.to_id) for r in relations)

    def test_metadata(self, duplicate_objects):
        relation = DuplicateDetector().detect(duplicate_objects)[0]

        assert relation.metadata.semantic_hash == "h1"
        assert relation.metadata.detection_method == "semantic_hash"
        assert relation.metadata.group_size == 3

    def test_singletons_and_unhashed(self, make_object):
        objects = [make_object("a", semantic_hash="x"), make_object("b"), make_object("c")]
        assert DuplicateDetector().detect(objects) == []

    def test_earliest_created_ignores_input_order(self, make_object):
        objects = [
            make_object("late", semantic_hash="h", timestamps={"created_at": "2024-03-01T00:00:00Z"}),
            make_object("early", semantic_hash="h", timestamps={"created_at": "2024-01-01T00:00:00Z"}),
        ]

        relations = DuplicateDetector().detect(objects)

        assert [(r.from_id, r.to_id) for r in relations] == [("late", "early")]

    def test_missing_timestamps_sort_last_with_id_tiebreak(self, make_object):
        objects = [
            make_object("c", semantic_hash="h"),
            make_object("b", semantic_hash="h", timestamps={"created_at": "not a date"}),
            make_object("a", semantic_hash="h"),
        ]

        relations = DuplicateDetector().detect(objects)

        assert all(r.to_id == "a" for r in relations)

    def test_naive_and_aware_timestamps_compare(self, make_object):
        objects = [
            make_object("x", semantic_hash="h", timestamps={"created_at": "2024-01-02T00:00:00"}),
            make_object("y", semantic_hash="h", timestamps={"created_at": "2024-01-01T00:00:00+00:00"}),
        ]
        relations = DuplicateDetector().detect(objects)
        assert relations[0].to_id == "y"

    def test_input_order_selection(self, make_object):
        objects = [
            make_object("late", semantic_hash="h", timestamps={"created_at": "2024-03-01T00:00:00Z"}),
            make_object("early", semantic_hash="h", timestamps={"created_at": "2024-01-01T00:00:00Z"}),
        ]

        relations = DuplicateDetector(CanonicalSelection.INPUT_ORDER).detect(objects)

        assert [(r.from_id, r.to_id) for r in relations] == [("early", "late")]

    def test_smallest_id_selection(self, make_object):
        objects = [make_object(i, semantic_hash="h") for i in ("m", "z", "b")]

        relations = DuplicateDetector(CanonicalSelection.SMALLEST_ID).detect(objects)

        assert {r.from_id for r in relations} == {"m", "z"}
        assert all(r.to_id == "b" for r in relations)

    @pytest.mark.parametrize("size", [2, 3, 5])
    def test_edge_count(self, make_object, size):
        objects = [make_object(f"o{i}", semantic_hash="h") for i in range(size)]
        assert len(DuplicateDetector().detect(objects)) == size - 1
