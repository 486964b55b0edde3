"""Tests for the project-level document threshold."""

from unittest.mock import Mock

from relgraph.inference.document_filter import DocumentThresholdFilter, project_key
from relgraph.interfaces import IInferenceObserver
from relgraph.models import Relation, RelationSource, RelationType


def _similar(from_id, to_id, confidence):
    return Relation(from_id, to_id, RelationType.SIMILAR_TO, RelationSource.COMPUTED, confidence=confidence)


class TestProjectKey:
    def test_with_project(self):
        assert project_key("linear-auth-1") == "auth"

    def test_without_project_uses_id(self):
        assert project_key("slack-1") == "slack-1"


class TestDocumentThresholdFilter:
    """Cross-project groups must be strong on average."""

    def test_weak_cross_project_group_removed(self):
        # Every pair passed stage one, but the group mean is below 0.25 at this threshold
        relations = [
            _similar("linear-auth-1", "linear-billing-1", 0.2),
            _similar("linear-billing-1", "linear-auth-1", 0.2),
            _similar("linear-auth-2", "linear-billing-3", 0.22),
        ]

        assert DocumentThresholdFilter(document_threshold=0.25).apply(relations) == []

    def test_same_project_group_always_kept(self):
        relations = [
            _similar("linear-auth-1", "github-auth-2", 0.01),
            _similar("github-auth-2", "linear-auth-1", 0.01),
        ]

        kept = DocumentThresholdFilter(document_threshold=0.99, min_chunk_matches=10).apply(relations)

        assert kept == relations

    def test_strong_group_kept(self):
        relations = [
            _similar("linear-auth-1", "linear-billing-1", 0.9),
            _similar("linear-auth-2", "linear-billing-2", 0.1),
        ]

        assert DocumentThresholdFilter(document_threshold=0.5).apply(relations) == relations

    def test_min_chunk_matches(self):
        relations = [_similar("linear-auth-1", "linear-billing-1", 0.9)]

        assert DocumentThresholdFilter(min_chunk_matches=2).apply(relations) == []
        assert DocumentThresholdFilter(min_chunk_matches=1).apply(relations) == relations

    def test_groups_are_unordered(self):
        groups = DocumentThresholdFilter().group(
            [
                _similar("linear-auth-1", "linear-billing-1", 0.5),
                _similar("linear-billing-1", "linear-auth-1", 0.5),
            ]
        )

        assert list(groups) == [("auth", "billing")]
        group = groups[("auth", "billing")]
        assert group.match_count == 2
        assert group.key == "auth|billing"

    def test_mixed_groups_preserve_order(self):
        strong = _similar("linear-auth-1", "linear-billing-1", 0.8)
        weak = _similar("linear-auth-1", "linear-search-1", 0.1)
        same = _similar("linear-auth-1", "linear-auth-2", 0.1)

        kept = DocumentThresholdFilter(document_threshold=0.5).apply([same, weak, strong])

        assert kept == [same, strong]

    def test_empty_input(self):
        assert DocumentThresholdFilter().apply([]) == []

    def test_observer_sees_each_group(self):
        observer = Mock(spec=IInferenceObserver)
        relations = [
            _similar("linear-auth-1", "linear-billing-1", 0.8),
            _similar("linear-auth-1", "linear-search-1", 0.1),
        ]

        DocumentThresholdFilter(document_threshold=0.5, observer=observer).apply(relations)

        assert observer.group_evaluated.call_count == 2
        kept_flags = {c.args[0]: c.args[3] for c in observer.group_evaluated.call_args_list}
        assert kept_flags == {"auth|billing": True, "auth|search": False}
