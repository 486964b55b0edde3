"""Tests for explicit relation extraction."""

from relgraph.inference.explicit import ExplicitRelationExtractor
from relgraph.models import RelationSource, RelationType


class TestExplicitRelationExtractor:
    """Structural fields map directly to edges."""

    def test_full_object(self, make_object):
        obj = make_object(
            "linear-auth-42",
            actors={
                "created_by": "user:alice",
                "assignees": ["user:bob", "user:carol"],
                "participants": ["user:dave"],
                "decided_by": "user:erin",
            },
            timestamps={
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-05T00:00:00Z",
                "decided_at": "2024-01-03T00:00:00Z",
            },
            relations={
                "triggered_by_ticket": "zendesk-1",
                "resulted_in_issue": "linear-auth-43",
                "linked_prs": ["github-pr-7"],
                "linked_issues": ["linear-auth-40"],
                "parent_id": "linear-auth-1",
            },
        )

        relations = ExplicitRelationExtractor().extract([obj])

        assert [(r.from_id, r.to_id, r.type) for r in relations] == [
            ("linear-auth-42", "zendesk-1", RelationType.TRIGGERED_BY),
            ("linear-auth-42", "linear-auth-43", RelationType.RESULTED_IN),
            ("linear-auth-42", "user:alice", RelationType.CREATED_BY),
            ("linear-auth-42", "user:bob", RelationType.ASSIGNED_TO),
            ("linear-auth-42", "user:carol", RelationType.ASSIGNED_TO),
            ("user:erin", "linear-auth-42", RelationType.DECIDED_BY),
            ("user:dave", "linear-auth-42", RelationType.PARTICIPATED_IN),
            ("linear-auth-42", "github-pr-7", RelationType.RELATED_TO),
            ("linear-auth-42", "linear-auth-40", RelationType.RELATED_TO),
            ("linear-auth-42", "linear-auth-1", RelationType.BELONGS_TO),
        ]
        assert all(r.source is RelationSource.EXPLICIT for r in relations)
        assert all(r.confidence == 1.0 for r in relations)

    def test_timestamps(self, make_object):
        obj = make_object(
            "a",
            actors={"created_by": "user:x", "decided_by": "user:y"},
            timestamps={"created_at": "2024-01-01T00:00:00Z", "updated_at": "2024-02-01T00:00:00Z"},
        )

        created, decided = ExplicitRelationExtractor().extract_one(obj)

        assert created.created_at == "2024-01-01T00:00:00Z"
        # No decided_at: falls back to updated_at
        assert decided.created_at == "2024-02-01T00:00:00Z"

    def test_bare_object_yields_nothing(self, make_object):
        assert ExplicitRelationExtractor().extract([make_object("a")]) == []

    def test_multiple_objects_in_order(self, make_object):
        objects = [
            make_object("a", relations={"parent_id": "p"}),
            make_object("b", actors={"created_by": "user:x"}),
        ]

        relations = ExplicitRelationExtractor().extract(objects)

        assert [r.from_id for r in relations] == ["a", "b"]
