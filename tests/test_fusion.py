"""Tests for multi-signal fusion over object pairs."""

from unittest.mock import Mock

import pytest

from relgraph.config import InferenceConfig
from relgraph.errors import InferenceCancelledError
from relgraph.inference.fusion import FusionEngine
from relgraph.inference.pairs import CancellationToken
from relgraph.interfaces import IInferenceObserver
from relgraph.models import RelationSource, RelationType


def _semantic_config(**overrides):
    values = {"use_semantic_similarity": True}
    values.update(overrides)
    return InferenceConfig(**values)


class TestKeywordOnly:
    """No embeddings: combined score is the Jaccard similarity."""

    def test_end_to_end_example(self, keyword_objects):
        engine = FusionEngine(InferenceConfig(keyword_overlap_threshold=0.5))

        relations = engine.infer(keyword_objects)

        assert [(r.from_id, r.to_id) for r in relations] == [("O1", "O2"), ("O2", "O1")]
        assert all(r.confidence == 0.5 for r in relations)
        assert all(r.type is RelationType.SIMILAR_TO for r in relations)
        assert all(r.source is RelationSource.COMPUTED for r in relations)

    def test_metadata(self, keyword_objects):
        relation = FusionEngine(InferenceConfig(keyword_overlap_threshold=0.5)).infer(keyword_objects)[0]

        assert relation.metadata.shared_keywords == ("b", "c")
        assert relation.metadata.keyword_overlap_score == 0.5
        assert relation.metadata.combined_similarity == 0.5
        assert relation.metadata.semantic_similarity is None

    def test_below_threshold(self, keyword_objects):
        assert FusionEngine(InferenceConfig()).infer(keyword_objects) == []

    def test_empty_keyword_sets_skipped(self, make_object):
        observer = Mock(spec=IInferenceObserver)
        objects = [make_object("a"), make_object("b")]

        relations = FusionEngine(InferenceConfig(keyword_overlap_threshold=0.0), observer=observer).infer(objects)

        assert relations == []
        observer.pair_scored.assert_not_called()

    def test_project_and_schema_ignored_without_embeddings(self, make_object):
        config = InferenceConfig(
            keyword_overlap_threshold=0.5,
            use_project_metadata=True,
            use_schema_signal=True,
        )
        objects = [
            make_object("linear-auth-1", keywords=["a", "b"]),
            make_object("linear-auth-2", keywords=["c", "d"]),
        ]
        assert FusionEngine(config).infer(objects) == []


class TestSemanticFusion:
    """Embeddings present: weighted combination gated by the stricter threshold."""

    def test_two_way(self, make_object):
        config = _semantic_config(semantic_weight=0.7, similarity_threshold=0.8)
        objects = [make_object("a", keywords=["x", "y"]), make_object("b", keywords=["x", "y"])]
        embeddings = {"a": [1.0, 0.0], "b": [1.0, 0.0]}

        relations = FusionEngine(config).infer(objects, embeddings)

        assert len(relations) == 2
        assert relations[0].confidence == pytest.approx(1.0)
        assert relations[0].metadata.semantic_similarity == pytest.approx(1.0)
        assert relations[0].metadata.keyword_overlap_score is None

    def test_stricter_threshold_with_embeddings(self, make_object):
        config = _semantic_config(semantic_weight=0.5, similarity_threshold=0.85, keyword_overlap_threshold=0.5)
        objects = [make_object("a", keywords=["x", "y"]), make_object("b", keywords=["x", "z"])]
        embeddings = {"a": [1.0, 0.0], "b": [1.0, 1.0]}

        # 0.5 * 0.707 + 0.5 * 0.333 ~ 0.52: passes 0.5, fails 0.85
        assert FusionEngine(config).infer(objects, embeddings) == []

    def test_missing_embedding_falls_back_to_keywords(self, make_object):
        config = _semantic_config(keyword_overlap_threshold=0.5)
        objects = [make_object("a", keywords=["x", "y"]), make_object("b", keywords=["x", "y"])]

        relations = FusionEngine(config).infer(objects, {"a": [1.0, 0.0]})

        assert len(relations) == 2
        assert relations[0].metadata.keyword_overlap_score == 1.0

    def test_embeddings_ignored_when_semantic_disabled(self, make_object):
        config = InferenceConfig(keyword_overlap_threshold=0.5)
        objects = [make_object("a", keywords=["x", "y"]), make_object("b", keywords=["x", "y"])]

        relations = FusionEngine(config).infer(objects, {"a": [1.0], "b": [-1.0]})

        assert relations[0].confidence == 1.0

    def test_pair_without_keywords_scored_with_embeddings(self, make_object):
        config = _semantic_config(semantic_weight=1.0, similarity_threshold=0.9)
        objects = [make_object("a"), make_object("b")]

        relations = FusionEngine(config).infer(objects, {"a": [1.0, 2.0], "b": [2.0, 4.0]})

        assert len(relations) == 2
        assert relations[0].metadata.shared_keywords is None

    def test_negative_cosine_clamped(self, make_object):
        config = _semantic_config(semantic_weight=1.0, similarity_threshold=0.0)
        obj1, obj2 = make_object("a"), make_object("b")

        score = FusionEngine(config).score_pair(
            obj1, obj2, frozenset(), frozenset(), _scorer({"a": [1.0], "b": [-1.0]})
        )

        assert score.combined == 0.0

    def test_four_way(self, make_object):
        config = _semantic_config(
            semantic_weight=0.5,
            similarity_threshold=0.5,
            use_project_metadata=True,
            project_weight=0.3,
            use_schema_signal=True,
            schema_weight=0.2,
        )
        obj1 = make_object("linear-auth-1", keywords=["x"], actors={"assignees": ["u"]})
        obj2 = make_object("github-auth-2", keywords=["y"], actors={"assignees": ["u"]})

        relations = FusionEngine(config).infer([obj1, obj2], {"linear-auth-1": [1.0], "github-auth-2": [1.0]})

        # 0.25 * 1.0 + 0.25 * 0 + 0.3 * 1 + 0.2 * 1
        assert relations[0].confidence == pytest.approx(0.75)
        metadata = relations[0].metadata
        assert metadata.project_similarity == 1.0
        assert (metadata.project_1, metadata.project_2) == ("auth", "auth")
        assert metadata.schema_similarity == 1.0
        assert metadata.evidence == ("shared_assignee:u",)

    def test_three_way_project(self, make_object):
        config = _semantic_config(
            semantic_weight=0.7,
            similarity_threshold=0.5,
            use_project_metadata=True,
            project_weight=0.3,
        )
        obj1 = make_object("linear-auth-1", keywords=["a", "b"])
        obj2 = make_object("linear-auth-2", keywords=["b", "c"])

        relations = FusionEngine(config).infer([obj1, obj2], {"linear-auth-1": [1.0], "linear-auth-2": [1.0]})

        # 0.49 * 1.0 + 0.21 * 1/3 + 0.3 * 1
        assert relations[0].confidence == pytest.approx(0.86)
        assert relations[0].metadata.project_similarity == 1.0
        assert relations[0].metadata.schema_similarity is None

    def test_three_way_schema(self, make_object):
        config = _semantic_config(
            semantic_weight=0.7,
            similarity_threshold=0.5,
            use_schema_signal=True,
            schema_weight=0.2,
        )
        obj1 = make_object("linear-auth-1", keywords=["a", "b"], actors={"created_by": "u"})
        obj2 = make_object("github-billing-2", keywords=["b", "c"], actors={"created_by": "u"})

        relations = FusionEngine(config).infer([obj1, obj2], {"linear-auth-1": [1.0], "github-billing-2": [1.0]})

        # 0.56 * 1.0 + 0.24 * 1/3 + 0.2 * 0.7
        assert relations[0].confidence == pytest.approx(0.78)
        assert relations[0].metadata.schema_similarity == pytest.approx(0.7)
        assert relations[0].metadata.project_similarity is None

    @pytest.mark.parametrize(
        "project,schema",
        [(False, False), (True, False), (False, True), (True, True)],
    )
    def test_combined_in_unit_interval(self, make_object, project, schema):
        config = _semantic_config(
            similarity_threshold=0.0,
            use_project_metadata=project,
            use_schema_signal=schema,
        )
        objects = [
            make_object("linear-auth-1", keywords=["a", "b"], actors={"created_by": "u"}),
            make_object("linear-auth-2", keywords=["b", "c"], actors={"created_by": "u"}),
            make_object("github-billing-3", keywords=["c"], relations={"linked_issues": ["linear-auth-1"]}),
        ]
        embeddings = {
            "linear-auth-1": [0.2, 0.9, -0.1],
            "linear-auth-2": [0.3, 0.8, 0.0],
            "github-billing-3": [-0.9, 0.1, 0.4],
        }

        relations = FusionEngine(config).infer(objects, embeddings)

        assert relations
        assert all(0.0 <= r.confidence <= 1.0 for r in relations)


class TestSymmetry:
    """Every accepted pair yields a mirrored pair with identical payload."""

    def test_mirrored_edges(self, make_object):
        objects = [make_object(f"o{i}", keywords=["shared", f"k{i % 2}"]) for i in range(5)]
        relations = FusionEngine(InferenceConfig(keyword_overlap_threshold=0.3)).infer(objects)

        assert len(relations) % 2 == 0
        for forward, backward in zip(relations[::2], relations[1::2]):
            assert (forward.from_id, forward.to_id) == (backward.to_id, backward.from_id)
            assert forward.confidence == backward.confidence
            assert forward.metadata == backward.metadata


class TestParallelism:
    """Partitioned runs reproduce the serial result."""

    def test_workers_preserve_order(self, make_object):
        objects = [make_object(f"o{i}", keywords=["shared", f"k{i % 3}", f"m{i % 2}"]) for i in range(12)]
        engine = FusionEngine(InferenceConfig(keyword_overlap_threshold=0.2))

        serial = engine.infer(objects)
        parallel = engine.infer(objects, workers=4)

        assert [r.key() for r in parallel] == [r.key() for r in serial]
        assert [r.confidence for r in parallel] == [r.confidence for r in serial]


class TestCancellation:
    """A cancelled token stops the pair loop."""

    def test_cancelled_before_start(self, keyword_objects):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(InferenceCancelledError) as exc_info:
            FusionEngine(InferenceConfig()).infer(keyword_objects, token=token)
        assert exc_info.value.stage == "similarity"


class TestObserver:
    """Stage events are reported instead of printed."""

    def test_stage_events(self, keyword_objects):
        observer = Mock(spec=IInferenceObserver)

        FusionEngine(InferenceConfig(keyword_overlap_threshold=0.5), observer=observer).infer(keyword_objects)

        observer.stage_started.assert_called_once()
        observer.stage_completed.assert_called_once()
        counts = observer.stage_completed.call_args.kwargs
        assert counts["total_pairs"] == 3
        assert counts["passed_threshold"] == 1
        assert counts["relations"] == 2


def _scorer(embeddings):
    from relgraph.inference.scoring import SemanticSimilarityScorer

    return SemanticSimilarityScorer(embeddings)
