"""
Fusion Engine

Combines the active similarity signals for each object pair into a single
confidence and gates the pair against the applicable threshold.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from ..config import InferenceConfig
from ..interfaces import IInferenceObserver
from ..models import CanonicalObject, Relation, RelationMetadata, RelationSource, RelationType
from ..observability import NullObserver
from .pairs import CancellationToken, iter_pairs, pair_count, partition_rows
from .scoring import (
    KeywordSimilarityScorer,
    ProjectMetadataScorer,
    SchemaSignalScorer,
    SemanticSimilarityScorer,
    extract_project,
)

logger = logging.getLogger(__name__)

STAGE = "similarity"


@dataclass
class PairScore:
    """Signal breakdown for one candidate pair."""
    keyword: float
    shared_keywords: Tuple[str, ...]
    semantic: Optional[float]
    project: Optional[float]
    schema: Optional[float]
    combined: float
    threshold: float
    schema_evidence: List[str] = field(default_factory=list)

    @property
    def has_embeddings(self) -> bool:
        return self.semantic is not None

    @property
    def passed(self) -> bool:
        return self.combined >= self.threshold

    def as_dict(self) -> Dict[str, float]:
        scores = {"keyword": self.keyword, "combined": self.combined, "threshold": self.threshold}
        if self.semantic is not None:
            scores["semantic"] = self.semantic
        if self.project is not None:
            scores["project"] = self.project
        if self.schema is not None:
            scores["schema"] = self.schema
        return scores


@dataclass
class _ChunkResult:
    relations: List[Relation] = field(default_factory=list)
    pairs: int = 0
    semantic_pairs: int = 0
    passed: int = 0


def _unit(value: float) -> float:
    return min(max(value, 0.0), 1.0)


class FusionEngine:
    """Weighted multi-signal similarity over all object pairs."""

    def __init__(self, config: InferenceConfig, observer: Optional[IInferenceObserver] = None):
        self.config = config
        self.observer = observer or NullObserver()
        self.keyword_scorer = KeywordSimilarityScorer(config.keyword_overlap_threshold)
        self.project_scorer = ProjectMetadataScorer()
        self.schema_scorer = SchemaSignalScorer()

    def score_pair(
        self,
        obj1: CanonicalObject,
        obj2: CanonicalObject,
        keywords1: FrozenSet[str],
        keywords2: FrozenSet[str],
        semantic_scorer: Optional[SemanticSimilarityScorer] = None,
    ) -> PairScore:
        """Score one pair with every active signal and fuse the result."""
        config = self.config
        keyword_sim, shared = self.keyword_scorer.score(keywords1, keywords2)

        semantic_sim = None
        if config.use_semantic_similarity and semantic_scorer is not None:
            semantic_sim = semantic_scorer.score(obj1.id, obj2.id)

        has_embeddings = semantic_sim is not None
        weights = config.fusion_weights(has_embeddings)

        project_sim = None
        if "project" in weights:
            project_sim = self.project_scorer.score(obj1, obj2)

        schema_sim = None
        evidence: List[str] = []
        if "schema" in weights:
            schema_sim, evidence = self.schema_scorer.score_with_evidence(obj1, obj2)

        signal_values = {
            "semantic": _unit(semantic_sim) if semantic_sim is not None else 0.0,
            "keyword": keyword_sim,
            "project": project_sim or 0.0,
            "schema": schema_sim or 0.0,
        }
        combined = _unit(sum(weight * signal_values[name] for name, weight in weights.items()))

        threshold = config.similarity_threshold if has_embeddings else config.keyword_overlap_threshold

        return PairScore(
            keyword=keyword_sim,
            shared_keywords=shared,
            semantic=semantic_sim,
            project=project_sim,
            schema=schema_sim,
            combined=combined,
            threshold=threshold,
            schema_evidence=evidence,
        )

    def build_metadata(self, obj1: CanonicalObject, obj2: CanonicalObject, score: PairScore) -> RelationMetadata:
        """Record each contributing sub-score and the shared keywords."""
        kwargs = {"combined_similarity": score.combined}
        if score.keyword > 0:
            kwargs["keyword_similarity"] = score.keyword
            kwargs["shared_keywords"] = score.shared_keywords
        if not score.has_embeddings:
            kwargs["keyword_overlap_score"] = score.keyword
        if score.semantic is not None and score.semantic > 0:
            kwargs["semantic_similarity"] = score.semantic
        if score.project:
            kwargs["project_similarity"] = score.project
            kwargs["project_1"] = extract_project(obj1.id)
            kwargs["project_2"] = extract_project(obj2.id)
        if score.schema:
            kwargs["schema_similarity"] = score.schema
            if score.schema_evidence:
                kwargs["evidence"] = tuple(score.schema_evidence)
        return RelationMetadata(**kwargs)

    def build_relations(self, obj1: CanonicalObject, obj2: CanonicalObject, score: PairScore) -> List[Relation]:
        """Symmetric ``similar_to`` pair for an accepted score."""
        forward = Relation(
            from_id=obj1.id,
            to_id=obj2.id,
            type=RelationType.SIMILAR_TO,
            source=RelationSource.COMPUTED,
            confidence=score.combined,
            metadata=self.build_metadata(obj1, obj2, score),
        )
        return [forward, forward.reversed()]

    def _run_rows(
        self,
        objects: Sequence[CanonicalObject],
        keyword_index: Mapping[str, FrozenSet[str]],
        semantic_scorer: Optional[SemanticSimilarityScorer],
        start_row: int,
        stop_row: int,
        token: Optional[CancellationToken],
    ) -> _ChunkResult:
        result = _ChunkResult()
        for i, j in iter_pairs(len(objects), start_row, stop_row, token=token, stage=STAGE):
            obj1 = objects[i]
            obj2 = objects[j]
            result.pairs += 1

            keywords1 = keyword_index[obj1.id]
            keywords2 = keyword_index[obj2.id]
            score = self.score_pair(obj1, obj2, keywords1, keywords2, semantic_scorer)

            if score.has_embeddings:
                result.semantic_pairs += 1
            elif not keywords1 or not keywords2:
                # Nothing to compare without embeddings
                continue

            self.observer.pair_scored(STAGE, obj1.id, obj2.id, score.as_dict(), score.passed)

            if score.passed:
                result.passed += 1
                result.relations.extend(self.build_relations(obj1, obj2, score))
        return result

    def infer(
        self,
        objects: Sequence[CanonicalObject],
        embeddings: Optional[Mapping[str, Sequence[float]]] = None,
        token: Optional[CancellationToken] = None,
        workers: int = 1,
    ) -> List[Relation]:
        """Score every pair and return the accepted ``similar_to`` relations.

        Args:
            objects: Canonical objects to compare
            embeddings: Optional object id -> embedding vector map
            token: Optional cancellation token, checked once per outer row
            workers: Number of threads splitting the pair-index space

        Returns:
            Relations in serial pair order, forward edge before its mirror
        """
        objects = list(objects)
        config = self.config
        semantic_scorer = None
        if embeddings is not None and config.use_semantic_similarity:
            semantic_scorer = SemanticSimilarityScorer(embeddings, observer=self.observer)

        self.observer.stage_started(
            STAGE,
            objects=len(objects),
            embeddings=len(semantic_scorer) if semantic_scorer is not None else 0,
            use_semantic_similarity=config.use_semantic_similarity,
            semantic_weight=config.semantic_weight,
            similarity_threshold=config.similarity_threshold,
            keyword_overlap_threshold=config.keyword_overlap_threshold,
            use_project_metadata=config.use_project_metadata,
            project_weight=config.project_weight,
            use_schema_signal=config.use_schema_signal,
            schema_weight=config.schema_weight,
            workers=workers,
        )

        keyword_index = self.keyword_scorer.build_index(objects)
        ranges = partition_rows(len(objects), workers)

        if len(ranges) == 1:
            chunks = [self._run_rows(objects, keyword_index, semantic_scorer, 0, len(objects), token)]
        else:
            with ThreadPoolExecutor(max_workers=len(ranges)) as executor:
                futures = [
                    executor.submit(self._run_rows, objects, keyword_index, semantic_scorer, start, stop, token)
                    for start, stop in ranges
                ]
                chunks = [future.result() for future in futures]

        relations: List[Relation] = []
        for chunk in chunks:
            relations.extend(chunk.relations)

        self.observer.stage_completed(
            STAGE,
            total_pairs=pair_count(len(objects)),
            pairs_compared=sum(c.pairs for c in chunks),
            semantic_pairs=sum(c.semantic_pairs for c in chunks),
            passed_threshold=sum(c.passed for c in chunks),
            relations=len(relations),
        )
        return relations
