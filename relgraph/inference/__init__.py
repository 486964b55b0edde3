"""Relation inference stages."""

from .pairs import CancellationToken, iter_pairs, pair_count, partition_rows
from .explicit import ExplicitRelationExtractor
from .duplicates import DuplicateDetector
from .scoring import (
    KeywordSimilarityScorer,
    SemanticSimilarityScorer,
    ProjectMetadataScorer,
    SchemaSignalScorer,
    cosine_similarity,
    extract_keywords,
    extract_project,
    jaccard_similarity,
)
from .fusion import FusionEngine, PairScore
from .document_filter import DocumentThresholdFilter, ProjectGroup
from .contrastive import ContrastiveICLClassifier, Verdict
from .aggregator import RelationAggregator
from .engine import RelationInferenceEngine

__all__ = [
    "CancellationToken",
    "iter_pairs",
    "pair_count",
    "partition_rows",
    "ExplicitRelationExtractor",
    "DuplicateDetector",
    "KeywordSimilarityScorer",
    "SemanticSimilarityScorer",
    "ProjectMetadataScorer",
    "SchemaSignalScorer",
    "cosine_similarity",
    "extract_keywords",
    "extract_project",
    "jaccard_similarity",
    "FusionEngine",
    "PairScore",
    "DocumentThresholdFilter",
    "ProjectGroup",
    "ContrastiveICLClassifier",
    "Verdict",
    "RelationAggregator",
    "RelationInferenceEngine",
]
