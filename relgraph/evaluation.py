"""Precision/recall of inferred relations against labelled ground truth."""

from typing import List, Sequence, Set, Tuple

from pydantic import BaseModel, Field

from .models import Relation

RelationKey = Tuple[str, str, str]


class MatchedRelation(BaseModel):
    from_id: str
    to_id: str
    type: str
    confidence: float


class ValidationMetrics(BaseModel):
    """Outcome of comparing one scenario's inferred relations to ground truth."""

    scenario: str
    precision: float
    recall: float
    f1_score: float
    true_positives: int
    false_positives: int
    false_negatives: int
    ground_truth_total: int
    inferred_total: int
    matched_relations: List[MatchedRelation] = Field(default_factory=list)


def _keys(relations: Sequence[Relation]) -> Set[RelationKey]:
    return {r.key() for r in relations}


def calculate_metrics(
    ground_truth: Sequence[Relation],
    inferred: Sequence[Relation],
    scenario: str = "default",
) -> ValidationMetrics:
    """Compare relations by ``(from_id, to_id, type)``.

    Counts are per relation, not per distinct key, so a duplicated inferred
    relation counts twice. Ratios with a zero denominator are 0.
    """
    truth_keys = _keys(ground_truth)
    inferred_keys = _keys(inferred)

    true_positives = [r for r in inferred if r.key() in truth_keys]
    tp = len(true_positives)
    fp = len(inferred) - tp
    fn = sum(1 for r in ground_truth if r.key() not in inferred_keys)

    precision = tp / (tp + fp) if tp + fp > 0 else 0.0
    recall = tp / (tp + fn) if tp + fn > 0 else 0.0
    f1_score = 2 * precision * recall / (precision + recall) if precision + recall > 0 else 0.0

    return ValidationMetrics(
        scenario=scenario,
        precision=precision,
        recall=recall,
        f1_score=f1_score,
        true_positives=tp,
        false_positives=fp,
        false_negatives=fn,
        ground_truth_total=len(ground_truth),
        inferred_total=len(inferred),
        matched_relations=[
            MatchedRelation(from_id=r.from_id, to_id=r.to_id, type=r.type.value, confidence=r.confidence)
            for r in true_positives
        ],
    )
