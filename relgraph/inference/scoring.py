"""
Signal Scorers

Pure pairwise similarity signals used by the fusion stage: keyword overlap,
embedding cosine, project-id match and schema (actor/link) overlap.
"""

import logging
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..interfaces import IInferenceObserver
from ..models import CanonicalObject
from ..observability import NullObserver

logger = logging.getLogger(__name__)

MIN_TITLE_WORD_LENGTH = 4


def extract_keywords(obj: CanonicalObject) -> FrozenSet[str]:
    """Token set for an object: keywords, labels and title words longer than 3 chars."""
    tokens = set()
    for keyword in obj.properties.keywords:
        tokens.add(keyword.lower())
    for label in obj.properties.labels:
        tokens.add(label.lower())
    if obj.title:
        for word in obj.title.lower().split():
            if len(word) >= MIN_TITLE_WORD_LENGTH:
                tokens.add(word)
    return frozenset(tokens)


def jaccard_similarity(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    """|a ∩ b| / |a ∪ b|; 0.0 when both sets are empty."""
    union = len(a | b)
    if union == 0:
        return 0.0
    return len(a & b) / union


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Mismatched dimensions and zero-magnitude vectors score 0 instead of raising.
    """
    a = np.asarray(vec1, dtype=float)
    b = np.asarray(vec2, dtype=float)
    if a.shape != b.shape:
        logger.warning(f"Embedding dimension mismatch: {a.shape} vs {b.shape}; scoring 0")
        return 0.0
    magnitude = float(np.linalg.norm(a) * np.linalg.norm(b))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(a, b) / magnitude)


def extract_project(object_id: str) -> Optional[str]:
    """Project token from an id shaped ``{platform}-{project...}-{number}``.

    ``"linear-auth-revamp-1"`` -> ``"auth-revamp"``; fewer than 3 segments -> None.
    """
    parts = object_id.split("-")
    if len(parts) < 3:
        return None
    return "-".join(parts[1:-1])


class KeywordSimilarityScorer:
    """Jaccard similarity over per-object token sets."""

    def __init__(self, threshold: float = 0.65):
        self.threshold = threshold

    def build_index(self, objects: Iterable[CanonicalObject]) -> Dict[str, FrozenSet[str]]:
        """Token set per object id."""
        return {obj.id: extract_keywords(obj) for obj in objects}

    def score(self, keywords1: FrozenSet[str], keywords2: FrozenSet[str]) -> Tuple[float, Tuple[str, ...]]:
        """Similarity and the sorted shared tokens; empty sets score 0."""
        if not keywords1 or not keywords2:
            return 0.0, ()
        shared = keywords1 & keywords2
        return jaccard_similarity(keywords1, keywords2), tuple(sorted(shared))

    def qualifies(self, similarity: float) -> bool:
        return similarity >= self.threshold


class SemanticSimilarityScorer:
    """Cosine similarity between embeddings looked up by object id."""

    def __init__(
        self,
        embeddings: Mapping[str, Sequence[float]],
        observer: Optional[IInferenceObserver] = None,
    ):
        self.observer = observer or NullObserver()
        self._vectors: Dict[str, np.ndarray] = {}
        self._norms: Dict[str, float] = {}
        for object_id, vector in embeddings.items():
            arr = np.asarray(vector, dtype=float)
            self._vectors[object_id] = arr
            self._norms[object_id] = float(np.linalg.norm(arr))

    def __len__(self) -> int:
        return len(self._vectors)

    def has(self, object_id: str) -> bool:
        return object_id in self._vectors

    def score(self, id1: str, id2: str) -> Optional[float]:
        """Cosine similarity, or None when either embedding is missing."""
        a = self._vectors.get(id1)
        b = self._vectors.get(id2)
        if a is None or b is None:
            return None
        if a.shape != b.shape:
            logger.warning(f"Embedding dimension mismatch for {id1} ({a.shape}) and {id2} ({b.shape}); scoring 0")
            self.observer.warning(
                "embedding_dimension_mismatch",
                from_id=id1,
                to_id=id2,
                dims=(a.shape[0] if a.ndim else 0, b.shape[0] if b.ndim else 0),
            )
            return 0.0
        magnitude = self._norms[id1] * self._norms[id2]
        if magnitude == 0.0:
            return 0.0
        return float(np.dot(a, b) / magnitude)


class ProjectMetadataScorer:
    """1.0 when both ids carry the same project token (case-insensitive), else 0."""

    def score(self, obj1: CanonicalObject, obj2: CanonicalObject) -> float:
        proj1 = extract_project(obj1.id)
        proj2 = extract_project(obj2.id)
        if not proj1 or not proj2:
            return 0.0
        return 1.0 if proj1.lower() == proj2.lower() else 0.0


class SchemaSignalScorer:
    """
    Structural relatedness from actors and explicit links.

    Each applicable signal adds a partial score and counts toward the
    denominator; the result is the mean over applicable signals, capped at 1.
    """

    ASSIGNEE_SCORE = 1.0
    CREATOR_SCORE = 0.7
    PARTICIPANT_SCALE = 0.5
    LINK_SCORE = 1.0
    PARENT_SCORE = 1.0
    SIBLING_SCORE = 0.8

    def score(self, obj1: CanonicalObject, obj2: CanonicalObject) -> float:
        score, _ = self.score_with_evidence(obj1, obj2)
        return score

    def score_with_evidence(self, obj1: CanonicalObject, obj2: CanonicalObject) -> Tuple[float, List[str]]:
        """Score plus a short description of every signal that fired."""
        total = 0.0
        signals = 0
        evidence: List[str] = []

        assignees1 = set(obj1.actors.assignees)
        assignees2 = set(obj2.actors.assignees)
        if assignees1 and assignees2:
            shared = assignees1 & assignees2
            if shared:
                total += self.ASSIGNEE_SCORE
                evidence.append(f"shared_assignee:{','.join(sorted(shared))}")
            signals += 1

        creator1 = obj1.actors.created_by
        creator2 = obj2.actors.created_by
        if creator1 and creator2:
            if creator1 == creator2:
                total += self.CREATOR_SCORE
                evidence.append(f"same_creator:{creator1}")
            signals += 1

        participants1 = set(obj1.actors.participants)
        participants2 = set(obj2.actors.participants)
        if participants1 and participants2:
            overlap = len(participants1 & participants2)
            ratio = overlap / min(len(participants1), len(participants2))
            total += ratio * self.PARTICIPANT_SCALE
            if overlap:
                evidence.append(f"participant_overlap:{ratio:.2f}")
            signals += 1

        if obj1.relations.links_to(obj2.id) or obj2.relations.links_to(obj1.id):
            total += self.LINK_SCORE
            evidence.append("explicit_link")
            signals += 1

        if obj1.relations.parent_id == obj2.id or obj2.relations.parent_id == obj1.id:
            total += self.PARENT_SCORE
            evidence.append("parent_child")
            signals += 1

        parent1 = obj1.relations.parent_id
        if parent1 and parent1 == obj2.relations.parent_id:
            total += self.SIBLING_SCORE
            evidence.append(f"siblings:{parent1}")
            signals += 1

        if signals == 0:
            return 0.0, evidence
        return min(total / signals, 1.0), evidence
