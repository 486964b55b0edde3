"""
Document Threshold Filter

Second-stage filter over pair-level similarity relations. Relations are
grouped by the unordered pair of projects their endpoints belong to; a
cross-project group survives only if it is strong on average. Same-project
groups are always kept.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..interfaces import IInferenceObserver
from ..models import Relation
from ..observability import NullObserver
from .scoring import extract_project

logger = logging.getLogger(__name__)

STAGE = "document_threshold"


def project_key(object_id: str) -> str:
    """Project token for grouping; ids without a project group by themselves."""
    return extract_project(object_id) or object_id


@dataclass
class ProjectGroup:
    """All relations between two projects."""
    projects: Tuple[str, str]
    relations: List[Relation] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.projects[0]}|{self.projects[1]}"

    @property
    def same_project(self) -> bool:
        return self.projects[0] == self.projects[1]

    @property
    def match_count(self) -> int:
        return len(self.relations)

    @property
    def avg_score(self) -> float:
        if not self.relations:
            return 0.0
        return sum(r.confidence for r in self.relations) / len(self.relations)


class DocumentThresholdFilter:
    """Drops weak cross-project groups of similarity relations."""

    def __init__(
        self,
        document_threshold: float = 0.25,
        min_chunk_matches: int = 1,
        observer: Optional[IInferenceObserver] = None,
    ):
        self.document_threshold = document_threshold
        self.min_chunk_matches = min_chunk_matches
        self.observer = observer or NullObserver()

    def group(self, relations: Sequence[Relation]) -> Dict[Tuple[str, str], ProjectGroup]:
        """Group relations by sorted (project, project) key."""
        groups: Dict[Tuple[str, str], ProjectGroup] = {}
        for relation in relations:
            key = tuple(sorted((project_key(relation.from_id), project_key(relation.to_id))))
            if key not in groups:
                groups[key] = ProjectGroup(projects=key)
            groups[key].relations.append(relation)
        return groups

    def keeps(self, group: ProjectGroup) -> bool:
        """Whether every relation of this group survives."""
        if group.same_project:
            return True
        return group.avg_score >= self.document_threshold and group.match_count >= self.min_chunk_matches

    def apply(self, relations: Sequence[Relation]) -> List[Relation]:
        """Filter relations, preserving their input order."""
        if not relations:
            return []

        self.observer.stage_started(
            STAGE,
            document_threshold=self.document_threshold,
            min_chunk_matches=self.min_chunk_matches,
            relations=len(relations),
        )

        groups = self.group(relations)
        kept_keys = set()
        for key, group in groups.items():
            kept = self.keeps(group)
            if kept:
                kept_keys.add(key)
            self.observer.group_evaluated(group.key, group.avg_score, group.match_count, kept)

        filtered = [
            r for r in relations
            if tuple(sorted((project_key(r.from_id), project_key(r.to_id)))) in kept_keys
        ]

        self.observer.stage_completed(
            STAGE,
            project_pairs_kept=len(kept_keys),
            project_pairs_filtered=len(groups) - len(kept_keys),
            relations_before=len(relations),
            relations_after=len(filtered),
        )
        return filtered
