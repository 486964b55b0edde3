"""Explicit relation extraction from structural fields."""

import logging
from typing import Iterable, List, Optional

from ..models import CanonicalObject, Relation, RelationSource, RelationType

logger = logging.getLogger(__name__)


class ExplicitRelationExtractor:
    """Maps fields already present on each object to confidence-1.0 edges.

    No scoring happens here; missing optional fields are skipped.
    """

    def extract(self, objects: Iterable[CanonicalObject]) -> List[Relation]:
        """Extract explicit relations from canonical objects."""
        relations: List[Relation] = []
        for obj in objects:
            relations.extend(self.extract_one(obj))
        logger.debug(f"Extracted {len(relations)} explicit relations")
        return relations

    def extract_one(self, obj: CanonicalObject) -> List[Relation]:
        """Extract explicit relations for a single object."""
        created_at = obj.timestamps.created_at
        rels = obj.relations
        actors = obj.actors
        out: List[Relation] = []

        if rels.triggered_by_ticket:
            out.append(self._edge(obj.id, rels.triggered_by_ticket, RelationType.TRIGGERED_BY, created_at))

        if rels.resulted_in_issue:
            out.append(self._edge(obj.id, rels.resulted_in_issue, RelationType.RESULTED_IN, created_at))

        if actors.created_by:
            out.append(self._edge(obj.id, actors.created_by, RelationType.CREATED_BY, created_at))

        for assignee in actors.assignees:
            out.append(self._edge(obj.id, assignee, RelationType.ASSIGNED_TO, created_at))

        # Decider and participants point at the object
        if actors.decided_by:
            decided_at = obj.timestamps.decided_at or obj.timestamps.updated_at
            out.append(self._edge(actors.decided_by, obj.id, RelationType.DECIDED_BY, decided_at))

        for participant in actors.participants:
            out.append(self._edge(participant, obj.id, RelationType.PARTICIPATED_IN, created_at))

        for pr_id in rels.linked_prs:
            out.append(self._edge(obj.id, pr_id, RelationType.RELATED_TO, created_at))

        for issue_id in rels.linked_issues:
            out.append(self._edge(obj.id, issue_id, RelationType.RELATED_TO, created_at))

        if rels.parent_id:
            out.append(self._edge(obj.id, rels.parent_id, RelationType.BELONGS_TO, created_at))

        return out

    @staticmethod
    def _edge(from_id: str, to_id: str, relation_type: RelationType, created_at: Optional[str]) -> Relation:
        kwargs = {}
        if created_at:
            kwargs["created_at"] = created_at
        return Relation(
            from_id=from_id,
            to_id=to_id,
            type=relation_type,
            source=RelationSource.EXPLICIT,
            confidence=1.0,
            **kwargs,
        )
