"""Merging and querying of relation lists."""

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..models import Direction, Relation, RelationType


class RelationAggregator:
    """Stateless helpers over lists of relations."""

    @staticmethod
    def merge(*groups: Optional[Iterable[Relation]]) -> List[Relation]:
        """Concatenate relation groups in order, skipping stages that did not run."""
        merged: List[Relation] = []
        for group in groups:
            if group:
                merged.extend(group)
        return merged

    @staticmethod
    def get_relations_for(
        relations: Sequence[Relation],
        object_id: str,
        direction: Union[Direction, str] = Direction.BOTH,
    ) -> List[Relation]:
        """Relations leaving, entering or touching ``object_id``."""
        direction = Direction(direction)
        if direction == Direction.FROM:
            return [r for r in relations if r.from_id == object_id]
        if direction == Direction.TO:
            return [r for r in relations if r.to_id == object_id]
        return [r for r in relations if r.from_id == object_id or r.to_id == object_id]

    @staticmethod
    def get_relations_by_type(
        relations: Sequence[Relation],
        relation_type: Union[RelationType, str],
    ) -> List[Relation]:
        relation_type = RelationType(relation_type)
        return [r for r in relations if r.type == relation_type]

    @staticmethod
    def get_stats(relations: Sequence[Relation]) -> Dict[str, Any]:
        """Counts by type and source plus mean confidence (0 when empty)."""
        by_type = Counter(r.type.value for r in relations)
        by_source = Counter(r.source.value for r in relations)
        total = len(relations)
        return {
            "total": total,
            "by_type": dict(by_type),
            "by_source": dict(by_source),
            "avg_confidence": sum(r.confidence for r in relations) / total if total else 0.0,
        }
