"""Exact-duplicate detection by semantic hash."""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from ..config import CanonicalSelection
from ..interfaces import IInferenceObserver
from ..models import CanonicalObject, Relation, RelationMetadata, RelationSource, RelationType
from ..observability import NullObserver

logger = logging.getLogger(__name__)

_LATEST = datetime.max.replace(tzinfo=timezone.utc)


def _parse_timestamp(value: Optional[str]) -> datetime:
    """Parse an ISO timestamp; unparseable or missing values sort last."""
    if not value:
        return _LATEST
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _LATEST
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class DuplicateDetector:
    """Groups objects by ``semantic_hash`` and links duplicates to one canonical member."""

    def __init__(
        self,
        selection: CanonicalSelection = CanonicalSelection.EARLIEST_CREATED,
        observer: Optional[IInferenceObserver] = None,
    ):
        self.selection = CanonicalSelection(selection)
        self.observer = observer or NullObserver()

    def group_by_hash(self, objects: Iterable[CanonicalObject]) -> Dict[str, List[CanonicalObject]]:
        """Group hashed objects, preserving input order within each group."""
        groups: Dict[str, List[CanonicalObject]] = {}
        for obj in objects:
            if obj.semantic_hash:
                groups.setdefault(obj.semantic_hash, []).append(obj)
        return groups

    def select_canonical(self, group: List[CanonicalObject]) -> CanonicalObject:
        """Pick the member every other duplicate points at."""
        if self.selection == CanonicalSelection.INPUT_ORDER:
            return group[0]
        if self.selection == CanonicalSelection.SMALLEST_ID:
            return min(group, key=lambda o: o.id)
        return min(group, key=lambda o: (_parse_timestamp(o.timestamps.created_at), o.id))

    def detect(self, objects: Iterable[CanonicalObject]) -> List[Relation]:
        """Emit ``duplicate_of`` edges for every hash group larger than one."""
        relations: List[Relation] = []
        groups = self.group_by_hash(objects)
        self.observer.stage_started("duplicates", hash_groups=len(groups), selection=self.selection.value)

        for semantic_hash, group in groups.items():
            if len(group) < 2:
                continue

            canonical = self.select_canonical(group)
            metadata = RelationMetadata(
                semantic_hash=semantic_hash,
                detection_method="semantic_hash",
                group_size=len(group),
            )
            for member in group:
                if member is canonical:
                    continue
                relations.append(
                    Relation(
                        from_id=member.id,
                        to_id=canonical.id,
                        type=RelationType.DUPLICATE_OF,
                        source=RelationSource.COMPUTED,
                        confidence=1.0,
                        metadata=metadata,
                    )
                )
            logger.debug(f"Found {len(group)} duplicates with hash {semantic_hash[:8]}...")

        self.observer.stage_completed("duplicates", relations=len(relations))
        return relations
