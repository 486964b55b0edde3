"""Core data models for canonical objects and inferred relations."""

import json
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RelationType(str, Enum):
    """Kinds of edges the inference engine can emit."""

    TRIGGERED_BY = "triggered_by"
    RESULTED_IN = "resulted_in"
    BELONGS_TO = "belongs_to"
    ASSIGNED_TO = "assigned_to"
    CREATED_BY = "created_by"
    DECIDED_BY = "decided_by"
    PARTICIPATED_IN = "participated_in"
    SIMILAR_TO = "similar_to"
    DUPLICATE_OF = "duplicate_of"
    RELATED_TO = "related_to"


class RelationSource(str, Enum):
    """Where a relation came from."""

    EXPLICIT = "explicit"
    INFERRED = "inferred"
    COMPUTED = "computed"


class Direction(str, Enum):
    """Direction filter for relation lookups."""

    FROM = "from"
    TO = "to"
    BOTH = "both"


def _decode_json_field(value: Any) -> Any:
    """Decode JSONB columns that come back from the store as strings."""
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value) if value.strip() else {}
    return value


class Actors(BaseModel):
    """People attached to a canonical object."""

    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    assignees: List[str] = Field(default_factory=list)
    participants: List[str] = Field(default_factory=list)
    decided_by: Optional[str] = None

    model_config = ConfigDict(extra="allow", frozen=True)

    @field_validator("assignees", "participants", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []


class Timestamps(BaseModel):
    """ISO-8601 timestamps of a canonical object."""

    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    decided_at: Optional[str] = None

    model_config = ConfigDict(extra="allow", frozen=True)


class ObjectRelations(BaseModel):
    """Structural links already present on a canonical object."""

    parent_id: Optional[str] = None
    linked_issues: List[str] = Field(default_factory=list)
    linked_prs: List[str] = Field(default_factory=list)
    triggered_by_ticket: Optional[str] = None
    resulted_in_issue: Optional[str] = None

    model_config = ConfigDict(extra="allow", frozen=True)

    @field_validator("linked_issues", "linked_prs", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []

    def links_to(self, object_id: str) -> bool:
        """Check whether this object explicitly links to ``object_id``."""
        return object_id in self.linked_issues or object_id in self.linked_prs


class Properties(BaseModel):
    """Free-form properties; keywords and labels drive keyword similarity."""

    keywords: List[str] = Field(default_factory=list)
    labels: List[str] = Field(default_factory=list)
    status: Optional[str] = None

    model_config = ConfigDict(extra="allow", frozen=True)

    @field_validator("keywords", "labels", mode="before")
    @classmethod
    def drop_non_lists(cls, v):
        """Treat non-list keyword/label values as absent."""
        if not isinstance(v, (list, tuple)):
            return []
        return [str(item) for item in v if item is not None]


class CanonicalObject(BaseModel):
    """A normalized record from any source platform."""

    id: str
    platform: str
    object_type: str
    title: Optional[str] = None
    body: Optional[str] = None
    actors: Actors = Field(default_factory=Actors)
    timestamps: Timestamps = Field(default_factory=Timestamps)
    properties: Properties = Field(default_factory=Properties)
    relations: ObjectRelations = Field(default_factory=ObjectRelations)
    semantic_hash: Optional[str] = None

    model_config = ConfigDict(extra="allow", frozen=True)

    @field_validator("actors", "timestamps", "properties", "relations", mode="before")
    @classmethod
    def decode_json(cls, v):
        """Accept JSON-encoded strings for the nested JSONB fields."""
        return _decode_json_field(v)

    @property
    def display_text(self) -> str:
        """Text used when the object is shown to a language model."""
        return self.title or self.id


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class RelationMetadata:
    """Signal breakdown and evidence attached to a relation.

    Every key is optional; only the keys a given stage sets are serialized.
    """

    combined_similarity: Optional[float] = None
    keyword_similarity: Optional[float] = None
    keyword_overlap_score: Optional[float] = None
    shared_keywords: Optional[Tuple[str, ...]] = None
    semantic_similarity: Optional[float] = None
    project_similarity: Optional[float] = None
    project_1: Optional[str] = None
    project_2: Optional[str] = None
    schema_similarity: Optional[float] = None
    semantic_hash: Optional[str] = None
    detection_method: Optional[str] = None
    group_size: Optional[int] = None
    method: Optional[str] = None
    model: Optional[str] = None
    prompt_length: Optional[int] = None
    evidence: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to a dictionary, omitting unset keys."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            result[f.name] = list(value) if isinstance(value, tuple) else value
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RelationMetadata":
        """Create metadata from a dictionary, ignoring unknown keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            if key not in known:
                continue
            kwargs[key] = tuple(value) if isinstance(value, list) else value
        return cls(**kwargs)


@dataclass(frozen=True)
class Relation:
    """A typed, directed, confidence-scored edge between two objects."""

    from_id: str
    to_id: str
    type: RelationType
    source: RelationSource
    confidence: float = 1.0
    metadata: RelationMetadata = field(default_factory=RelationMetadata)
    created_at: str = field(default_factory=utc_now_iso)

    def __post_init__(self):
        # Frozen dataclass: clamp through object.__setattr__
        object.__setattr__(self, "type", RelationType(self.type))
        object.__setattr__(self, "source", RelationSource(self.source))
        object.__setattr__(self, "confidence", min(max(float(self.confidence), 0.0), 1.0))

    def reversed(self) -> "Relation":
        """Return the mirrored edge with identical confidence and metadata."""
        return replace(self, from_id=self.to_id, to_id=self.from_id)

    def key(self) -> Tuple[str, str, str]:
        """Identity used when comparing relation sets."""
        return (self.from_id, self.to_id, self.type.value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert relation to dictionary representation."""
        return {
            "from_id": self.from_id,
            "to_id": self.to_id,
            "type": self.type.value,
            "source": self.source.value,
            "confidence": self.confidence,
            "metadata": self.metadata.to_dict(),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Relation":
        """Create a Relation from its dictionary representation."""
        kwargs = {
            "from_id": data["from_id"],
            "to_id": data["to_id"],
            "type": RelationType(data["type"]),
            "source": RelationSource(data.get("source", RelationSource.EXPLICIT.value)),
            "confidence": float(data.get("confidence", 1.0)),
            "metadata": RelationMetadata.from_dict(data.get("metadata")),
        }
        if data.get("created_at"):
            kwargs["created_at"] = data["created_at"]
        return cls(**kwargs)
