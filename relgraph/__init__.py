"""relgraph: typed relation inference between canonical objects."""

from .models import (
    CanonicalObject,
    Direction,
    Relation,
    RelationMetadata,
    RelationSource,
    RelationType,
)
from .config import (
    CanonicalSelection,
    ConfigManager,
    ContrastiveExample,
    ContrastiveExampleBank,
    InferenceConfig,
    LLMConfig,
)
from .inference import CancellationToken, RelationInferenceEngine
from .observability import NullObserver, StructlogObserver, configure_logging

__version__ = "0.1.0"

__all__ = [
    "CanonicalObject",
    "Direction",
    "Relation",
    "RelationMetadata",
    "RelationSource",
    "RelationType",
    "CanonicalSelection",
    "ConfigManager",
    "ContrastiveExample",
    "ContrastiveExampleBank",
    "InferenceConfig",
    "LLMConfig",
    "CancellationToken",
    "RelationInferenceEngine",
    "NullObserver",
    "StructlogObserver",
    "configure_logging",
]
