"""Relation inference orchestration."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from ..config import InferenceConfig
from ..errors import ErrorHandler
from ..interfaces import IInferenceObserver, ILLMProvider
from ..llm.client import LLMClient
from ..models import CanonicalObject, Direction, Relation, RelationType
from ..observability import NullObserver
from .aggregator import RelationAggregator
from .contrastive import ContrastiveICLClassifier
from .document_filter import DocumentThresholdFilter
from .duplicates import DuplicateDetector
from .explicit import ExplicitRelationExtractor
from .fusion import FusionEngine
from .pairs import CancellationToken

logger = logging.getLogger(__name__)


class RelationInferenceEngine:
    """Runs the inference stages over a batch of canonical objects.

    The engine holds configuration and collaborators only; every call is a
    pure transform from objects (and optional embeddings) to relations.
    """

    def __init__(
        self,
        config: Optional[InferenceConfig] = None,
        llm_provider: Optional[ILLMProvider] = None,
        llm_client: Optional[LLMClient] = None,
        observer: Optional[IInferenceObserver] = None,
        error_handler: Optional[ErrorHandler] = None,
    ):
        """Initialize the engine.

        Args:
            config: Validated inference configuration (defaults if omitted)
            llm_provider: Provider used by the contrastive stage
            llm_client: Pre-built client; takes precedence over ``llm_provider``
            observer: Receives stage and pair trace events
            error_handler: Collects contrastive call failures
        """
        self.config = config or InferenceConfig()
        self.observer = observer or NullObserver()
        self.error_handler = error_handler or ErrorHandler(logger=logger)
        self.llm_provider = llm_provider
        self.llm_client = llm_client

        self.explicit = ExplicitRelationExtractor()
        self.duplicates = DuplicateDetector(self.config.canonical_selection, observer=self.observer)
        self.fusion = FusionEngine(self.config, observer=self.observer)
        self.document_filter = DocumentThresholdFilter(
            document_threshold=self.config.document_threshold,
            min_chunk_matches=self.config.min_chunk_matches,
            observer=self.observer,
        )
        self.aggregator = RelationAggregator()
        self._classifier: Optional[ContrastiveICLClassifier] = None

    @property
    def classifier(self) -> ContrastiveICLClassifier:
        """Lazily built contrastive classifier.

        Raises:
            ConfigurationError: If no LLM provider or client was supplied
        """
        if self._classifier is None:
            self._classifier = ContrastiveICLClassifier(
                self.config,
                provider=self.llm_provider,
                client=self.llm_client,
                error_handler=self.error_handler,
                observer=self.observer,
            )
        return self._classifier

    def extract_explicit(self, objects: Sequence[CanonicalObject]) -> List[Relation]:
        return self.explicit.extract(objects)

    def detect_duplicates(self, objects: Sequence[CanonicalObject]) -> List[Relation]:
        if not self.config.enable_duplicate_detection:
            return []
        return self.duplicates.detect(objects)

    def infer_similarity(
        self,
        objects: Sequence[CanonicalObject],
        embeddings: Optional[Mapping[str, Sequence[float]]] = None,
        token: Optional[CancellationToken] = None,
        workers: int = 1,
    ) -> List[Relation]:
        """Keyword or fused similarity, followed by the document threshold when enabled."""
        if not self.config.include_inferred:
            return []

        relations = self.fusion.infer(objects, embeddings=embeddings, token=token, workers=workers)

        if self.config.use_document_threshold and relations:
            relations = self.document_filter.apply(relations)
        return relations

    async def infer_contrastive(
        self,
        objects: Sequence[CanonicalObject],
        token: Optional[CancellationToken] = None,
    ) -> List[Relation]:
        """LLM-judged ``similar_to`` edges; empty unless contrastive ICL is enabled."""
        if not self.config.use_contrastive_icl or not self.config.include_inferred:
            return []
        return await self.classifier.infer(objects, token=token)

    def infer_all(
        self,
        objects: Sequence[CanonicalObject],
        embeddings: Optional[Mapping[str, Sequence[float]]] = None,
        token: Optional[CancellationToken] = None,
        workers: int = 1,
    ) -> List[Relation]:
        """Explicit, duplicate and similarity relations in that order."""
        objects = list(objects)
        return self.aggregator.merge(
            self.extract_explicit(objects),
            self.detect_duplicates(objects),
            self.infer_similarity(objects, embeddings=embeddings, token=token, workers=workers),
        )

    async def infer_all_async(
        self,
        objects: Sequence[CanonicalObject],
        embeddings: Optional[Mapping[str, Sequence[float]]] = None,
        token: Optional[CancellationToken] = None,
        workers: int = 1,
    ) -> List[Relation]:
        """Everything ``infer_all`` returns plus contrastive edges."""
        objects = list(objects)
        relations = self.infer_all(objects, embeddings=embeddings, token=token, workers=workers)
        contrastive = await self.infer_contrastive(objects, token=token)
        return self.aggregator.merge(relations, contrastive)

    def get_relations_for(
        self,
        relations: Sequence[Relation],
        object_id: str,
        direction: Union[Direction, str] = Direction.BOTH,
    ) -> List[Relation]:
        return self.aggregator.get_relations_for(relations, object_id, direction)

    def get_relations_by_type(
        self,
        relations: Sequence[Relation],
        relation_type: Union[RelationType, str],
    ) -> List[Relation]:
        return self.aggregator.get_relations_by_type(relations, relation_type)

    def get_stats(self, relations: Sequence[Relation]) -> Dict[str, Any]:
        return self.aggregator.get_stats(relations)
