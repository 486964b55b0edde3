"""
Contrastive ICL Classifier

Asks a language model whether two objects are related, using worked
positive and negative examples as in-context guidance. Pairs are judged
concurrently up to ``max_concurrency``; a failed or timed-out call counts as
NOT_RELATED and never aborts the batch.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from ..config import InferenceConfig, ContrastiveExample, NOT_RELATED, RELATED
from ..errors import ConfigurationError, ErrorHandler, RelGraphError
from ..interfaces import IInferenceObserver, ILLMProvider
from ..llm.client import LLMClient
from ..models import CanonicalObject, Relation, RelationMetadata, RelationSource, RelationType
from ..observability import NullObserver
from .pairs import CancellationToken, iter_pairs, pair_count

logger = logging.getLogger(__name__)

STAGE = "contrastive_icl"
LLM_CONFIDENCE = 0.9


@dataclass(frozen=True)
class Verdict:
    """Parsed answer for one pair."""
    related: bool
    raw: str
    prompt_length: int
    error: Optional[RelGraphError] = None


def parse_verdict(reply: Optional[str]) -> bool:
    """RELATED wins only when NOT_RELATED is absent from the reply."""
    text = (reply or "").strip().upper()
    return RELATED in text and NOT_RELATED not in text


def format_examples(examples: Iterable[ContrastiveExample]) -> str:
    return "\n\n".join(
        f'Chunk A: "{ex.chunk1}"\nChunk B: "{ex.chunk2}"\nResult: {ex.label} - {ex.reason}'
        for ex in examples
    )


class ContrastiveICLClassifier:
    """LLM judge for pairwise relatedness."""

    def __init__(
        self,
        config: InferenceConfig,
        provider: Optional[ILLMProvider] = None,
        client: Optional[LLMClient] = None,
        error_handler: Optional[ErrorHandler] = None,
        observer: Optional[IInferenceObserver] = None,
    ):
        if client is None:
            if provider is None:
                raise ConfigurationError("Contrastive ICL needs an LLM provider or client", field="llm")
            client = LLMClient(
                provider,
                config=config.llm,
                timeout=config.request_timeout,
                max_retries=config.max_retries,
                retry_base_delay=config.retry_base_delay,
            )
        self.config = config
        self.client = client
        self.error_handler = error_handler or ErrorHandler(logger=logger)
        self.observer = observer or NullObserver()

        bank = config.contrastive_examples
        self._positive = format_examples(bank.positive)
        self._negative = format_examples(bank.negative)

    def build_prompt(self, chunk1: str, chunk2: str) -> str:
        """Fill the prompt template with the examples and both chunks."""
        return (
            self.config.prompt_template
            .replace("{{positiveExamples}}", self._positive)
            .replace("{{negativeExamples}}", self._negative)
            .replace("{{chunk1}}", chunk1)
            .replace("{{chunk2}}", chunk2)
        )

    async def classify_pair(self, obj1: CanonicalObject, obj2: CanonicalObject) -> Verdict:
        """Judge one pair; failures come back as a NOT_RELATED verdict."""
        prompt = self.build_prompt(obj1.display_text, obj2.display_text)

        with self.error_handler.error_context(
            operation="classify_pair", from_id=obj1.id, to_id=obj2.id, stage=STAGE
        ):
            try:
                reply = await self.client.complete(
                    prompt,
                    temperature=self.config.llm.temperature,
                    max_tokens=self.config.llm.max_tokens,
                )
            except Exception as e:
                error = self.error_handler.handle_error(e, reraise=False)
                self.observer.warning(
                    "contrastive_call_failed",
                    from_id=obj1.id,
                    to_id=obj2.id,
                    error=error.message,
                )
                return Verdict(related=False, raw="", prompt_length=len(prompt), error=error)

        return Verdict(related=parse_verdict(reply), raw=reply or "", prompt_length=len(prompt))

    def build_relations(self, obj1: CanonicalObject, obj2: CanonicalObject, verdict: Verdict) -> List[Relation]:
        forward = Relation(
            from_id=obj1.id,
            to_id=obj2.id,
            type=RelationType.SIMILAR_TO,
            source=RelationSource.INFERRED,
            confidence=LLM_CONFIDENCE,
            metadata=RelationMetadata(
                method=STAGE,
                model=self.config.llm.model,
                prompt_length=verdict.prompt_length,
            ),
        )
        return [forward, forward.reversed()]

    async def infer(
        self,
        objects: Sequence[CanonicalObject],
        token: Optional[CancellationToken] = None,
    ) -> List[Relation]:
        """Judge every pair and return ``similar_to`` edges for related ones.

        Every pair is scheduled at once and waits on one semaphore of
        ``max_concurrency`` slots. The token is checked before scheduling and
        again as each call acquires a slot; pairs reached after cancellation
        are never sent.

        Raises:
            InferenceCancelledError: If the token was cancelled
        """
        objects = list(objects)
        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        bank = self.config.contrastive_examples

        self.observer.stage_started(
            STAGE,
            objects=len(objects),
            positive_examples=len(bank.positive),
            negative_examples=len(bank.negative),
            model=self.config.llm.model,
            max_concurrency=self.config.max_concurrency,
        )

        async def judge(obj1: CanonicalObject, obj2: CanonicalObject) -> Optional[Verdict]:
            async with semaphore:
                if token is not None and token.cancelled:
                    return None
                return await self.classify_pair(obj1, obj2)

        if token is not None:
            token.raise_if_cancelled(STAGE)

        pairs = list(iter_pairs(len(objects)))
        verdicts = await asyncio.gather(*(judge(objects[i], objects[j]) for i, j in pairs))

        relations: List[Relation] = []
        related = 0
        failed = 0
        for (i, j), verdict in zip(pairs, verdicts):
            if verdict is None:
                continue
            obj1 = objects[i]
            obj2 = objects[j]
            if verdict.error is not None:
                failed += 1
            self.observer.pair_scored(
                STAGE, obj1.id, obj2.id, {"confidence": LLM_CONFIDENCE if verdict.related else 0.0}, verdict.related
            )
            if verdict.related:
                related += 1
                relations.extend(self.build_relations(obj1, obj2, verdict))

        if token is not None:
            token.raise_if_cancelled(STAGE)

        self.observer.stage_completed(
            STAGE,
            total_pairs=pair_count(len(objects)),
            related_pairs=related,
            failed_pairs=failed,
            relations=len(relations),
        )
        return relations
