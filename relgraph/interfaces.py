"""Abstract interfaces the inference engine depends on."""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional


class ILLMProvider(ABC):
    """Interface for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Complete a prompt."""
        pass

    @abstractmethod
    def estimate_tokens(self, text: str) -> int:
        """Estimate token count."""
        pass


class IInferenceObserver(ABC):
    """Receives structured trace events from the scoring stages.

    Scorers never print; they report here so the core stays side-effect free.
    """

    @abstractmethod
    def stage_started(self, stage: str, **fields: Any) -> None:
        """A pipeline stage is about to run."""
        pass

    @abstractmethod
    def pair_scored(
        self,
        stage: str,
        from_id: str,
        to_id: str,
        scores: Dict[str, float],
        passed: bool,
    ) -> None:
        """A candidate pair received its signal scores."""
        pass

    @abstractmethod
    def group_evaluated(self, key: str, avg_score: float, match_count: int, kept: bool) -> None:
        """A project-pair group was evaluated by the document threshold."""
        pass

    @abstractmethod
    def stage_completed(self, stage: str, **counts: Any) -> None:
        """A pipeline stage finished."""
        pass

    @abstractmethod
    def warning(self, event: str, **fields: Any) -> None:
        """A soft failure that did not stop the stage."""
        pass
