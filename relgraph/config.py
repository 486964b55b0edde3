"""Configuration models for the relation inference engine."""

import json
import math
import os
import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Tuple, Union

from .errors import ConfigurationError


DEFAULT_PROMPT_TEMPLATE = """You are an expert at judging whether two text chunks are related.

Use the following examples as guidance:

[Related examples]
{{positiveExamples}}

[Unrelated examples]
{{negativeExamples}}

Now judge the relationship between these chunks:
Chunk A: "{{chunk1}}"
Chunk B: "{{chunk2}}"

Answer: RELATED or NOT_RELATED (one word only)"""

RELATED = "RELATED"
NOT_RELATED = "NOT_RELATED"


class CanonicalSelection(str, Enum):
    """How the canonical member of a duplicate group is chosen."""

    INPUT_ORDER = "input_order"
    EARLIEST_CREATED = "earliest_created"
    SMALLEST_ID = "smallest_id"


@dataclass(frozen=True)
class ContrastiveExample:
    """A worked example shown to the language model."""
    chunk1: str
    chunk2: str
    label: str
    reason: str = ""

    def __post_init__(self):
        if self.label not in (RELATED, NOT_RELATED):
            raise ConfigurationError(
                f"Contrastive example label must be {RELATED} or {NOT_RELATED}",
                field="label",
                value=self.label,
            )


@dataclass(frozen=True)
class ContrastiveExampleBank:
    """Positive and negative examples used to bias the LLM judge."""
    positive: Tuple[ContrastiveExample, ...] = ()
    negative: Tuple[ContrastiveExample, ...] = ()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ContrastiveExampleBank":
        """Build a bank from ``{"positive": [...], "negative": [...]}``."""
        if not data:
            return cls()
        positive = tuple(
            ContrastiveExample(label=RELATED, **_example_fields(ex))
            for ex in data.get("positive", [])
        )
        negative = tuple(
            ContrastiveExample(label=NOT_RELATED, **_example_fields(ex))
            for ex in data.get("negative", [])
        )
        return cls(positive=positive, negative=negative)


def _example_fields(example: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "chunk1": example["chunk1"],
        "chunk2": example["chunk2"],
        "reason": example.get("reason", ""),
    }


@dataclass(frozen=True)
class LLMConfig:
    """LLM provider configuration."""
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 100
    requests_per_minute: int = 50
    tokens_per_minute: int = 40000


@dataclass(frozen=True)
class InferenceConfig:
    """Immutable configuration for a relation inference run.

    Construction validates every threshold and weight so that fusion never
    produces scores outside [0, 1].
    """
    similarity_threshold: float = 0.85
    keyword_overlap_threshold: float = 0.65
    include_inferred: bool = True

    use_semantic_similarity: bool = False
    semantic_weight: float = 0.7

    enable_duplicate_detection: bool = True
    canonical_selection: CanonicalSelection = CanonicalSelection.EARLIEST_CREATED

    use_project_metadata: bool = False
    project_weight: float = 0.3

    use_schema_signal: bool = False
    schema_weight: float = 0.2

    use_document_threshold: bool = False
    document_threshold: float = 0.25
    min_chunk_matches: int = 1

    use_contrastive_icl: bool = False
    contrastive_examples: ContrastiveExampleBank = field(default_factory=ContrastiveExampleBank)
    llm: LLMConfig = field(default_factory=LLMConfig)
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE

    # Contrastive batch execution
    max_concurrency: int = 4
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_base_delay: float = 1.0

    def __post_init__(self):
        try:
            object.__setattr__(self, "canonical_selection", CanonicalSelection(self.canonical_selection))
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown canonical_selection: {self.canonical_selection!r}",
                field="canonical_selection",
                value=self.canonical_selection,
            ) from e

        for name in (
            "similarity_threshold",
            "keyword_overlap_threshold",
            "semantic_weight",
            "project_weight",
            "schema_weight",
            "document_threshold",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {value}", field=name, value=value)

        if self.use_project_metadata and self.use_schema_signal:
            extra = self.project_weight + self.schema_weight
            if extra > 1.0:
                raise ConfigurationError(
                    f"project_weight + schema_weight must not exceed 1, got {extra}",
                    field="project_weight",
                    value=extra,
                )

        if self.min_chunk_matches < 1:
            raise ConfigurationError("min_chunk_matches must be at least 1", field="min_chunk_matches", value=self.min_chunk_matches)
        if self.max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be at least 1", field="max_concurrency", value=self.max_concurrency)
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive", field="request_timeout", value=self.request_timeout)
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must not be negative", field="max_retries", value=self.max_retries)
        if self.retry_base_delay < 0:
            raise ConfigurationError("retry_base_delay must not be negative", field="retry_base_delay", value=self.retry_base_delay)

        if self.use_contrastive_icl:
            for placeholder in ("{{chunk1}}", "{{chunk2}}"):
                if placeholder not in self.prompt_template:
                    raise ConfigurationError(
                        f"prompt_template is missing the {placeholder} placeholder",
                        field="prompt_template",
                    )

        # Every branch must be a proper convex combination
        for has_embeddings in (True, False):
            weights = self.fusion_weights(has_embeddings)
            total = sum(weights.values())
            if not math.isclose(total, 1.0, abs_tol=1e-9) or min(weights.values()) < 0:
                raise ConfigurationError(f"Fusion weights must sum to 1, got {total}", field="fusion_weights", value=weights)

    def fusion_weights(self, has_embeddings: bool) -> Dict[str, float]:
        """Renormalized signal weights for one pair.

        Args:
            has_embeddings: Whether semantic similarity is active for the pair

        Returns:
            Mapping of signal name to weight; weights sum to 1
        """
        if not has_embeddings:
            return {"keyword": 1.0}

        sw = self.semantic_weight
        if self.use_project_metadata and self.use_schema_signal:
            base = 1.0 - (self.project_weight + self.schema_weight)
            return {
                "semantic": sw * base,
                "keyword": (1.0 - sw) * base,
                "project": self.project_weight,
                "schema": self.schema_weight,
            }
        if self.use_project_metadata:
            base = 1.0 - self.project_weight
            return {
                "semantic": sw * base,
                "keyword": (1.0 - sw) * base,
                "project": self.project_weight,
            }
        if self.use_schema_signal:
            base = 1.0 - self.schema_weight
            return {
                "semantic": sw * base,
                "keyword": (1.0 - sw) * base,
                "schema": self.schema_weight,
            }
        return {"semantic": sw, "keyword": 1.0 - sw}

    def with_overrides(self, **overrides) -> "InferenceConfig":
        """Return a validated copy with some fields replaced."""
        return replace(self, **overrides)


def _camel_to_snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


# Legacy camelCase option names
_ALIASES = {
    "llm_config": "llm",
    "use_contrastive_i_c_l": "use_contrastive_icl",
}

_ENV_OVERRIDES = {
    "RELGRAPH_SIMILARITY_THRESHOLD": ("similarity_threshold", float),
    "RELGRAPH_KEYWORD_OVERLAP_THRESHOLD": ("keyword_overlap_threshold", float),
    "RELGRAPH_USE_SEMANTIC_SIMILARITY": ("use_semantic_similarity", "bool"),
    "RELGRAPH_SEMANTIC_WEIGHT": ("semantic_weight", float),
    "RELGRAPH_MAX_CONCURRENCY": ("max_concurrency", int),
    "RELGRAPH_REQUEST_TIMEOUT": ("request_timeout", float),
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class ConfigManager:
    """Builds an InferenceConfig from defaults, a JSON file and the environment."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None, env: Optional[Dict[str, str]] = None):
        self.config_path = Path(config_path) if config_path else None
        self.env = os.environ if env is None else env

    def load(self) -> InferenceConfig:
        """Load and validate configuration."""
        data: Dict[str, Any] = {}
        if self.config_path:
            if not self.config_path.exists():
                raise ConfigurationError(f"Config file not found: {self.config_path}", field="config_path")
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {self.config_path}: {e}") from e

        data = self.normalize_keys(data)
        self._apply_env_overrides(data)
        return self.from_dict(data)

    @staticmethod
    def normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
        """Convert camelCase option names to their snake_case field names."""
        normalized = {}
        for key, value in data.items():
            snake = _camel_to_snake(key)
            normalized[_ALIASES.get(snake, snake)] = value
        return normalized

    def _apply_env_overrides(self, data: Dict[str, Any]) -> None:
        for env_name, (field_name, kind) in _ENV_OVERRIDES.items():
            raw = self.env.get(env_name)
            if raw is None:
                continue
            try:
                data[field_name] = _parse_bool(raw) if kind == "bool" else kind(raw)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_name}: {raw!r}", field=field_name, value=raw) from e

        llm = dict(data.get("llm") or {})
        llm = {_camel_to_snake(k): v for k, v in llm.items()}
        if self.env.get("RELGRAPH_LLM_MODEL"):
            llm["model"] = self.env["RELGRAPH_LLM_MODEL"]
        if not llm.get("api_key"):
            provider = llm.get("provider", LLMConfig.provider)
            key_var = "ANTHROPIC_API_KEY" if provider == "claude" else "OPENAI_API_KEY"
            if self.env.get(key_var):
                llm["api_key"] = self.env[key_var]
        data["llm"] = llm

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> InferenceConfig:
        """Create an InferenceConfig from a plain dictionary."""
        data = ConfigManager.normalize_keys(data)
        known = {f.name for f in fields(InferenceConfig)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}", field=sorted(unknown)[0])

        kwargs = dict(data)
        if isinstance(kwargs.get("llm"), dict):
            llm_data = {_camel_to_snake(k): v for k, v in kwargs["llm"].items()}
            llm_known = {f.name for f in fields(LLMConfig)}
            kwargs["llm"] = LLMConfig(**{k: v for k, v in llm_data.items() if k in llm_known})
        if isinstance(kwargs.get("contrastive_examples"), dict):
            kwargs["contrastive_examples"] = ContrastiveExampleBank.from_dict(kwargs["contrastive_examples"])
        try:
            return InferenceConfig(**kwargs)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
