"""Structured logging setup and inference observers."""

import logging
import sys
import threading
from collections import defaultdict
from typing import Any, Dict

import structlog

from .interfaces import IInferenceObserver

SENSITIVE_KEYS = ("api_key", "token", "secret", "password", "credential")


def _sanitize_sensitive_data(logger, method_name, event_dict):
    """Mask sensitive values before rendering."""

    def sanitize_value(key: str, value: Any) -> Any:
        if any(term in key.lower() for term in SENSITIVE_KEYS):
            if isinstance(value, str) and len(value) > 8:
                return f"{value[:4]}...{value[-4:]}"
            return "***REDACTED***"
        if isinstance(value, dict):
            return {k: sanitize_value(k, v) for k, v in value.items()}
        return value

    for key, value in list(event_dict.items()):
        event_dict[key] = sanitize_value(key, value)
    return event_dict


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure stdlib logging and structlog with a shared processor chain."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _sanitize_sensitive_data,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class NullObserver(IInferenceObserver):
    """Observer that discards every event."""

    def stage_started(self, stage: str, **fields: Any) -> None:
        pass

    def pair_scored(self, stage, from_id, to_id, scores, passed) -> None:
        pass

    def group_evaluated(self, key, avg_score, match_count, kept) -> None:
        pass

    def stage_completed(self, stage: str, **counts: Any) -> None:
        pass

    def warning(self, event: str, **fields: Any) -> None:
        pass


class StructlogObserver(IInferenceObserver):
    """Emits inference trace events through structlog.

    Pair and group events are sampled: only the first ``sample_size`` per
    stage are logged so large runs stay readable.
    """

    def __init__(self, logger=None, sample_size: int = 3):
        self.logger = logger or structlog.get_logger("relgraph.inference")
        self.sample_size = sample_size
        self._emitted: Dict[str, int] = defaultdict(int)
        # Pair events arrive from every fusion worker thread
        self._lock = threading.Lock()

    def _should_emit(self, bucket: str) -> bool:
        with self._lock:
            self._emitted[bucket] += 1
            return self._emitted[bucket] <= self.sample_size

    def stage_started(self, stage: str, **fields: Any) -> None:
        with self._lock:
            self._emitted.pop(f"pair:{stage}", None)
            if stage == "document_threshold":
                self._emitted.pop("group:keep", None)
                self._emitted.pop("group:filter", None)
        self.logger.info("stage_started", stage=stage, **fields)

    def pair_scored(self, stage, from_id, to_id, scores, passed) -> None:
        if self._should_emit(f"pair:{stage}"):
            self.logger.debug(
                "pair_scored",
                stage=stage,
                from_id=from_id,
                to_id=to_id,
                passed=passed,
                **{name: round(value, 3) for name, value in scores.items()},
            )

    def group_evaluated(self, key, avg_score, match_count, kept) -> None:
        if self._should_emit("group:keep" if kept else "group:filter"):
            self.logger.debug(
                "group_evaluated",
                group=key,
                avg_score=round(avg_score, 3),
                matches=match_count,
                kept=kept,
            )

    def stage_completed(self, stage: str, **counts: Any) -> None:
        self.logger.info("stage_completed", stage=stage, **counts)

    def warning(self, event: str, **fields: Any) -> None:
        self.logger.warning(event, **fields)
