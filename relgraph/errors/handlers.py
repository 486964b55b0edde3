"""Error handlers with context preservation for relation inference."""

import traceback
import logging
from contextvars import ContextVar
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, List, Tuple


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    LLM = "llm"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error."""
    operation: str
    from_id: Optional[str] = None
    to_id: Optional[str] = None
    stage: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "operation": self.operation,
            "from_id": self.from_id,
            "to_id": self.to_id,
            "stage": self.stage,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
        }


class RelGraphError(Exception):
    """Base exception for all relation inference errors."""

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.context = context
        self.cause = cause
        self.severity = severity
        self.category = category
        self.retryable = retryable
        self.timestamp = datetime.now(timezone.utc)
        self.stack_trace = traceback.format_exc()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_message": self.message,
            "context": self.context.to_dict() if self.context else None,
            "cause": str(self.cause) if self.cause else None,
            "severity": self.severity.value,
            "category": self.category.value,
            "retryable": self.retryable,
            "timestamp": self.timestamp.isoformat(),
        }


class ConfigurationError(RelGraphError):
    """Invalid inference configuration."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )
        self.field = field
        self.value = value


class ValidationError(RelGraphError):
    """Input data failed validation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )
        self.field = field
        self.value = value


class LLMProviderError(RelGraphError):
    """Error returned by a language model provider."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        retryable = status_code in [429, 500, 502, 503, 504] if status_code else False

        if status_code == 401:
            severity = ErrorSeverity.CRITICAL
        elif status_code is not None and (status_code == 429 or status_code >= 500):
            severity = ErrorSeverity.HIGH
        else:
            severity = ErrorSeverity.MEDIUM

        super().__init__(
            message,
            context=context,
            cause=cause,
            severity=severity,
            category=ErrorCategory.LLM,
            retryable=retryable,
        )
        self.status_code = status_code


class RateLimitError(LLMProviderError):
    """Provider rate limit exceeded."""

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, status_code=429, context=context, cause=cause)
        self.retry_after = retry_after
        self.category = ErrorCategory.RATE_LIMIT
        self.retryable = True


class ClassificationTimeoutError(RelGraphError):
    """A single pairwise classification exceeded its deadline."""

    def __init__(self, message: str, timeout: float, context: Optional[ErrorContext] = None):
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.TIMEOUT,
            retryable=True,
        )
        self.timeout = timeout


class InferenceCancelledError(RelGraphError):
    """A batch inference run was cancelled through its token."""

    def __init__(self, message: str = "Inference cancelled", stage: Optional[str] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.CANCELLED,
            retryable=False,
        )
        self.stage = stage


class ErrorHandler:
    """Centralized error handler with context preservation."""

    def __init__(self, logger: Optional[logging.Logger] = None, max_history_size: int = 1000):
        # Each asyncio task and each thread sees its own stack
        self._context_stack: ContextVar[Tuple[ErrorContext, ...]] = ContextVar(
            f"relgraph_error_context_{id(self)}", default=()
        )
        self.logger = logger or logging.getLogger(__name__)

        self._error_counts: Dict[str, int] = {}
        self._error_history: List[RelGraphError] = []
        self._max_history_size = max_history_size

    @contextmanager
    def error_context(self, **kwargs):
        """Context manager for error context.

        Usage:
            with error_handler.error_context(operation="classify_pair", from_id="a"):
                ...
        """
        context = ErrorContext(**kwargs)
        token = self._context_stack.set(self._context_stack.get() + (context,))

        try:
            yield context
        finally:
            self._context_stack.reset(token)

    def get_current_context(self) -> Optional[ErrorContext]:
        """Get current error context."""
        contexts = self._context_stack.get()
        return contexts[-1] if contexts else None

    def handle_error(
        self,
        error: Exception,
        operation: Optional[str] = None,
        reraise: bool = True,
    ) -> RelGraphError:
        """Handle an error with context preservation.

        Args:
            error: The error to handle
            operation: Operation being performed
            reraise: Whether to re-raise the wrapped error

        Returns:
            The wrapped error when not re-raised
        """
        context = self.get_current_context()
        if operation and context:
            context.operation = operation

        if isinstance(error, RelGraphError):
            wrapped_error = error
            if not wrapped_error.context and context:
                wrapped_error.context = context
        else:
            wrapped_error = self._wrap_error(error, context)

        self._log_error(wrapped_error)
        self._update_error_stats(wrapped_error)

        if reraise:
            raise wrapped_error from error if wrapped_error is not error else None

        return wrapped_error

    def _wrap_error(self, error: Exception, context: Optional[ErrorContext]) -> RelGraphError:
        """Wrap a generic exception in the appropriate error type."""
        error_str = str(error) or type(error).__name__
        status_code = getattr(error, "status_code", None)
        if status_code is None and hasattr(error, "response"):
            status_code = getattr(error.response, "status_code", None)

        if status_code == 429 or ("rate" in error_str.lower() and "limit" in error_str.lower()):
            return RateLimitError(error_str, context=context, cause=error)
        elif status_code is not None:
            return LLMProviderError(error_str, status_code=status_code, context=context, cause=error)
        else:
            return RelGraphError(error_str, context=context, cause=error)

    def _log_error(self, error: RelGraphError) -> None:
        """Log error with appropriate severity."""
        error_dict = error.to_dict()

        if error.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(f"Critical error: {error.message}", extra={"error": error_dict})
        elif error.severity == ErrorSeverity.HIGH:
            self.logger.error(f"Error: {error.message}", extra={"error": error_dict})
        elif error.severity == ErrorSeverity.MEDIUM:
            self.logger.warning(f"Warning: {error.message}", extra={"error": error_dict})
        else:
            self.logger.info(f"Info: {error.message}", extra={"error": error_dict})

    def _update_error_stats(self, error: RelGraphError) -> None:
        """Update error statistics."""
        error_type = error.__class__.__name__
        self._error_counts[error_type] = self._error_counts.get(error_type, 0) + 1

        self._error_history.append(error)
        if len(self._error_history) > self._max_history_size:
            self._error_history = self._error_history[-self._max_history_size:]

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics."""
        recent_errors = self._error_history[-100:]

        severity_dist = {severity.value: 0 for severity in ErrorSeverity}
        for error in recent_errors:
            severity_dist[error.severity.value] += 1

        return {
            "total_errors": sum(self._error_counts.values()),
            "error_counts": self._error_counts.copy(),
            "severity_distribution": severity_dist,
            "retryable_errors": sum(1 for e in recent_errors if e.retryable),
            "non_retryable_errors": sum(1 for e in recent_errors if not e.retryable),
        }

