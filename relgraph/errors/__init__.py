"""Error handling module for relation inference."""

from .handlers import (
    ErrorHandler,
    ErrorContext,
    ErrorSeverity,
    ErrorCategory,
    RelGraphError,
    ConfigurationError,
    ValidationError,
    LLMProviderError,
    RateLimitError,
    ClassificationTimeoutError,
    InferenceCancelledError,
)

__all__ = [
    "ErrorHandler",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "RelGraphError",
    "ConfigurationError",
    "ValidationError",
    "LLMProviderError",
    "RateLimitError",
    "ClassificationTimeoutError",
    "InferenceCancelledError",
]
