"""LLM provider implementations and utilities."""

from .providers import ClaudeProvider, OpenAIProvider
from .factory import create_llm_provider
from .client import RateLimiter, LLMClient

__all__ = [
    "ClaudeProvider",
    "OpenAIProvider",
    "create_llm_provider",
    "RateLimiter",
    "LLMClient",
]
