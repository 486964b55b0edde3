"""Factory for creating LLM providers."""

from ..config import LLMConfig
from ..errors import ConfigurationError
from ..interfaces import ILLMProvider
from .providers import ClaudeProvider, OpenAIProvider


def create_llm_provider(config: LLMConfig) -> ILLMProvider:
    """Create an LLM provider instance.

    Args:
        config: LLM configuration naming the provider and model

    Returns:
        ILLMProvider instance

    Raises:
        ConfigurationError: If the provider type is not supported
    """
    provider_type = config.provider.lower()

    if provider_type == "openai":
        return OpenAIProvider(api_key=config.api_key, model=config.model)
    elif provider_type == "claude":
        return ClaudeProvider(api_key=config.api_key, model=config.model)
    else:
        raise ConfigurationError(f"Unknown provider type: {config.provider}", field="provider", value=config.provider)
