"""LLM provider implementations."""

import os
from typing import Optional

try:
    import tiktoken
except ImportError:
    tiktoken = None

try:
    import anthropic
except ImportError:
    anthropic = None

try:
    import openai
except ImportError:
    openai = None

from ..errors import ConfigurationError, LLMProviderError, RateLimitError
from ..interfaces import ILLMProvider


def _retry_after(error: Exception) -> Optional[float]:
    """Read a Retry-After header from a provider error, if present."""
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class OpenAIProvider(ILLMProvider):
    """OpenAI chat completions provider."""

    def __init__(self, api_key: Optional[str] = None, model: str = "gpt-4o-mini"):
        if openai is None:
            raise ConfigurationError("The openai package is required for OpenAIProvider")
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model
        self.client = openai.AsyncOpenAI(api_key=self.api_key)

        if tiktoken:
            try:
                self.encoder = tiktoken.encoding_for_model(model)
            except KeyError:
                # Newer models are missing from tiktoken's registry
                self.encoder = tiktoken.get_encoding("cl100k_base")
        else:
            self.encoder = None

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except openai.RateLimitError as e:
            raise RateLimitError(str(e), retry_after=_retry_after(e), cause=e) from e
        except openai.APIStatusError as e:
            raise LLMProviderError(str(e), status_code=e.status_code, cause=e) from e
        except openai.APIConnectionError as e:
            error = LLMProviderError(f"Connection error: {e}", cause=e)
            error.retryable = True
            raise error from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def estimate_tokens(self, text: str) -> int:
        """Estimate token count using tiktoken."""
        if not text:
            return 0
        if self.encoder:
            return len(self.encoder.encode(text))
        return len(text) // 4


class ClaudeProvider(ILLMProvider):
    """Anthropic Claude provider."""

    def __init__(self, api_key: Optional[str] = None, model: str = "claude-3-5-haiku-latest"):
        if anthropic is None:
            raise ConfigurationError("The anthropic package is required for ClaudeProvider")
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.model = model
        self.client = anthropic.AsyncAnthropic(api_key=self.api_key)

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        kwargs = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens or 100,
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.RateLimitError as e:
            raise RateLimitError(str(e), retry_after=_retry_after(e), cause=e) from e
        except anthropic.APIStatusError as e:
            raise LLMProviderError(str(e), status_code=e.status_code, cause=e) from e
        except anthropic.APIConnectionError as e:
            error = LLMProviderError(f"Connection error: {e}", cause=e)
            error.retryable = True
            raise error from e

        if not response.content:
            return ""
        return response.content[0].text

    def estimate_tokens(self, text: str) -> int:
        """Estimate token count for Claude."""
        # Approximate: 1 token ≈ 4 characters
        return len(text) // 4 if text else 0
