"""Rate-limited LLM client with per-call timeout and exponential backoff."""

import asyncio
import time
import logging
from typing import Dict, Any, Optional

from ..config import LLMConfig
from ..errors import ClassificationTimeoutError, RelGraphError
from ..interfaces import ILLMProvider

logger = logging.getLogger(__name__)


class RateLimiter:
    """Token bucket rate limiter for requests and tokens per minute."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 40000):
        self.requests_per_minute = requests_per_minute
        self.tokens_per_minute = tokens_per_minute

        # Buckets start full
        self.request_bucket = float(requests_per_minute)
        self.token_bucket = float(tokens_per_minute)
        self.last_update = time.monotonic()

        self._lock = asyncio.Lock()

    def _refill(self, elapsed: float) -> None:
        minutes = elapsed / 60.0
        self.request_bucket = min(
            self.request_bucket + minutes * self.requests_per_minute,
            self.requests_per_minute,
        )
        self.token_bucket = min(
            self.token_bucket + minutes * self.tokens_per_minute,
            self.tokens_per_minute,
        )

    async def wait_if_needed(self, tokens: int) -> float:
        """Block until one request of ``tokens`` fits; returns seconds waited."""
        # A single request can never need more than a full bucket
        tokens = min(tokens, self.tokens_per_minute)

        async with self._lock:
            now = time.monotonic()
            self._refill(now - self.last_update)
            self.last_update = now

            wait_time = 0.0
            if self.request_bucket < 1:
                wait_time = max(wait_time, (1 - self.request_bucket) / self.requests_per_minute * 60)
            if self.token_bucket < tokens:
                wait_time = max(wait_time, (tokens - self.token_bucket) / self.tokens_per_minute * 60)

            if wait_time > 0:
                logger.debug(f"Rate limiting: waiting {wait_time:.2f} seconds")
                await asyncio.sleep(wait_time)
                self._refill(wait_time)
                self.last_update = time.monotonic()

            self.request_bucket -= 1
            self.token_bucket -= tokens
            return wait_time


class LLMClient:
    """Wraps a provider with rate limiting, timeouts, retries and metrics."""

    def __init__(
        self,
        provider: ILLMProvider,
        config: Optional[LLMConfig] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.provider = provider
        self.config = config or LLMConfig()
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.rate_limiter = rate_limiter or RateLimiter(
            requests_per_minute=self.config.requests_per_minute,
            tokens_per_minute=self.config.tokens_per_minute,
        )

        self.metrics = {
            "total_requests": 0,
            "errors": 0,
            "retries": 0,
            "timeouts": 0,
            "total_tokens": 0,
            "total_duration_ms": 0.0,
        }

    def backoff_delay(self, attempt: int, error: RelGraphError) -> float:
        """Delay before retry ``attempt`` (0-based); honours Retry-After."""
        retry_after = getattr(error, "retry_after", None)
        if retry_after:
            return float(retry_after)
        return self.retry_base_delay * (2 ** attempt)

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Get a completion, retrying retryable failures with exponential backoff.

        Raises:
            ClassificationTimeoutError: The final attempt timed out
            RelGraphError: The provider failed and the error was not retryable
                or retries were exhausted
        """
        start_time = time.monotonic()
        self.metrics["total_requests"] += 1

        tokens = self.provider.estimate_tokens(prompt)
        if system_prompt:
            tokens += self.provider.estimate_tokens(system_prompt)

        temperature = self.config.temperature if temperature is None else temperature
        max_tokens = max_tokens or self.config.max_tokens

        try:
            attempt = 0
            while True:
                await self.rate_limiter.wait_if_needed(tokens)
                try:
                    response = await asyncio.wait_for(
                        self.provider.complete(
                            prompt=prompt,
                            system_prompt=system_prompt,
                            temperature=temperature,
                            max_tokens=max_tokens,
                        ),
                        timeout=self.timeout,
                    )
                    self.metrics["total_tokens"] += tokens
                    return response
                except asyncio.TimeoutError:
                    self.metrics["timeouts"] += 1
                    error = ClassificationTimeoutError(
                        f"LLM call exceeded {self.timeout}s", timeout=self.timeout
                    )
                except RelGraphError as e:
                    error = e

                if not error.retryable or attempt >= self.max_retries:
                    self.metrics["errors"] += 1
                    raise error

                delay = self.backoff_delay(attempt, error)
                logger.warning(
                    f"LLM call failed ({error.message}); retry {attempt + 1}/{self.max_retries} in {delay:.2f}s"
                )
                self.metrics["retries"] += 1
                attempt += 1
                await asyncio.sleep(delay)
        finally:
            self.metrics["total_duration_ms"] += (time.monotonic() - start_time) * 1000

    def get_metrics(self) -> Dict[str, Any]:
        """Get client metrics."""
        metrics = self.metrics.copy()
        if metrics["total_requests"] > 0:
            metrics["avg_duration_ms"] = metrics["total_duration_ms"] / metrics["total_requests"]
            metrics["avg_tokens_per_request"] = metrics["total_tokens"] / metrics["total_requests"]
        return metrics
