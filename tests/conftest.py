"""Shared fixtures for relation inference tests."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from relgraph.interfaces import ILLMProvider
from relgraph.models import CanonicalObject


def build_object(object_id: str, **fields: Any) -> CanonicalObject:
    """Canonical object with sensible defaults for the required fields."""
    data: Dict[str, Any] = {
        "id": object_id,
        "platform": fields.pop("platform", "linear"),
        "object_type": fields.pop("object_type", "issue"),
    }
    keywords = fields.pop("keywords", None)
    if keywords is not None:
        data["properties"] = {"keywords": keywords}
    data.update(fields)
    return CanonicalObject.model_validate(data)


class FakeProvider(ILLMProvider):
    """Scripted LLM provider.

    ``replies`` maps ``(chunk1, chunk2)`` to a reply string or an exception
    to raise; unknown pairs get ``default``.
    """

    def __init__(self, replies: Optional[Dict] = None, default: str = "NOT_RELATED", delay: float = 0.0):
        self.replies = replies or {}
        self.default = default
        self.delay = delay
        self.prompts: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, prompt, system_prompt=None, temperature=0.1, max_tokens=None):
        self.prompts.append(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            for (chunk1, chunk2), reply in self.replies.items():
                if f'Chunk A: "{chunk1}"\nChunk B: "{chunk2}"' in prompt.split("[Unrelated examples]")[-1]:
                    if isinstance(reply, BaseException):
                        raise reply
                    return reply
            return self.default
        finally:
            self.in_flight -= 1

    def estimate_tokens(self, text: str) -> int:
        return len(text) // 4


@pytest.fixture
def make_object():
    """Factory fixture for canonical objects."""
    return build_object


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def keyword_objects():
    """O1/O2 share two of four keywords; O3 shares nothing."""
    return [
        build_object("O1", keywords=["a", "b", "c"]),
        build_object("O2", keywords=["b", "c", "d"]),
        build_object("O3", keywords=["x", "y"]),
    ]


@pytest.fixture
def duplicate_objects():
    return [
        build_object("O3", semantic_hash="h1", timestamps={"created_at": "2024-01-01T00:00:00Z"}),
        build_object("O4", semantic_hash="h1", timestamps={"created_at": "2024-01-02T00:00:00Z"}),
        build_object("O5", semantic_hash="h1", timestamps={"created_at": "2024-01-03T00:00:00Z"}),
        build_object("O6", semantic_hash="h2", timestamps={"created_at": "2024-01-04T00:00:00Z"}),
    ]


@pytest.fixture
def provider_factory():
    """Factory fixture for scripted providers."""
    return FakeProvider
