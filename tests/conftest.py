"""Pytest configuration and fixtures for nousflash tests."""

from typing import Dict, List, Optional, Sequence

import pytest

from nousflash.config.settings import CycleSettings, LongTermSettings
from nousflash.core.models import IncomingMessage, RecentPost
from nousflash.memory.long_term import LongTermMemoryStore
from nousflash.memory.short_term import ShortTermMemory
from nousflash.memory.significance import SignificanceScorer
from nousflash.providers.base import (
    ActionSink,
    CompletionProvider,
    ContextSource,
    EmbeddingProvider,
)
from nousflash.storage.memory_store import InMemoryRepository

TEST_DIMENSION = 4


class FakeEmbedder(EmbeddingProvider):
    """Returns fixed vectors for known texts and a stable fallback otherwise."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, dimension: int = TEST_DIMENSION):
        self.vectors = dict(vectors or {})
        self.dimension = dimension
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.vectors:
            return list(self.vectors[text])
        # Character sums per slot: deterministic across processes, never all zero
        return [float(sum(ord(c) for c in text[i::self.dimension]) + 1) for i in range(self.dimension)]


class FakeCompletion(CompletionProvider):
    """Scripted completions and a fixed significance rating."""

    def __init__(self, responses: Sequence[str] = (), rating: int = 5):
        self.responses = list(responses)
        self.rating = rating
        self.prompts: List[str] = []
        self.rate_prompts: List[str] = []

    async def complete(self, prompt: str, system: str | None = None) -> str:
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError(f"Unexpected completion call: {prompt[:60]!r}")
        return self.responses.pop(0)

    async def rate(self, prompt: str) -> int:
        self.rate_prompts.append(prompt)
        return self.rating


class FakeContextSource(ContextSource):
    def __init__(
        self,
        posts: Sequence[str] = (),
        context: Sequence[str] = (),
        messages: Sequence[IncomingMessage] = (),
    ):
        self.posts = [RecentPost(content=p, username="agent") for p in posts]
        self.context = list(context)
        self.messages = list(messages)

    async def recent_posts(self, limit: int) -> List[RecentPost]:
        return self.posts[:limit]

    async def external_context(self, limit: int) -> List[str]:
        return self.context[:limit]

    async def mentions(self, since_id: str | None = None) -> Sequence[IncomingMessage]:
        return list(self.messages)


class FakeActionSink(ActionSink):
    def __init__(self):
        self.published: List[str] = []
        self.replies: List[tuple] = []

    async def publish(self, content: str) -> str:
        self.published.append(content)
        return f"post-{len(self.published)}"

    async def reply(self, content: str, target_id: str) -> str:
        self.replies.append((content, target_id))
        return f"reply-{len(self.replies)}"


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion(rating=8)


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def long_term_settings() -> LongTermSettings:
    return LongTermSettings(embedding_dimension=TEST_DIMENSION)


@pytest.fixture
def cycle_settings() -> CycleSettings:
    return CycleSettings(stage_timeout_seconds=5.0)


@pytest.fixture
def scorer(completion: FakeCompletion) -> SignificanceScorer:
    return SignificanceScorer(completion)


@pytest.fixture
def short_term() -> ShortTermMemory:
    return ShortTermMemory(capacity=10)


@pytest.fixture
def long_term(repository, embedder, scorer, long_term_settings) -> LongTermMemoryStore:
    return LongTermMemoryStore(repository, embedder, scorer, long_term_settings)
