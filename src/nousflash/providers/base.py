"""Collaborator interfaces the memory core depends on.

Concrete clients live next to this module; tests substitute AsyncMocks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

from nousflash.core.models import IncomingMessage, RecentPost


class EmbeddingProvider(ABC):
    """Maps text to a fixed-length float vector."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """
        Raises:
            ProviderError: On quota, network or parse failure
        """


class CompletionProvider(ABC):
    """Generates text and significance ratings."""

    @abstractmethod
    async def complete(self, prompt: str, system: str | None = None) -> str:
        """
        Raises:
            ProviderError: On quota or network failure
        """

    @abstractmethod
    async def rate(self, prompt: str) -> int:
        """
        Return an integer significance rating in [1, 10].

        Raises:
            ParseError: If the model output is not an integer in range
        """


class ContextSource(ABC):
    """Supplies recent posts, external context and incoming interactions."""

    @abstractmethod
    async def recent_posts(self, limit: int) -> List[RecentPost]:
        """The agent's own posts, newest first."""

    @abstractmethod
    async def external_context(self, limit: int) -> List[str]:
        """Recent text from the outside world, newest first."""

    async def mentions(self, since_id: str | None = None) -> Sequence[IncomingMessage]:
        """Messages addressed to the agent; sources without one return nothing."""
        return []


class ActionSink(ABC):
    """Publishes the agent's output."""

    @abstractmethod
    async def publish(self, content: str) -> str:
        """
        Publish a post and return its id.

        Raises:
            PublishError: Rate limited, rejected or network failure
        """

    @abstractmethod
    async def reply(self, content: str, target_id: str) -> str:
        """
        Reply to ``target_id`` and return the new post id.

        Raises:
            PublishError: Rate limited, rejected or network failure
        """
