"""Persistence boundary for long-term memories.

A repository exposes three primitives (insert, query-by-distance,
delete-by-ids) and a transaction scope that composes them atomically.
Distances are cosine distances (1 - cosine similarity).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import List, Sequence, Tuple

from nousflash.core.models import Memory

ScoredMemory = Tuple[Memory, float]
MemoryPair = Tuple[Memory, Memory, float]


class RepositoryTransaction(ABC):
    """Operations that commit together or not at all."""

    @abstractmethod
    async def insert(
        self,
        content: str,
        embedding: Sequence[float],
        significance: float,
    ) -> Memory:
        """Insert a row and return it with its assigned id."""

    @abstractmethod
    async def delete_by_ids(self, ids: Sequence[int]) -> int:
        """Delete rows and return how many existed."""


class MemoryRepository(ABC):
    """Durable store of long-term memories."""

    backend_name = "abstract"

    async def connect(self) -> None:
        """Open connections. Called once at startup."""

    async def close(self) -> None:
        """Release connections."""

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[RepositoryTransaction]:
        """
        Scope in which insert/delete either all commit or all roll back.

        Raises:
            StorageError: If the backend is unreachable or the commit fails
        """

    @abstractmethod
    async def query_by_distance(
        self,
        embedding: Sequence[float],
        limit: int,
    ) -> List[ScoredMemory]:
        """
        Nearest memories to ``embedding``.

        Ordered by ascending distance; equal distances put the newest first.
        """

    @abstractmethod
    async def find_close_pairs(self, max_distance: float) -> List[MemoryPair]:
        """
        Pairs of distinct memories closer than ``max_distance``.

        Each pair is reported once with the lower id first, ordered by
        ascending distance.
        """

    @abstractmethod
    async def count(self) -> int:
        """Number of stored memories."""

    async def insert(
        self,
        content: str,
        embedding: Sequence[float],
        significance: float,
    ) -> Memory:
        """Insert a single row in its own transaction."""
        async with self.transaction() as tx:
            return await tx.insert(content, embedding, significance)

    async def delete_by_ids(self, ids: Sequence[int]) -> int:
        """Delete rows in a single transaction."""
        async with self.transaction() as tx:
            return await tx.delete_by_ids(ids)
