"""Process-local memory repository.

Keeps rows in a dict and stages writes until the transaction scope exits, so
a failure inside the scope leaves the store untouched. Useful for dry runs
and tests; nothing survives a restart.
"""

from __future__ import annotations

import asyncio
import itertools
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Dict, List, Sequence, Set

from loguru import logger

from nousflash.core.models import Memory, utcnow
from nousflash.memory.short_term import cosine_similarity
from nousflash.storage.base import (
    MemoryPair,
    MemoryRepository,
    RepositoryTransaction,
    ScoredMemory,
)


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """1 - cosine similarity, matching pgvector's ``<=>`` operator."""
    return 1.0 - cosine_similarity(a, b)


class _StagedTransaction(RepositoryTransaction):
    """Collects writes for InMemoryRepository until commit."""

    def __init__(self, repo: "InMemoryRepository"):
        self._repo = repo
        self.inserts: Dict[int, Memory] = {}
        self.deletes: Set[int] = set()

    async def insert(
        self,
        content: str,
        embedding: Sequence[float],
        significance: float,
    ) -> Memory:
        memory = Memory(
            id=next(self._repo._ids),
            content=content,
            embedding=tuple(float(x) for x in embedding),
            significance=float(significance),
            created_at=self._repo._now(),
        )
        self.inserts[memory.id] = memory
        return memory

    async def delete_by_ids(self, ids: Sequence[int]) -> int:
        existing = {
            memory_id
            for memory_id in ids
            if memory_id in self._repo._rows or memory_id in self.inserts
        }
        self.deletes.update(existing)
        return len(existing)


class InMemoryRepository(MemoryRepository):
    """Dict-backed repository with all-or-nothing transactions."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._rows: Dict[int, Memory] = {}
        self._ids = itertools.count(1)
        self._write_lock = asyncio.Lock()
        self._last_created: datetime | None = None

    def _now(self) -> datetime:
        # Keep creation times strictly increasing so "newest first" is well defined
        now = utcnow()
        if self._last_created is not None and now <= self._last_created:
            now = self._last_created + timedelta(microseconds=1)
        self._last_created = now
        return now

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[RepositoryTransaction]:
        async with self._write_lock:
            tx = _StagedTransaction(self)
            yield tx
            # Only reached when the body completed without raising
            self._rows.update(tx.inserts)
            for memory_id in tx.deletes:
                self._rows.pop(memory_id, None)
            logger.debug(
                f"Committed {len(tx.inserts)} insert(s), {len(tx.deletes)} delete(s)"
            )

    async def query_by_distance(
        self,
        embedding: Sequence[float],
        limit: int,
    ) -> List[ScoredMemory]:
        if limit <= 0:
            return []
        scored = [
            (memory, cosine_distance(embedding, memory.embedding))
            for memory in self._rows.values()
        ]
        scored.sort(key=lambda item: (item[1], -item[0].created_at.timestamp(), -item[0].id))
        return scored[:limit]

    async def find_close_pairs(self, max_distance: float) -> List[MemoryPair]:
        rows = sorted(self._rows.values(), key=lambda m: m.id)
        pairs: List[MemoryPair] = []
        for first, second in itertools.combinations(rows, 2):
            distance = cosine_distance(first.embedding, second.embedding)
            if distance < max_distance:
                pairs.append((first, second, distance))
        pairs.sort(key=lambda pair: (pair[2], pair[0].id, pair[1].id))
        return pairs

    async def count(self) -> int:
        return len(self._rows)

    async def all(self) -> List[Memory]:
        """Every stored memory, oldest first."""
        return sorted(self._rows.values(), key=lambda m: m.id)
