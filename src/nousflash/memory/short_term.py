"""Bounded short-term memory buffer with embedding relevance search."""

import asyncio
from collections import deque
from typing import Deque, List, Sequence

import numpy as np
from loguru import logger

from nousflash.core.constants import SHORT_TERM_CAPACITY
from nousflash.core.models import ShortTermEntry


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Cosine similarity in range [-1, 1], or 0.0 if either vector has zero
        norm or the lengths differ
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        return 0.0
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


class ShortTermMemory:
    """
    FIFO buffer of recent thoughts and observations.

    Shared between the cognitive cycle and interaction handling, so every
    read and write goes through one asyncio lock. Nothing here is persisted.
    """

    def __init__(self, capacity: int = SHORT_TERM_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: Deque[ShortTermEntry] = deque()
        self._lock = asyncio.Lock()

    async def append(self, entry: ShortTermEntry) -> None:
        """Add an entry at the tail, evicting the oldest when full."""
        async with self._lock:
            if len(self._entries) >= self.capacity:
                evicted = self._entries.popleft()
                logger.debug(f"Short-term buffer full, evicted entry from {evicted.timestamp}")
            self._entries.append(entry)

    async def relevant(self, query_embedding: Sequence[float], k: int) -> List[ShortTermEntry]:
        """
        Return up to ``k`` entries most similar to ``query_embedding``.

        Ordered by descending cosine similarity; equal similarities put the
        more recent entry first.
        """
        if k <= 0:
            return []

        async with self._lock:
            snapshot = list(self._entries)

        # Position in the buffer is insertion order, so a higher index is newer
        scored = [
            (cosine_similarity(query_embedding, entry.embedding), index, entry)
            for index, entry in enumerate(snapshot)
        ]
        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [entry for _, _, entry in scored[:k]]

    async def snapshot(self) -> List[ShortTermEntry]:
        """Copy of the buffer, oldest first."""
        async with self._lock:
            return list(self._entries)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
