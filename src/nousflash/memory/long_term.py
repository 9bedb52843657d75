"""Long-term memory: significance-filtered storage, retrieval and consolidation."""

from __future__ import annotations

import math
import time
from typing import TYPE_CHECKING, List, Optional, Sequence, Set, Tuple

from loguru import logger

from nousflash.core.models import ConsolidationReport, Memory, StoreOutcome
from nousflash.memory.significance import SignificanceScorer
from nousflash.providers.base import EmbeddingProvider
from nousflash.providers.prompts import consolidation_content
from nousflash.storage.base import MemoryRepository, ScoredMemory
from nousflash.utils.exceptions import DataError, NousflashError

if TYPE_CHECKING:
    from nousflash.config.settings import LongTermSettings


class _PairAlreadyMerged(Exception):
    """Raised inside a consolidation transaction to roll it back."""


class LongTermMemoryStore:
    """
    Durable memories above a significance threshold.

    Storage is delegated to a MemoryRepository; embeddings and scores come
    from injected collaborators. Below-threshold content is reported as a
    SKIPPED outcome rather than an error.
    """

    def __init__(
        self,
        repository: MemoryRepository,
        embedder: EmbeddingProvider,
        scorer: SignificanceScorer,
        settings: Optional[LongTermSettings] = None,
    ):
        """
        Initialize the store.

        Args:
            repository: Persistence backend
            embedder: Embedding provider for content and queries
            scorer: Significance scorer for content without a precomputed score
            settings: LongTermSettings instance (uses defaults if None)
        """
        if settings is None:
            from nousflash.config.settings import LongTermSettings
            settings = LongTermSettings()

        self.repository = repository
        self.embedder = embedder
        self.scorer = scorer
        self.threshold = settings.significance_threshold
        self.consolidation_distance = settings.consolidation_distance
        self.dimension = settings.embedding_dimension

    def validate_embedding(self, embedding: Sequence[float]) -> Tuple[float, ...]:
        """
        Check embedding length and values.

        Raises:
            DataError: Wrong dimension or non-finite components
        """
        vector = tuple(float(x) for x in embedding)
        if len(vector) != self.dimension:
            raise DataError(
                f"Embedding has dimension {len(vector)}, expected {self.dimension}"
            )
        if not all(math.isfinite(x) for x in vector):
            raise DataError("Embedding contains non-finite values")
        return vector

    async def _embed(self, text: str) -> Tuple[float, ...]:
        return self.validate_embedding(await self.embedder.embed(text))

    async def store(
        self,
        content: str,
        significance: Optional[float] = None,
        embedding: Optional[Sequence[float]] = None,
    ) -> StoreOutcome:
        """
        Persist ``content`` if it is significant enough.

        A caller that already scored or embedded the content passes those
        values in so they are not recomputed.

        Returns:
            StoreOutcome: STORED with the new row, SKIPPED below threshold,
            or FAILED with the provider/storage/data error
        """
        if not content or not content.strip():
            return StoreOutcome.failed(DataError("Cannot store empty content"))

        try:
            if embedding is None:
                vector = await self._embed(content)
            else:
                vector = self.validate_embedding(embedding)

            if significance is None:
                significance = await self.scorer.score(content)

            if significance < self.threshold:
                logger.debug(
                    f"Memory significance too low ({significance:.2f}), skipping storage"
                )
                return StoreOutcome.skipped(significance, self.threshold)

            memory = await self.repository.insert(content, vector, significance)
        except NousflashError as e:
            logger.warning(f"Failed to store memory: {e}")
            return StoreOutcome.failed(e, significance)

        logger.info(f"Stored new memory {memory.id} with significance {significance:.2f}")
        return StoreOutcome.stored(memory)

    async def retrieve_scored(self, query: str, limit: int) -> List[ScoredMemory]:
        """
        Nearest memories to ``query`` with their cosine distances.

        Raises:
            ProviderError: Query embedding failed
            StorageError: Repository query failed
        """
        if limit <= 0:
            return []
        vector = await self._embed(query)
        return await self.repository.query_by_distance(vector, limit)

    async def retrieve_relevant(self, query: str, limit: int) -> List[Memory]:
        """``limit`` closest memories to ``query``, nearest first."""
        return [memory for memory, _ in await self.retrieve_scored(query, limit)]

    async def count(self) -> int:
        return await self.repository.count()

    async def consolidate(self) -> ConsolidationReport:
        """
        Merge near-duplicate memories.

        Algorithm:
        1. Find pairs closer than the consolidation distance
        2. Skip pairs touching a memory already merged in this pass
        3. Embed and score the merged content
        4. If significant, delete both sources and insert the merged row
           in one transaction; otherwise keep the sources

        Any provider or storage failure ends the pass early; rows already
        merged stay merged and the current pair is left untouched.

        Returns:
            ConsolidationReport with statistics about the pass
        """
        start_time = time.time()
        report = ConsolidationReport()

        try:
            pairs = await self.repository.find_close_pairs(self.consolidation_distance)
        except NousflashError as e:
            logger.error(f"Consolidation aborted, could not find candidates: {e}")
            report.failed += 1
            report.duration_seconds = time.time() - start_time
            return report

        report.pairs_found = len(pairs)
        consumed: Set[int] = set()

        for first, second, distance in pairs:
            if first.id in consumed or second.id in consumed:
                continue

            try:
                merged = await self._merge_pair(first, second)
            except NousflashError as e:
                logger.error(
                    f"Consolidation aborted while merging {first.id} and {second.id}: {e}"
                )
                report.failed += 1
                break

            if merged is None:
                report.skipped += 1
                continue

            consumed.update((first.id, second.id))
            report.merged += 1
            report.merged_ids.append(merged.id)
            logger.debug(
                f"Merged memories {first.id} and {second.id} "
                f"(distance {distance:.3f}) into {merged.id}"
            )

        report.duration_seconds = time.time() - start_time
        logger.info(
            f"Consolidation complete: {report.merged} merged, {report.skipped} skipped, "
            f"{report.failed} failed from {report.pairs_found} pairs "
            f"in {report.duration_seconds:.2f}s"
        )
        return report

    async def _merge_pair(self, first: Memory, second: Memory) -> Optional[Memory]:
        """Replace two memories with one; None when the merge is skipped."""
        content = consolidation_content(first.content, second.content)
        vector = await self._embed(content)
        significance = await self.scorer.score(content)

        if significance < self.threshold:
            logger.debug(
                f"Merged content of {first.id}/{second.id} scored {significance:.2f}, "
                f"keeping originals"
            )
            return None

        try:
            async with self.repository.transaction() as tx:
                deleted = await tx.delete_by_ids([first.id, second.id])
                if deleted != 2:
                    raise _PairAlreadyMerged()
                return await tx.insert(content, vector, significance)
        except _PairAlreadyMerged:
            logger.debug(f"Memories {first.id}/{second.id} changed concurrently, skipping")
            return None
