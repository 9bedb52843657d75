"""Build and tear down the agent's component graph from Settings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from nousflash.agent.daemon import AgentDaemon
from nousflash.agent.orchestrator import CognitiveCycleOrchestrator
from nousflash.config.settings import Settings
from nousflash.memory.long_term import LongTermMemoryStore
from nousflash.memory.short_term import ShortTermMemory
from nousflash.memory.significance import ScoringWeights, SignificanceScorer
from nousflash.providers.openai_client import OpenAICompatibleClient
from nousflash.social.x_client import XClient
from nousflash.storage import MemoryRepository, create_repository


@dataclass
class AgentRuntime:
    """Everything a running agent holds on to."""

    settings: Settings
    repository: MemoryRepository
    llm: OpenAICompatibleClient
    social: XClient
    short_term: ShortTermMemory
    long_term: LongTermMemoryStore
    orchestrator: CognitiveCycleOrchestrator

    @classmethod
    def build(cls, settings: Settings) -> "AgentRuntime":
        """Wire components together. No network activity happens here."""
        repository = create_repository(settings.storage, settings.long_term.embedding_dimension)
        llm = OpenAICompatibleClient(settings.provider)
        social = XClient(settings.social)

        scorer = SignificanceScorer(llm, ScoringWeights.from_settings(settings.scoring))
        short_term = ShortTermMemory(capacity=settings.short_term.capacity)
        long_term = LongTermMemoryStore(repository, llm, scorer, settings.long_term)

        orchestrator = CognitiveCycleOrchestrator(
            short_term=short_term,
            long_term=long_term,
            scorer=scorer,
            completion=llm,
            embedder=llm,
            context_source=social,
            action_sink=social,
            settings=settings.cycle,
            short_term_limit=settings.short_term.relevant_limit,
        )
        return cls(
            settings=settings,
            repository=repository,
            llm=llm,
            social=social,
            short_term=short_term,
            long_term=long_term,
            orchestrator=orchestrator,
        )

    async def start(self, connect_social: bool = True) -> None:
        """
        Open connections.

        Raises:
            StorageError: Pool could not be created (fatal at startup)
            ConfigurationError: Social credentials missing
        """
        await self.repository.connect()
        await self.llm.connect()
        if connect_social:
            await self.social.connect()
        logger.info(f"Agent runtime started (storage: {self.repository.backend_name})")

    async def close(self) -> None:
        await self.social.close()
        await self.llm.close()
        await self.repository.close()
        logger.info("Agent runtime closed")

    def daemon(self, consolidation_enabled: bool = True) -> AgentDaemon:
        mention_source: Optional[XClient] = self.social if self.settings.social.user_id else None
        return AgentDaemon(
            self.orchestrator,
            settings=self.settings.cycle,
            mention_source=mention_source,
            consolidation_enabled=consolidation_enabled,
        )
