"""
Cognitive cycle orchestration.

One cycle runs gather -> think -> score -> persist -> retrieve -> decide ->
act, each stage consuming the previous stage's output. Interaction handling
is a separate path that shares only the short-term buffer with the cycle.

Failures inside a stage end that cycle with a FAILED result; they never
propagate to the scheduler.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Awaitable, List, Optional, Sequence, TypeVar

from loguru import logger

from nousflash.core.models import (
    CycleResult,
    CycleStatus,
    ConsolidationReport,
    IncomingMessage,
    Memory,
    RecentPost,
    ShortTermEntry,
    SourceType,
    StoreStatus,
    ThoughtContext,
)
from nousflash.memory.long_term import LongTermMemoryStore
from nousflash.memory.short_term import ShortTermMemory
from nousflash.memory.significance import SignificanceScorer
from nousflash.providers.base import (
    ActionSink,
    CompletionProvider,
    ContextSource,
    EmbeddingProvider,
)
from nousflash.providers.prompts import (
    POST_SYSTEM_PROMPT,
    post_prompt,
    reply_prompt,
    thought_prompt,
)
from nousflash.utils.exceptions import GenerationError, NousflashError, StageTimeoutError

if TYPE_CHECKING:
    from nousflash.config.settings import CycleSettings

T = TypeVar("T")

_POST_LABELS = ("Tweet:", "tweet:")


def clean_post_content(content: str) -> str:
    """Strip labels, whitespace and wrapping quotes from generated text."""
    for label in _POST_LABELS:
        content = content.replace(label, "")
    content = content.strip()
    if len(content) >= 2 and content[0] == content[-1] and content[0] in "\"'":
        content = content[1:-1].strip()
    return content


class CognitiveCycleOrchestrator:
    """
    Sequences the memory engines into cycles and interaction responses.

    Dependencies (injected):
    - short_term: buffer shared with interaction handling
    - long_term: significance-filtered durable store
    - scorer: significance scorer
    - completion / embedder: LLM providers
    - context_source: recent posts, external context
    - action_sink: optional publisher; without it results are only returned
    """

    def __init__(
        self,
        short_term: ShortTermMemory,
        long_term: LongTermMemoryStore,
        scorer: SignificanceScorer,
        completion: CompletionProvider,
        embedder: EmbeddingProvider,
        context_source: ContextSource,
        action_sink: Optional[ActionSink] = None,
        settings: Optional[CycleSettings] = None,
        short_term_limit: int = 5,
    ):
        if settings is None:
            from nousflash.config.settings import CycleSettings
            settings = CycleSettings()

        self.short_term = short_term
        self.long_term = long_term
        self.scorer = scorer
        self.completion = completion
        self.embedder = embedder
        self.context_source = context_source
        self.action_sink = action_sink
        self.settings = settings
        self.short_term_limit = short_term_limit

    async def _timed(self, stage: str, awaitable: Awaitable[T]) -> T:
        """Await an external call within the stage timeout."""
        timeout = self.settings.stage_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                return await awaitable
        except TimeoutError as e:
            raise StageTimeoutError(f"{stage} stage timed out after {timeout:.0f}s") from e

    # --- Gating rules ---

    def should_post(self, thought: str, significance: float) -> bool:
        """A thought becomes a post only if it is significant and long enough."""
        return (
            significance > self.settings.post_significance_threshold
            and len(thought) > self.settings.min_thought_length
        )

    def should_respond(self, message: IncomingMessage) -> bool:
        """Respond to messages that mention the agent or reply to it."""
        handle = self.settings.agent_handle.lower()
        return bool(handle and handle in message.text.lower()) or message.is_reply

    # --- Cognitive cycle ---

    async def run_cycle(self) -> CycleResult:
        """
        Run one cognitive cycle.

        Returns:
            CycleResult: POSTED with the generated post, NO_ACTION when the
            gate is closed, FAILED when any stage raised
        """
        thought: Optional[str] = None
        significance: Optional[float] = None
        try:
            # 1. Gather
            recent_posts = await self._timed(
                "gather", self.context_source.recent_posts(self.settings.recent_posts_limit)
            )
            external_context = await self._timed(
                "gather",
                self.context_source.external_context(self.settings.external_context_limit),
            )
            logger.debug(
                f"Gathered {len(recent_posts)} recent posts, "
                f"{len(external_context)} context items"
            )

            # 2. Think
            context = await self._build_context(recent_posts, external_context)
            thought = await self._timed("think", self.completion.complete(thought_prompt(context)))
            if not thought or not thought.strip():
                raise GenerationError("Completion provider returned an empty thought")
            embedding = await self._timed("think", self.embedder.embed(thought))
            await self.short_term.append(
                ShortTermEntry(
                    content=thought,
                    embedding=tuple(embedding),
                    source_type=SourceType.INTERNAL_THOUGHT,
                )
            )

            # 3. Score
            significance = await self._timed("score", self.scorer.score(thought))

            # 4. Persist (bounded by the repository's own timeouts, never cancelled)
            store_outcome = None
            if significance > self.long_term.threshold:
                store_outcome = await self.long_term.store(
                    thought, significance=significance, embedding=embedding
                )
                if store_outcome.status == StoreStatus.FAILED:
                    return CycleResult(
                        CycleStatus.FAILED,
                        thought=thought,
                        significance=significance,
                        store=store_outcome,
                        reason=f"persist: {store_outcome.reason}",
                    )

            # 5. Retrieve
            memories = await self._timed(
                "retrieve",
                self.long_term.retrieve_relevant(thought, self.settings.retrieval_limit),
            )

            # 6. Decide
            if not self.should_post(thought, significance):
                logger.debug(
                    f"No post this cycle (significance {significance:.2f}, "
                    f"thought length {len(thought)})"
                )
                return CycleResult(
                    CycleStatus.NO_ACTION,
                    thought=thought,
                    significance=significance,
                    store=store_outcome,
                    memories=memories,
                    reason="gate closed",
                )

            # 7. Act
            post = await self.generate_post(thought, memories, recent_posts, external_context)
            published_id = None
            if self.action_sink is not None and self.settings.publish:
                published_id = await self._timed("act", self.action_sink.publish(post))

            logger.info(f"Cycle produced post (significance {significance:.2f}): {post}")
            return CycleResult(
                CycleStatus.POSTED,
                thought=thought,
                significance=significance,
                post=post,
                published_id=published_id,
                store=store_outcome,
                memories=memories,
            )

        except NousflashError as e:
            logger.warning(f"Cognitive cycle failed: {type(e).__name__}: {e}")
            return CycleResult(
                CycleStatus.FAILED,
                thought=thought,
                significance=significance,
                reason=str(e),
            )

    async def _build_context(
        self,
        recent_posts: List[RecentPost],
        external_context: List[str],
    ) -> ThoughtContext:
        """Snapshot gathered data plus the short-term entries closest to it."""
        related: List[ShortTermEntry] = []
        if external_context and self.short_term_limit > 0 and len(self.short_term) > 0:
            query = await self._timed("think", self.embedder.embed("\n".join(external_context)))
            related = await self.short_term.relevant(query, self.short_term_limit)
        return ThoughtContext.build(recent_posts, external_context, related)

    async def generate_post(
        self,
        thought: str,
        memories: Sequence[Memory],
        recent_posts: Sequence[RecentPost],
        external_context: Sequence[str],
    ) -> str:
        """
        Generate post content from the thought and its context.

        Raises:
            GenerationError: Content empty after cleaning or too long
        """
        prompt = post_prompt(
            thought,
            [memory.format_for_llm() for memory in memories],
            [post.content for post in recent_posts],
            external_context,
        )
        raw = await self._timed("act", self.completion.complete(prompt, system=POST_SYSTEM_PROMPT))
        return self._finalize(raw)

    def _finalize(self, raw: str) -> str:
        content = clean_post_content(raw)
        if not content:
            raise GenerationError("Generated content is empty")
        if len(content) > self.settings.max_post_length:
            raise GenerationError(
                f"Generated content too long ({len(content)} > {self.settings.max_post_length})"
            )
        return content

    # --- Interaction path ---

    async def handle_interaction(self, message: IncomingMessage) -> CycleResult:
        """
        Decide whether and how to answer an incoming message.

        Returns:
            CycleResult: POSTED with the reply text, NO_ACTION if the message
            is not addressed to the agent, FAILED on any stage error
        """
        try:
            # Everything seen is remembered short-term, addressed or not
            embedding = await self._timed("interaction", self.embedder.embed(message.text))
            await self.short_term.append(
                ShortTermEntry(
                    content=message.text,
                    embedding=tuple(embedding),
                    source_type=SourceType.INTERACTION,
                )
            )

            if not self.should_respond(message):
                logger.debug(f"Ignoring message {message.id}: not addressed to agent")
                return CycleResult(CycleStatus.NO_ACTION, reason="not addressed to agent")

            memories = await self._timed(
                "interaction",
                self.long_term.retrieve_relevant(
                    message.text, self.settings.interaction_retrieval_limit
                ),
            )
            prompt = reply_prompt(message.text, [memory.format_for_llm() for memory in memories])
            raw = await self._timed(
                "interaction", self.completion.complete(prompt, system=POST_SYSTEM_PROMPT)
            )
            response = self._finalize(raw)

            published_id = None
            if self.action_sink is not None and self.settings.publish:
                published_id = await self._timed(
                    "interaction", self.action_sink.reply(response, message.id)
                )

            logger.info(f"Responding to {message.id}: {response}")
            return CycleResult(
                CycleStatus.POSTED,
                post=response,
                published_id=published_id,
                memories=memories,
            )

        except NousflashError as e:
            logger.warning(f"Interaction {message.id} failed: {type(e).__name__}: {e}")
            return CycleResult(CycleStatus.FAILED, reason=str(e))

    # --- Consolidation ---

    async def consolidate(self) -> ConsolidationReport:
        """Run one consolidation pass over long-term memory."""
        logger.info("Starting memory consolidation...")
        return await self.long_term.consolidate()
