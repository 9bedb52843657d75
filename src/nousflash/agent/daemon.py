"""
Agent daemon - scheduling and lifecycle.

Manages:
- The repeating cognitive cycle (a new cycle starts every interval, even if
  a slow previous one is still finishing)
- Polling for mentions and handling each as an independent task
- Periodic memory consolidation on its own cadence
- Graceful shutdown: stop scheduling, let in-flight work finish
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Awaitable, Optional, Set

from loguru import logger

from nousflash.agent.orchestrator import CognitiveCycleOrchestrator
from nousflash.core.models import CycleResult, CycleStatus
from nousflash.utils.exceptions import NousflashError

if TYPE_CHECKING:
    from nousflash.config.settings import CycleSettings
    from nousflash.providers.base import ContextSource


class AgentDaemon:
    """
    Runs the orchestrator's three activities until shutdown is requested.

    No in-flight cycle, interaction or consolidation pass is cancelled;
    shutdown waits for them to reach completion.
    """

    def __init__(
        self,
        orchestrator: CognitiveCycleOrchestrator,
        settings: Optional[CycleSettings] = None,
        mention_source: Optional[ContextSource] = None,
        consolidation_enabled: bool = True,
    ):
        """
        Initialize the daemon.

        Args:
            orchestrator: Cycle orchestrator to drive
            settings: Cadence configuration (uses orchestrator's if None)
            mention_source: Where to poll for mentions (None disables replies)
            consolidation_enabled: Run the periodic consolidation loop
        """
        self.orchestrator = orchestrator
        self.settings = settings or orchestrator.settings
        self.mention_source = mention_source
        self.consolidation_enabled = consolidation_enabled

        self._shutdown_event = asyncio.Event()
        self._in_flight: Set[asyncio.Task] = set()
        self._last_mention_id: Optional[str] = None
        self._running = False

        # Counters for status reporting
        self.cycles_started = 0
        self.posts_made = 0
        self.cycles_failed = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def request_shutdown(self) -> None:
        """Stop scheduling new work. Safe to call from a signal handler."""
        if not self._shutdown_event.is_set():
            logger.info("Shutdown requested, finishing in-flight work...")
            self._shutdown_event.set()

    async def _wait_or_shutdown(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if shutdown was requested meanwhile."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    def _spawn(self, coro: Awaitable[None], name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    # --- Work units ---

    async def _run_cycle(self) -> Optional[CycleResult]:
        self.cycles_started += 1
        try:
            result = await self.orchestrator.run_cycle()
        except Exception as e:
            # Orchestrator reports expected failures as results; this is a bug
            logger.exception(f"Unexpected error in cognitive cycle: {e}")
            self.cycles_failed += 1
            return None

        if result.acted:
            self.posts_made += 1
        elif result.status == CycleStatus.FAILED:
            self.cycles_failed += 1
        return result

    async def _poll_mentions(self) -> None:
        try:
            messages = await self.mention_source.mentions(self._last_mention_id)
        except NousflashError as e:
            logger.warning(f"Fetching mentions failed: {e}")
            return

        # The API returns newest first; answer in arrival order
        for message in reversed(list(messages)):
            self._spawn(self._handle_message(message), name=f"interaction-{message.id}")
            if self._last_mention_id is None or _id_after(message.id, self._last_mention_id):
                self._last_mention_id = message.id

    async def _handle_message(self, message) -> None:
        try:
            await self.orchestrator.handle_interaction(message)
        except Exception as e:
            logger.exception(f"Unexpected error handling interaction {message.id}: {e}")

    async def _consolidate(self) -> None:
        try:
            await self.orchestrator.consolidate()
        except Exception as e:
            logger.error(f"Memory consolidation failed: {e}")

    # --- Loops ---

    async def _cycle_loop(self) -> None:
        logger.info(f"Cycle loop started (interval: {self.settings.cycle_interval_seconds}s)")
        while not self._shutdown_event.is_set():
            self._spawn(self._run_cycle(), name=f"cycle-{self.cycles_started + 1}")
            if await self._wait_or_shutdown(self.settings.cycle_interval_seconds):
                break

    async def _interaction_loop(self) -> None:
        logger.info(
            f"Interaction loop started (poll every {self.settings.interaction_poll_seconds}s)"
        )
        while not self._shutdown_event.is_set():
            await self._poll_mentions()
            if await self._wait_or_shutdown(self.settings.interaction_poll_seconds):
                break

    async def _consolidation_loop(self) -> None:
        logger.info(
            f"Consolidation loop started "
            f"(interval: {self.settings.consolidation_interval_seconds}s)"
        )
        while not await self._wait_or_shutdown(self.settings.consolidation_interval_seconds):
            # Passes run inline so two never overlap
            await self._consolidate()

    # --- Lifecycle ---

    def install_signal_handlers(self) -> None:
        """Route SIGINT/SIGTERM to request_shutdown."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                logger.debug(f"Signal handler for {sig.name} not supported here")

    async def run(self) -> None:
        """Run until request_shutdown() is called, then drain in-flight work."""
        self._running = True
        self._shutdown_event.clear()
        logger.info("Agent daemon running")

        loops = [asyncio.create_task(self._cycle_loop(), name="cycle-loop")]
        if self.mention_source is not None:
            loops.append(asyncio.create_task(self._interaction_loop(), name="interaction-loop"))
        if self.consolidation_enabled:
            loops.append(asyncio.create_task(self._consolidation_loop(), name="consolidation-loop"))

        try:
            await self._shutdown_event.wait()
            await asyncio.gather(*loops)
            await self.drain()
        finally:
            self._running = False
            logger.info(
                f"Agent daemon stopped: {self.cycles_started} cycles, "
                f"{self.posts_made} posts, {self.cycles_failed} failed"
            )

    async def drain(self) -> None:
        """Wait for every in-flight task to finish."""
        while self._in_flight:
            pending = list(self._in_flight)
            logger.debug(f"Waiting for {len(pending)} in-flight task(s)")
            await asyncio.gather(*pending, return_exceptions=True)

    async def run_once(self) -> Optional[CycleResult]:
        """Run a single cognitive cycle without scheduling anything else."""
        return await self._run_cycle()


def _id_after(candidate: str, current: str) -> bool:
    """Compare snowflake ids numerically when possible."""
    try:
        return int(candidate) > int(current)
    except ValueError:
        return candidate > current
