"""Tests for AgentDaemon scheduling and shutdown."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from nousflash.agent.daemon import AgentDaemon
from nousflash.config.settings import CycleSettings
from nousflash.core.models import CycleResult, CycleStatus, IncomingMessage


@pytest.fixture
def settings():
    return CycleSettings(
        cycle_interval_seconds=30,
        consolidation_interval_seconds=30,
        interaction_poll_seconds=30,
    )


@pytest.fixture
def orchestrator(settings):
    mock = MagicMock()
    mock.settings = settings
    mock.run_cycle = AsyncMock(return_value=CycleResult(CycleStatus.NO_ACTION))
    mock.handle_interaction = AsyncMock(return_value=CycleResult(CycleStatus.POSTED))
    mock.consolidate = AsyncMock()
    return mock


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_returns_cycle_result(self, orchestrator):
        daemon = AgentDaemon(orchestrator)

        result = await daemon.run_once()

        assert result.status == CycleStatus.NO_ACTION
        assert daemon.cycles_started == 1
        assert daemon.posts_made == 0

    @pytest.mark.asyncio
    async def test_counts_posts_and_failures(self, orchestrator):
        daemon = AgentDaemon(orchestrator)
        orchestrator.run_cycle.return_value = CycleResult(CycleStatus.POSTED)
        await daemon.run_once()
        orchestrator.run_cycle.return_value = CycleResult(CycleStatus.FAILED)
        await daemon.run_once()

        assert daemon.posts_made == 1
        assert daemon.cycles_failed == 1

    @pytest.mark.asyncio
    async def test_only_acted_cycles_count_as_posts(self, orchestrator):
        daemon = AgentDaemon(orchestrator)
        for status in (CycleStatus.NO_ACTION, CycleStatus.POSTED, CycleStatus.NO_ACTION):
            orchestrator.run_cycle.return_value = CycleResult(status)
            result = await daemon.run_once()
            assert result.acted is (status == CycleStatus.POSTED)

        assert daemon.posts_made == 1
        assert daemon.cycles_failed == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_contained(self, orchestrator):
        orchestrator.run_cycle.side_effect = RuntimeError("bug")
        daemon = AgentDaemon(orchestrator)

        assert await daemon.run_once() is None
        assert daemon.cycles_failed == 1


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_shutdown_stops_loops(self, orchestrator, settings):
        daemon = AgentDaemon(orchestrator, settings)

        task = asyncio.create_task(daemon.run())
        await asyncio.sleep(0.05)
        assert daemon.is_running
        daemon.request_shutdown()
        await asyncio.wait_for(task, timeout=2)

        assert not daemon.is_running
        orchestrator.run_cycle.assert_awaited_once()
        # Consolidation waits a full interval before its first pass
        orchestrator.consolidate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_in_flight_cycle_completes_before_exit(self, orchestrator, settings):
        finished = asyncio.Event()

        async def slow_cycle():
            await asyncio.sleep(0.1)
            finished.set()
            return CycleResult(CycleStatus.NO_ACTION)

        orchestrator.run_cycle.side_effect = slow_cycle
        daemon = AgentDaemon(orchestrator, settings, consolidation_enabled=False)

        task = asyncio.create_task(daemon.run())
        await asyncio.sleep(0.01)
        daemon.request_shutdown()
        await asyncio.wait_for(task, timeout=2)

        assert finished.is_set()
        assert daemon.in_flight == 0

    @pytest.mark.asyncio
    async def test_consolidation_runs_on_interval(self, orchestrator):
        settings = CycleSettings(
            cycle_interval_seconds=30,
            consolidation_interval_seconds=0.02,
            interaction_poll_seconds=30,
        )
        daemon = AgentDaemon(orchestrator, settings)

        task = asyncio.create_task(daemon.run())
        await asyncio.sleep(0.1)
        daemon.request_shutdown()
        await asyncio.wait_for(task, timeout=2)

        assert orchestrator.consolidate.await_count >= 1


class TestMentionPolling:
    @pytest.mark.asyncio
    async def test_handles_mentions_oldest_first(self, orchestrator, settings):
        source = MagicMock()
        source.mentions = AsyncMock(
            return_value=[
                IncomingMessage(id="12", text="@yourbotname newer"),
                IncomingMessage(id="11", text="@yourbotname older"),
            ]
        )
        daemon = AgentDaemon(orchestrator, settings, mention_source=source)

        await daemon._poll_mentions()
        await daemon.drain()

        handled = [call.args[0].id for call in orchestrator.handle_interaction.await_args_list]
        assert handled == ["11", "12"]

        await daemon._poll_mentions()
        source.mentions.assert_awaited_with("12")

    @pytest.mark.asyncio
    async def test_numeric_ids_compared_numerically(self, orchestrator, settings):
        source = MagicMock()
        source.mentions = AsyncMock(
            return_value=[
                IncomingMessage(id="100", text="a"),
                IncomingMessage(id="99", text="b"),
            ]
        )
        daemon = AgentDaemon(orchestrator, settings, mention_source=source)

        await daemon._poll_mentions()
        await daemon.drain()
        await daemon._poll_mentions()

        source.mentions.assert_awaited_with("100")
