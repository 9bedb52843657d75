"""
CLI entry point for the nousflash agent.

Commands:
- run: start the daemon (or a single cycle with --once)
- consolidate: run one memory consolidation pass and exit
- init-db: create the pgvector extension, table and index
"""

import asyncio
import json
import sys
from typing import Optional

import click
from loguru import logger

from nousflash.agent.runtime import AgentRuntime
from nousflash.config.settings import Settings
from nousflash.utils.exceptions import NousflashError
from nousflash.utils.logging import configure_logging


def _load_settings(config: Optional[str]) -> Settings:
    if config:
        return Settings.from_toml(config)
    return Settings()


async def _run(settings: Settings, once: bool) -> int:
    runtime = AgentRuntime.build(settings)
    await runtime.start()
    try:
        if once:
            result = await runtime.daemon(consolidation_enabled=False).run_once()
            if result is None:
                return 1
            logger.info(f"Cycle finished: {result.status.value} {result.reason}".rstrip())
            return 0

        daemon = runtime.daemon()
        daemon.install_signal_handlers()
        await daemon.run()
        return 0
    finally:
        await runtime.close()


async def _consolidate(settings: Settings) -> int:
    runtime = AgentRuntime.build(settings)
    await runtime.start(connect_social=False)
    try:
        report = await runtime.orchestrator.consolidate()
        click.echo(json.dumps(report.to_dict(), indent=2))
        return 1 if report.failed else 0
    finally:
        await runtime.close()


async def _init_db(settings: Settings) -> int:
    from nousflash.storage.postgres_store import PostgresMemoryRepository

    repository = PostgresMemoryRepository(
        settings.storage, dimension=settings.long_term.embedding_dimension
    )
    await repository.create_extension()
    await repository.connect()
    try:
        await repository.create_schema()
    finally:
        await repository.close()
    return 0


def _execute(coro) -> None:
    try:
        sys.exit(asyncio.run(coro))
    except NousflashError as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
        sys.exit(0)


@click.group()
@click.option(
    "--config",
    default=None,
    help=(
        "Path to TOML configuration file "
        "(default: configs/nousflash.toml relative to the working directory)"
    ),
    type=click.Path(exists=True, dir_okay=False),
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config: Optional[str], debug: bool) -> None:
    """nousflash - autonomous social agent with layered memory."""
    try:
        settings = _load_settings(config)
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        raise click.ClickException(f"Invalid configuration: {e}") from e

    configure_logging(settings.logging, debug=debug)
    ctx.obj = settings


@main.command()
@click.option("--once", is_flag=True, help="Run a single cognitive cycle and exit")
@click.option("--dry-run", is_flag=True, help="Generate posts without publishing them")
@click.pass_obj
def run(settings: Settings, once: bool, dry_run: bool) -> None:
    """Run the agent daemon."""
    if dry_run:
        settings.cycle.publish = False
    logger.info(
        f"Starting nousflash (storage: {settings.storage.backend}, "
        f"publish: {settings.cycle.publish})"
    )
    _execute(_run(settings, once))


@main.command()
@click.pass_obj
def consolidate(settings: Settings) -> None:
    """Run one consolidation pass over long-term memory."""
    _execute(_consolidate(settings))


@main.command("init-db")
@click.pass_obj
def init_db(settings: Settings) -> None:
    """Create the long-term memory schema in Postgres."""
    _execute(_init_db(settings))


if __name__ == "__main__":
    main()
