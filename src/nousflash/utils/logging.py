"""Loguru sinks for the agent process."""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def configure_logging(logging_settings, debug: bool = False) -> None:
    """
    Replace loguru's default sink with the configured ones.

    Args:
        logging_settings: LoggingSettings instance
        debug: Force DEBUG level regardless of settings
    """
    level = "DEBUG" if debug else logging_settings.level.upper()
    logger.remove()

    # A daemon started under a supervisor may only want the file sink
    if not logging_settings.quiet:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    if not logging_settings.output_file:
        return

    log_file = Path(logging_settings.output_file).expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    serialize = logging_settings.format == "json"
    logger.add(
        log_file,
        level=level,
        format="{message}" if serialize else FILE_FORMAT,
        serialize=serialize,
        rotation="10 MB",
        retention="1 week",
        enqueue=True,
    )
    logger.debug(f"File logging enabled: {log_file} ({logging_settings.format})")
