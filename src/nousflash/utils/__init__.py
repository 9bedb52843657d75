"""Utility functions and helpers for nousflash."""

from nousflash.utils.exceptions import (
    ConfigurationError,
    DataError,
    GenerationError,
    NousflashError,
    ParseError,
    ProviderError,
    PublishError,
    StageTimeoutError,
    StorageError,
)
from nousflash.utils.retry import retry_async

__all__ = [
    "NousflashError",
    "ConfigurationError",
    "ProviderError",
    "ParseError",
    "StorageError",
    "DataError",
    "GenerationError",
    "PublishError",
    "StageTimeoutError",
    "retry_async",
]
