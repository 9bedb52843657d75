"""Custom exceptions for the nousflash agent.

Every error carries a ``retryable`` flag so callers can decide between
backing off and dropping the work item.
"""

from typing import Optional


class NousflashError(Exception):
    """Base exception for all nousflash errors."""

    retryable: bool = False


class ConfigurationError(NousflashError):
    """Configuration loading or validation error."""

    pass


class ProviderError(NousflashError):
    """Completion or embedding provider failed (quota, network, HTTP status)."""

    retryable = True


class ParseError(ProviderError):
    """Provider returned output that could not be interpreted."""

    retryable = False


class StorageError(NousflashError):
    """Persistence failed, including connection pool exhaustion."""

    retryable = True


class DataError(NousflashError):
    """Malformed record (wrong embedding dimension, empty content)."""

    pass


class GenerationError(NousflashError):
    """Generated post content is unusable (empty or too long)."""

    pass


class PublishError(NousflashError):
    """Publishing to the social platform failed."""

    RATE_LIMITED = "rate_limited"
    REJECTED = "rejected"
    NETWORK = "network"

    def __init__(self, message: str, kind: str = NETWORK, status: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status = status

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.kind != self.REJECTED


class StageTimeoutError(NousflashError):
    """An external call inside a cycle stage exceeded its time budget."""

    retryable = True
