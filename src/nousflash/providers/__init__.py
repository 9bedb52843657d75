"""External collaborators: LLM providers and prompt templates."""

from nousflash.providers.base import (
    ActionSink,
    CompletionProvider,
    ContextSource,
    EmbeddingProvider,
)

__all__ = [
    "EmbeddingProvider",
    "CompletionProvider",
    "ContextSource",
    "ActionSink",
]
