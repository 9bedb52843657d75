"""Core memory data structures."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class SourceType(Enum):
    """Where a short-term entry came from."""
    EXTERNAL_CONTEXT = "external_context"
    INTERNAL_THOUGHT = "internal_thought"
    INTERACTION = "interaction"
    OBSERVATION = "observation"


@dataclass(frozen=True)
class Memory:
    """A persisted long-term memory.

    Rows are immutable: consolidation replaces a pair of rows with a new one
    instead of editing either.
    """

    id: int
    content: str
    embedding: Tuple[float, ...]
    significance: float
    created_at: datetime = field(default_factory=utcnow)

    def format_for_llm(self) -> str:
        return f"[Memory: {self.significance:.2f} significance] {self.content}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (embedding omitted)."""
        return {
            "id": self.id,
            "content": self.content,
            "significance": self.significance,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ShortTermEntry:
    """An ephemeral record in the short-term buffer."""

    content: str
    embedding: Tuple[float, ...]
    source_type: SourceType = SourceType.INTERNAL_THOUGHT
    timestamp: datetime = field(default_factory=utcnow)

    def format_for_llm(self) -> str:
        return f"[{self.timestamp.strftime('%Y-%m-%d %H:%M:%S')}] {self.content}"


@dataclass
class ScoringMetrics:
    """Local heuristics computed for one scoring call, each in [0, 1]."""

    novelty: float
    emotional_impact: float
    relevance: float
    persistence: float


@dataclass(frozen=True)
class RecentPost:
    """One of the agent's own recent posts."""

    content: str
    username: str = ""
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ThoughtContext:
    """Per-cycle working set handed to prompt construction."""

    recent_posts: Tuple[str, ...] = ()
    external_context: Tuple[str, ...] = ()
    memory_summary: Optional[str] = None

    @classmethod
    def build(
        cls,
        recent_posts: List[RecentPost],
        external_context: List[str],
        short_term: Optional[List[ShortTermEntry]] = None,
    ) -> "ThoughtContext":
        """Snapshot collaborator output into an immutable context."""
        summary = None
        if short_term:
            summary = "\n".join(entry.format_for_llm() for entry in short_term)
        return cls(
            recent_posts=tuple(post.content for post in recent_posts),
            external_context=tuple(external_context),
            memory_summary=summary,
        )


@dataclass(frozen=True)
class IncomingMessage:
    """A mention or reply addressed to the agent."""

    id: str
    text: str
    author_id: Optional[str] = None
    in_reply_to_user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_reply(self) -> bool:
        return bool(self.in_reply_to_user_id)


class StoreStatus(Enum):
    """Outcome of a long-term store attempt."""
    STORED = "stored"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StoreOutcome:
    """Result of LongTermMemoryStore.store.

    SKIPPED is a policy decision (significance below threshold), never a
    fault. FAILED carries the error that caused it.
    """

    status: StoreStatus
    significance: Optional[float] = None
    memory: Optional[Memory] = None
    reason: str = ""
    error: Optional[Exception] = None

    @classmethod
    def stored(cls, memory: Memory) -> "StoreOutcome":
        return cls(StoreStatus.STORED, significance=memory.significance, memory=memory)

    @classmethod
    def skipped(cls, significance: float, threshold: float) -> "StoreOutcome":
        return cls(
            StoreStatus.SKIPPED,
            significance=significance,
            reason=f"significance {significance:.2f} below threshold {threshold:.2f}",
        )

    @classmethod
    def failed(cls, error: Exception, significance: Optional[float] = None) -> "StoreOutcome":
        return cls(StoreStatus.FAILED, significance=significance, reason=str(error), error=error)

    @property
    def retryable(self) -> bool:
        return bool(self.error is not None and getattr(self.error, "retryable", False))


class CycleStatus(Enum):
    """Outcome of one cognitive cycle or interaction."""
    POSTED = "posted"
    NO_ACTION = "no_action"
    FAILED = "failed"


@dataclass
class CycleResult:
    """What a cycle produced, for logging and tests."""

    status: CycleStatus
    thought: Optional[str] = None
    significance: Optional[float] = None
    post: Optional[str] = None
    published_id: Optional[str] = None
    store: Optional[StoreOutcome] = None
    memories: List[Memory] = field(default_factory=list)
    reason: str = ""

    @property
    def acted(self) -> bool:
        return self.status == CycleStatus.POSTED


@dataclass
class ConsolidationReport:
    """Report from a consolidation pass."""

    pairs_found: int = 0
    merged: int = 0
    skipped: int = 0
    failed: int = 0
    duration_seconds: float = 0.0
    merged_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "pairs_found": self.pairs_found,
            "merged": self.merged,
            "skipped": self.skipped,
            "failed": self.failed,
            "duration_seconds": self.duration_seconds,
            "merged_ids": self.merged_ids,
        }
