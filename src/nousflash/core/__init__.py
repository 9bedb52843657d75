"""Core data model shared by the memory engines and the orchestrator."""

from nousflash.core.models import (
    ConsolidationReport,
    CycleResult,
    CycleStatus,
    IncomingMessage,
    Memory,
    RecentPost,
    ScoringMetrics,
    ShortTermEntry,
    SourceType,
    StoreOutcome,
    StoreStatus,
    ThoughtContext,
)

__all__ = [
    "Memory",
    "ShortTermEntry",
    "SourceType",
    "ScoringMetrics",
    "ThoughtContext",
    "RecentPost",
    "IncomingMessage",
    "StoreOutcome",
    "StoreStatus",
    "CycleResult",
    "CycleStatus",
    "ConsolidationReport",
]
