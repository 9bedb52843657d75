"""Cognitive cycle orchestration and scheduling."""

from nousflash.agent.daemon import AgentDaemon
from nousflash.agent.orchestrator import CognitiveCycleOrchestrator, clean_post_content

__all__ = [
    "AgentDaemon",
    "CognitiveCycleOrchestrator",
    "clean_post_content",
]
