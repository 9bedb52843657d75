"""Prompt templates for thinking, rating and posting."""

from typing import Sequence

from nousflash.core.models import ThoughtContext

POST_SYSTEM_PROMPT = (
    "You are a tweet formatter. Your only job is to take the input text "
    "and format it as a tweet."
)

NO_MEMORIES = "No relevant memories available."


def _lines(items: Sequence[str]) -> str:
    return "\n".join(items) if items else "(none)"


def thought_prompt(context: ThoughtContext) -> str:
    """Ask for an internal monologue about the current context."""
    prompt = (
        "Analyze the following recent posts and external context.\n\n"
        "Based on this information, generate a concise internal monologue about the "
        "current posts and their relevance to update your priors.\n"
        "Focus on key themes, trends, and potential areas of interest, MOST IMPORTANTLY "
        "based on the external context.\n"
        "Stick to your persona and write in the way that suits you. "
        "It doesn't have to be legible to anyone but you.\n\n"
        f"Recent posts:\n{_lines(context.recent_posts)}\n\n"
        f"External context:\n{_lines(context.external_context)}"
    )
    if context.memory_summary:
        prompt += f"\n\nRecent thoughts:\n{context.memory_summary}"
    return prompt


def significance_prompt(memory: str) -> str:
    """Ask for a bare 1-10 rating."""
    return (
        "On a scale of 1-10, rate the significance of the following memory:\n\n"
        f'"{memory}"\n\n'
        "Use the following guidelines:\n"
        "1: Trivial, everyday occurrence with no lasting impact\n"
        "3: Mildly interesting or slightly unusual event\n"
        "5: Noteworthy occurrence that might be remembered for a few days\n"
        "7: Important event with potential long-term impact\n"
        "10: Life-changing or historically significant event\n\n"
        "Provide only the numerical score as your response and NOTHING ELSE."
    )


def post_prompt(
    thought: str,
    memories: Sequence[str],
    recent_posts: Sequence[str],
    external_context: Sequence[str],
) -> str:
    """Ask for a single post built from the current thought and memories."""
    memory_block = "\n".join(memories) if memories else NO_MEMORIES
    return (
        "Based on the following context, generate a tweet that reflects your current "
        "thoughts and personality.\n\n"
        f"Current thought:\n{thought}\n\n"
        f"Recent posts:\n{_lines(recent_posts)}\n\n"
        f"External context:\n{_lines(external_context)}\n\n"
        f"Relevant memories:\n{memory_block}\n\n"
        "Generate a single tweet that is authentic to your personality and responds to "
        "the current context. Be creative, be yourself, and don't be afraid to be weird."
    )


def reply_prompt(message: str, memories: Sequence[str]) -> str:
    """Ask for a reply to ``message`` informed only by memories."""
    memory_block = "\n".join(memories) if memories else NO_MEMORIES
    return (
        "Someone wrote to you:\n\n"
        f"{message}\n\n"
        f"Relevant memories:\n{memory_block}\n\n"
        "Write a single reply tweet that is authentic to your personality."
    )


def consolidation_content(first: str, second: str) -> str:
    """Merged text for two near-duplicate memories."""
    return f"Consolidated memory: {first} | {second}"
