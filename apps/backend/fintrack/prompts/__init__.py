"""Prompts package."""

from fintrack.prompts.duplicate import DUPLICATE_SYSTEM_PROMPT, get_duplicate_prompt

__all__ = [
    "DUPLICATE_SYSTEM_PROMPT",
    "get_duplicate_prompt",
]
