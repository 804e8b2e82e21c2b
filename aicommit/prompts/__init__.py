"""Prompt Construction Package"""

from aicommit.prompts.builder import (
    PromptBuilder,
    GenerateOptions,
    SYSTEM_PROMPT,
    RESPONSE_SYSTEM_PROMPT,
    language_name,
)

__all__ = [
    "PromptBuilder",
    "GenerateOptions",
    "SYSTEM_PROMPT",
    "RESPONSE_SYSTEM_PROMPT",
    "language_name",
]
