"""Prompt templates for the structured extraction service."""

from .templates import (
    ACTION_INSTRUCTIONS,
    INSTRUCTIONS_FOR_KIND,
    SYSTEM_WORD_INSTRUCTIONS,
    build_system_prompt,
)

__all__ = [
    "ACTION_INSTRUCTIONS",
    "INSTRUCTIONS_FOR_KIND",
    "SYSTEM_WORD_INSTRUCTIONS",
    "build_system_prompt",
]
