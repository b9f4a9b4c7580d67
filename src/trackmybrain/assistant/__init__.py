"""Memory assistant built on the store and the LLM service."""

from .prompt import (
    build_summary_prompt,
    build_system_prompt,
    extract_calories,
    strip_thinking,
)
from .service import Answer, MealNote, MemoryAssistant, daily_calories

__all__ = [
    "Answer",
    "MealNote",
    "MemoryAssistant",
    "build_summary_prompt",
    "build_system_prompt",
    "daily_calories",
    "extract_calories",
    "strip_thinking",
]
