"""Prompt builders for the memory assistant."""

import re

SYSTEM_PROMPT_BASE = """You are TrackMyBrain, my personal memory assistant.
Use ONLY the memories below to answer the user's question.
If something isn't covered by the memories, say you don't know.

Memories:
{context}"""

SUMMARY_PROMPT = "Summarize: {text}"

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)


def build_system_prompt(context: str) -> str:
    """Build the system prompt that grounds an answer in memories.

    Args:
        context: Rendered memory entries from build_context.

    Returns:
        Complete system prompt string.
    """
    return SYSTEM_PROMPT_BASE.format(context=context).strip()


def build_summary_prompt(text: str) -> str:
    """Build the prompt asking the model to summarize a note."""
    return SUMMARY_PROMPT.format(text=text)


def strip_thinking(text: str) -> str:
    """Remove the first <think>...</think> block from a model response.

    Falls back to the untouched response if nothing else is left.
    """
    cleaned = _THINK_BLOCK.sub("", text, count=1).strip()
    return cleaned or text


NUTRITION_SYSTEM_PROMPT = (
    "You are a nutrition coach. The user will send you a photo of a meal. "
    "Estimate macros and calories and respond in PLAIN TEXT (no JSON) using THIS format:\n\n"
    "Description: <short description of the meal>\n"
    "Estimated macros: protein <P> g, carbs <C> g, fats <F> g\n"
    "Estimated calories: <KCAL> kcal\n"
    "Meal type: breakfast / lunch / dinner / snack\n"
    "Calorie impact: likely surplus / likely deficit / roughly neutral versus a 2000 kcal day.\n\n"
    'Always include the line that starts with "Estimated calories:" so the day\'s '
    "calories can be summed later."
)

MEAL_ANALYSIS_PROMPT = "Look at this meal and estimate macros and calories for me."

IMAGE_NOTE_TEXT = "Food photo note"

_CALORIES = re.compile(r"Estimated calories:\s*(\d+(?:\.\d+)?)", re.IGNORECASE)


def extract_calories(text: str) -> float | None:
    """Read the "Estimated calories: N" line from a meal analysis.

    Returns None when the line is missing or the estimate is not positive.
    """
    match = _CALORIES.search(text)
    if match is None:
        return None
    calories = float(match.group(1))
    return calories if calories > 0 else None
