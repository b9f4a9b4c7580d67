"""Memory assistant: saving notes and answering questions from them."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING

from ..config import AppConfig
from ..memory import (
    MemoryKind,
    MemoryRecord,
    MemoryStore,
    build_context,
    new_memory_id,
    now_ms,
)
from .prompt import (
    IMAGE_NOTE_TEXT,
    MEAL_ANALYSIS_PROMPT,
    NUTRITION_SYSTEM_PROMPT,
    build_summary_prompt,
    build_system_prompt,
    extract_calories,
    strip_thinking,
)

if TYPE_CHECKING:
    from ..llm_client import LLMClient
    from ..logging import JSONLLogger

logger = logging.getLogger(__name__)


@dataclass
class Answer:
    """An answer to a user question.

    Attributes:
        text: The model's answer with any thinking block removed.
        used_fallback: True if the answer was produced without memories.
        sources: Memories that were given to the model, most similar first.
    """

    text: str
    used_fallback: bool
    sources: list[MemoryRecord] = field(default_factory=list)


@dataclass
class MealNote:
    """A saved food photo and what the model made of it.

    Attributes:
        record: The stored image memory.
        analysis: The model's description of the meal.
        calories: Estimated calories, None if the model gave no estimate.
    """

    record: MemoryRecord
    analysis: str
    calories: float | None


def daily_calories(records: Iterable[MemoryRecord], day: date | None = None) -> float:
    """Sum the estimated calories of image notes taken on a local day.

    Args:
        records: Stored memories.
        day: The day to total. Defaults to today.

    Returns:
        Total estimated calories, 0.0 if no meal has an estimate.
    """
    day = day or date.today()
    total = 0.0
    for record in records:
        if record.kind is not MemoryKind.IMAGE:
            continue
        if datetime.fromtimestamp(record.created_at / 1000).date() != day:
            continue
        total += extract_calories(record.summary) or 0.0
    return total


class MemoryAssistant:
    """Saves notes into the store and answers questions grounded in them.

    This is the main interface used by the CLI; it coordinates the store,
    the LLM service and retrieval.
    """

    def __init__(
        self,
        store: MemoryStore,
        llm: LLMClient,
        config: AppConfig | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        """Initialize the assistant.

        Args:
            store: The MemoryStore holding notes.
            llm: Completion and embedding service.
            config: Retrieval settings. Defaults to AppConfig().
            event_log: Optional JSONL logger for retrieval events.
        """
        self.store = store
        self.llm = llm
        self.config = config or AppConfig()
        self.event_log = event_log

    async def summarize(self, text: str) -> str:
        """Ask the model for a short summary of a note."""
        response = await self.llm.complete(build_summary_prompt(text))
        return strip_thinking(response)

    async def _summary_or_text(self, text: str) -> str:
        """Summarize text, keeping the text itself if the model fails."""
        try:
            return await self.summarize(text) or text
        except Exception as e:
            logger.warning("Failed to summarize note, keeping its text: %s", e)
            if self.event_log is not None:
                self.event_log.log("summary_failed", error=str(e))
            return text

    async def analyze_image(self, image_uri: str) -> str:
        """Ask the vision model to describe a meal photo."""
        response = await self.llm.describe_image(
            image_uri, MEAL_ANALYSIS_PROMPT, system=NUTRITION_SYSTEM_PROMPT
        )
        return strip_thinking(response)

    async def save_image_note(self, image_uri: str, embed: bool = True) -> MealNote:
        """Analyze a food photo and save the analysis as an image memory.

        Args:
            image_uri: Path or URL of the photo.
            embed: Whether to embed the analysis for retrieval.

        Returns:
            The stored note with its calorie estimate.

        Raises:
            StorageError: If the note could not be saved.
        """
        analysis = await self.analyze_image(image_uri)

        # The raw text is a fixed label, so retrieval runs on the analysis.
        embedding = await self._embed(analysis) if embed and analysis else None
        record = MemoryRecord(
            id=new_memory_id(),
            kind=MemoryKind.IMAGE,
            raw_text=IMAGE_NOTE_TEXT,
            summary=analysis,
            created_at=now_ms(),
            embedding=embedding,
            media_uri=image_uri,
        )
        await self.store.insert_memory(record)
        return MealNote(record=record, analysis=analysis, calories=extract_calories(analysis))

    async def calories_today(self) -> float:
        """Total estimated calories of today's meal photos."""
        return daily_calories(await self.store.get_all())

    async def _embed(self, text: str) -> list[float] | None:
        """Embed text, returning None if the service fails or returns nothing."""
        try:
            vector = await self.llm.embed(text)
        except Exception as e:
            logger.warning("Failed to compute embedding: %s", e)
            if self.event_log is not None:
                self.event_log.log("embedding_failed", error=str(e))
            return None
        return vector or None

    async def save_note(
        self,
        raw_text: str,
        summary: str | None = None,
        kind: MemoryKind = MemoryKind.TEXT,
        media_uri: str | None = None,
        embed: bool = True,
    ) -> MemoryRecord:
        """Save a note as a new memory.

        Args:
            raw_text: The note as entered or transcribed.
            summary: Short text for display. Generated by the model when
                omitted and raw_text is not empty, or raw_text itself if
                the model fails.
            kind: What the note was captured from.
            media_uri: Reference to the image or audio behind the note. A
                note with media may have no text at all.
            embed: Whether to compute an embedding for retrieval.

        Returns:
            The stored record.

        Raises:
            ValueError: If the note has no text and no media.
            StorageError: If the note could not be saved.
        """
        raw_text = raw_text.strip()
        summary = (summary or "").strip()
        if not raw_text and not summary and media_uri is None:
            raise ValueError("Cannot save an empty note")
        if not summary and raw_text:
            summary = await self._summary_or_text(raw_text)

        created_at = now_ms()
        text = raw_text or summary
        embedding = await self._embed(text) if embed and text else None

        record = MemoryRecord(
            id=new_memory_id(),
            kind=kind,
            raw_text=raw_text,
            summary=summary,
            created_at=created_at,
            embedding=embedding,
            media_uri=media_uri,
        )
        return await self.store.insert_memory(record)

    async def ask(self, question: str) -> Answer:
        """Answer a question without consulting memories."""
        response = await self.llm.complete(question)
        return Answer(text=strip_thinking(response), used_fallback=True)

    async def ask_from_memories(self, question: str) -> Answer:
        """Answer a question using the most similar memories as context.

        Falls back to a plain answer when the question cannot be embedded or
        no stored memory has an embedding.
        """
        question = question.strip()
        if not question:
            raise ValueError("Cannot answer an empty question")

        start = time.monotonic()
        query_embedding = await self._embed(question)
        if query_embedding is None:
            logger.warning("No embedding produced for question, answering without memories")
            return await self.ask(question)

        records = await self.store.get_all()
        context = build_context(
            question,
            query_embedding,
            records,
            k=self.config.top_k,
            max_chars=self.config.max_context_chars,
        )

        if self.event_log is not None:
            self.event_log.log_retrieval(
                context.used_fallback,
                candidates=sum(1 for r in records if r.has_embedding),
                selected=[r.id for r in context.records],
                duration_ms=(time.monotonic() - start) * 1000,
            )

        if context.used_fallback:
            logger.info("No embedded memories yet, answering without memories")
            return await self.ask(question)

        response = await self.llm.complete(
            question, system=build_system_prompt(context.text)
        )
        return Answer(
            text=strip_thinking(response),
            used_fallback=False,
            sources=list(context.records),
        )
