"""Builds the memory context block handed to the language model."""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from .models import MemoryRecord
from .similarity import rank_top_k

DEFAULT_TOP_K = 5
ENTRY_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class RetrievalContext:
    """Result of building a retrieval context.

    Unpacks as ``(text, used_fallback)``.

    Attributes:
        text: Numbered memory entries, most similar first. Empty on fallback.
        used_fallback: True when no embedded memories were available and the
            caller should answer without retrieval.
        records: The records rendered into ``text``.
    """

    text: str
    used_fallback: bool
    records: tuple[MemoryRecord, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator:
        return iter((self.text, self.used_fallback))


def format_timestamp(created_at: int) -> str:
    """Render a unix-ms timestamp as local time."""
    return datetime.fromtimestamp(created_at / 1000).strftime("%Y-%m-%d %H:%M")


def format_entry(position: int, record: MemoryRecord) -> str:
    """Render one record as a numbered context entry."""
    return (
        f"{position}. [{record.kind.value}] {format_timestamp(record.created_at)}"
        f" - {record.summary}\n{record.raw_text}"
    )


def _fit_entries(entries: Sequence[str], max_chars: int) -> list[str]:
    """Keep whole entries while they fit in max_chars."""
    kept: list[str] = []
    used = 0
    for entry in entries:
        cost = len(entry) + (len(ENTRY_SEPARATOR) if kept else 0)
        if used + cost > max_chars:
            break
        kept.append(entry)
        used += cost

    if not kept and entries:
        kept.append(entries[0][:max_chars])
    return kept


def build_context(
    query: str,
    query_embedding: Sequence[float],
    records: Iterable[MemoryRecord],
    k: int = DEFAULT_TOP_K,
    max_chars: int | None = None,
) -> RetrievalContext:
    """Select the k memories closest to the query and render them.

    Args:
        query: The user's question. Only the embedding is used for ranking.
        query_embedding: Embedding of the question.
        records: Candidate records; those without an embedding are skipped.
        k: Maximum number of memories in the context.
        max_chars: Optional cap on the length of the rendered text.

    Returns:
        The rendered context, with used_fallback set when nothing could be
        ranked.
    """
    if max_chars is not None and max_chars < 1:
        raise ValueError("max_chars must be at least 1")

    candidates = [(r, r.embedding) for r in records if r.has_embedding]
    if not candidates or not query_embedding:
        return RetrievalContext(text="", used_fallback=True)

    top = rank_top_k(query_embedding, candidates, k)
    entries = [format_entry(i, record) for i, record in enumerate(top, start=1)]
    if max_chars is not None:
        entries = _fit_entries(entries, max_chars)
        top = top[: len(entries)]

    return RetrievalContext(
        text=ENTRY_SEPARATOR.join(entries),
        used_fallback=False,
        records=tuple(top),
    )
