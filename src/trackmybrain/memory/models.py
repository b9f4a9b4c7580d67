"""Data models for the memory store."""

import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum


class MemoryKind(str, Enum):
    """What a memory was captured from."""

    TEXT = "text"
    IMAGE = "image"
    VOICE = "voice"
    VIDEO = "video"


@dataclass(frozen=True)
class MemoryRecord:
    """A single note in the memory store.

    Attributes:
        id: Unique id, conventionally a millisecond timestamp as decimal text.
        kind: What the note was captured from.
        raw_text: Original user or source text, may be empty for media notes.
        summary: Short human or model produced text.
        created_at: Unix time in milliseconds.
        embedding: Embedding of the note, None when none was computed.
        media_uri: Opaque reference to image or audio content.
    """

    id: str
    kind: MemoryKind
    raw_text: str
    summary: str
    created_at: int
    embedding: tuple[float, ...] | None = None
    media_uri: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, MemoryKind):
            object.__setattr__(self, "kind", MemoryKind(self.kind))
        if self.embedding is not None and not isinstance(self.embedding, tuple):
            object.__setattr__(self, "embedding", _as_vector(self.embedding))

    @property
    def has_embedding(self) -> bool:
        """True when the record can take part in similarity ranking."""
        return bool(self.embedding)

    @property
    def retrieval_text(self) -> str:
        """Text to embed for this record, falling back to the summary."""
        return self.raw_text or self.summary


def _as_vector(values: Sequence[float]) -> tuple[float, ...]:
    return tuple(float(v) for v in values)


def now_ms() -> int:
    """Current unix time in milliseconds."""
    return time.time_ns() // 1_000_000


_id_lock = threading.Lock()
_last_id = 0


def new_memory_id() -> str:
    """Return a fresh millisecond-timestamp id.

    Ids are strictly increasing within the process: two calls landing in the
    same millisecond get consecutive values instead of colliding.
    """
    global _last_id
    with _id_lock:
        candidate = now_ms()
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
        return str(candidate)
