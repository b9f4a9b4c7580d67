"""Memory module: persistent notes and similarity retrieval."""

from .backend import FileBackend, InMemoryBackend, KeyValueBackend
from .codec import DecodeError, decode, decode_strict, encode
from .models import MemoryKind, MemoryRecord, new_memory_id, now_ms
from .retrieval import DEFAULT_TOP_K, RetrievalContext, build_context
from .similarity import ScoredMemory, cosine, rank_top_k, score_candidates
from .store import STORAGE_KEY, DuplicateMemoryError, MemoryStore, StorageError

__all__ = [
    "DEFAULT_TOP_K",
    "STORAGE_KEY",
    "DecodeError",
    "DuplicateMemoryError",
    "FileBackend",
    "InMemoryBackend",
    "KeyValueBackend",
    "MemoryKind",
    "MemoryRecord",
    "MemoryStore",
    "RetrievalContext",
    "ScoredMemory",
    "StorageError",
    "build_context",
    "cosine",
    "decode",
    "decode_strict",
    "encode",
    "new_memory_id",
    "now_ms",
    "rank_top_k",
    "score_candidates",
]
