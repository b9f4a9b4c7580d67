"""Exact cosine-similarity ranking over stored embeddings."""

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from .models import MemoryRecord

Vector = Sequence[float]


@dataclass(frozen=True)
class ScoredMemory:
    """A record together with its similarity to a query."""

    record: MemoryRecord
    score: float


def cosine(a: Vector, b: Vector) -> float:
    """Cosine similarity of two vectors, in [-1, 1].

    Returns 0.0 when either vector is empty or has zero magnitude, when
    the lengths differ (embeddings from different models), and when the
    result is not finite.
    """
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.size == 0 or vb.size == 0 or va.shape != vb.shape:
        return 0.0

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    with np.errstate(invalid="ignore", over="ignore"):
        score = float(np.dot(va, vb) / (norm_a * norm_b))
    if not math.isfinite(score):
        return 0.0
    return max(-1.0, min(1.0, score))


def score_candidates(
    query: Vector,
    candidates: Sequence[tuple[MemoryRecord, Vector]],
) -> list[ScoredMemory]:
    """Score every candidate against the query, best first.

    The sort is stable, so equal scores keep their input order.
    """
    scored = [ScoredMemory(record, cosine(query, vector)) for record, vector in candidates]
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored


def rank_top_k(
    query: Vector,
    candidates: Sequence[tuple[MemoryRecord, Vector]],
    k: int,
) -> list[MemoryRecord]:
    """Return the k records most similar to the query.

    Args:
        query: The query embedding.
        candidates: (record, embedding) pairs to rank.
        k: How many records to return; fewer come back if there are fewer
            candidates.

    Raises:
        ValueError: If k is less than 1.
    """
    if k < 1:
        raise ValueError("k must be at least 1")
    return [s.record for s in score_candidates(query, candidates)[:k]]
