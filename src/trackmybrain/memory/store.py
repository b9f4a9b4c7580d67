"""Durable memory store backed by a single snapshot."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from .backend import KeyValueBackend
from .codec import decode, encode
from .models import MemoryRecord

if TYPE_CHECKING:
    from ..logging import JSONLLogger

logger = logging.getLogger(__name__)

STORAGE_KEY = "trackmybrain_memories_v1"


class StorageError(Exception):
    """Raised when a write to the store did not complete."""


class DuplicateMemoryError(StorageError):
    """Raised when inserting a record whose id is already stored."""


class MemoryStore:
    """Persistent collection of memory records.

    The whole collection lives under one backend key and every insert
    rewrites it. Inserts are serialized by an asyncio lock so two concurrent
    inserts cannot both start from the same snapshot. Readers never take the
    lock: they see the last snapshot that was durably written.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        key: str = STORAGE_KEY,
        event_log: JSONLLogger | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            backend: Where the snapshot is persisted.
            key: Backend key holding the snapshot.
            event_log: Optional JSONL logger for store events.
        """
        self.backend = backend
        self.key = key
        self.event_log = event_log
        self._lock = asyncio.Lock()
        self._snapshot: tuple[MemoryRecord, ...] | None = None

    async def _load(self) -> tuple[MemoryRecord, ...]:
        """Read and decode the persisted snapshot."""
        data = await asyncio.to_thread(self.backend.read, self.key)
        return tuple(decode(data))

    async def _current(self) -> tuple[MemoryRecord, ...]:
        """Return the published snapshot, loading it on first use."""
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot

        try:
            snapshot = await self._load()
        except OSError as e:
            logger.warning("Failed to read memory snapshot %r: %s", self.key, e)
            self._log("snapshot_unreadable", error=str(e))
            return ()

        # A writer may have published while we were loading.
        if self._snapshot is None:
            self._snapshot = snapshot
        return self._snapshot

    async def insert_memory(self, record: MemoryRecord) -> MemoryRecord:
        """Prepend a record and persist the updated collection.

        Args:
            record: The record to store.

        Returns:
            The stored record.

        Raises:
            DuplicateMemoryError: A record with the same id is already stored.
            StorageError: The snapshot could not be read or written. The store
                keeps its previous snapshot.
        """
        async with self._lock:
            start = time.monotonic()
            current = self._snapshot
            if current is None:
                try:
                    current = await self._load()
                except OSError as e:
                    self._insert_failed(record, e)
                    raise StorageError(f"Cannot read memory snapshot: {e}") from e

            if any(existing.id == record.id for existing in current):
                error = DuplicateMemoryError(f"Memory id {record.id!r} already exists")
                self._insert_failed(record, error)
                raise error

            updated = (record, *current)
            try:
                data = encode(updated)
                await asyncio.to_thread(self.backend.write, self.key, data)
            except (OSError, TypeError, ValueError) as e:
                self._insert_failed(record, e)
                raise StorageError(f"Failed to save memory {record.id!r}: {e}") from e

            self._snapshot = updated

        self._log(
            "memory_inserted",
            record_id=record.id,
            kind=record.kind.value,
            duration_ms=(time.monotonic() - start) * 1000,
            has_embedding=record.has_embedding,
            total=len(updated),
        )
        return record

    async def get_all(self) -> list[MemoryRecord]:
        """Return every record, newest first by created_at."""
        snapshot = await self._current()
        return sorted(snapshot, key=lambda r: r.created_at, reverse=True)

    async def get_recent(self, limit: int = 20) -> list[MemoryRecord]:
        """Return the ``limit`` newest records.

        Args:
            limit: Maximum number of records, 0 returns an empty list.

        Raises:
            ValueError: If limit is negative.
        """
        if limit < 0:
            raise ValueError("limit must be non-negative")
        if limit == 0:
            return []
        return (await self.get_all())[:limit]

    async def count(self) -> int:
        """Number of stored records."""
        return len(await self._current())

    def close(self) -> None:
        """Release the cached snapshot."""
        self._snapshot = None

    def _insert_failed(self, record: MemoryRecord, error: Exception) -> None:
        logger.error("Failed to insert memory %s: %s", record.id, error)
        self._log("memory_insert_failed", record_id=record.id, error=str(error))

    def _log(self, event: str, **fields) -> None:
        if self.event_log is not None:
            self.event_log.log(event, **fields)
