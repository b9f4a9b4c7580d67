"""Tests for MemoryStore."""

import asyncio
import json
import time
from pathlib import Path

import pytest

from trackmybrain.logging import JSONLLogger
from trackmybrain.memory import (
    STORAGE_KEY,
    DuplicateMemoryError,
    FileBackend,
    InMemoryBackend,
    MemoryKind,
    MemoryRecord,
    MemoryStore,
    StorageError,
    decode,
)


def make_record(record_id: str, created_at: int, embedding=None) -> MemoryRecord:
    return MemoryRecord(
        id=record_id,
        kind=MemoryKind.TEXT,
        raw_text=f"note {record_id}",
        summary=f"summary {record_id}",
        created_at=created_at,
        embedding=embedding,
    )


class SlowBackend(InMemoryBackend):
    """Backend whose writes take a while, to expose interleavings."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self.delay = delay

    def write(self, key: str, data: bytes) -> None:
        time.sleep(self.delay)
        super().write(key, data)


class UnreadableBackend(InMemoryBackend):
    """Backend whose reads always fail."""

    def read(self, key: str) -> bytes | None:
        raise OSError("permission denied")


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def store(backend: InMemoryBackend) -> MemoryStore:
    store = MemoryStore(backend)
    yield store
    store.close()


class TestMemoryStoreInsert:
    """Tests for inserting records."""

    @pytest.mark.asyncio
    async def test_insert_returns_record(self, store: MemoryStore):
        """insert_memory returns the stored record."""
        record = make_record("1", 1)
        assert await store.insert_memory(record) == record

    @pytest.mark.asyncio
    async def test_insert_persists_snapshot(self, store: MemoryStore, backend: InMemoryBackend):
        """The whole collection is written under the fixed key."""
        await store.insert_memory(make_record("1", 1))
        await store.insert_memory(make_record("2", 2))

        persisted = decode(backend.read(STORAGE_KEY))
        assert [r.id for r in persisted] == ["2", "1"]

    @pytest.mark.asyncio
    async def test_insert_prepends(self, store: MemoryStore, backend: InMemoryBackend):
        """New records go to the front of the snapshot regardless of timestamp."""
        await store.insert_memory(make_record("late", 100))
        await store.insert_memory(make_record("early", 1))

        persisted = decode(backend.read(STORAGE_KEY))
        assert [r.id for r in persisted] == ["early", "late"]

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, store: MemoryStore):
        """Inserting an id twice raises and keeps the first record."""
        await store.insert_memory(make_record("1", 1))
        with pytest.raises(DuplicateMemoryError):
            await store.insert_memory(make_record("1", 2))

        records = await store.get_all()
        assert len(records) == 1
        assert records[0].created_at == 1

    @pytest.mark.asyncio
    async def test_duplicate_is_storage_error(self, store: MemoryStore):
        """DuplicateMemoryError is a StorageError."""
        await store.insert_memory(make_record("1", 1))
        with pytest.raises(StorageError):
            await store.insert_memory(make_record("1", 1))

    @pytest.mark.asyncio
    async def test_new_store_sees_persisted_records(self, backend: InMemoryBackend):
        """A second store over the same backend loads the snapshot."""
        first = MemoryStore(backend)
        await first.insert_memory(make_record("1", 1))

        second = MemoryStore(backend)
        assert [r.id for r in await second.get_all()] == ["1"]

    @pytest.mark.asyncio
    async def test_insert_into_corrupted_snapshot(self, backend: InMemoryBackend):
        """A corrupted snapshot is treated as empty and replaced."""
        backend.write(STORAGE_KEY, b"{not json")
        store = MemoryStore(backend)

        await store.insert_memory(make_record("1", 1))

        assert [r.id for r in decode(backend.read(STORAGE_KEY))] == ["1"]


class TestMemoryStoreFailures:
    """Tests for write and read failures."""

    @pytest.mark.asyncio
    async def test_failed_write_raises_storage_error(self, store: MemoryStore, backend: InMemoryBackend):
        """An I/O error on write is reported as StorageError."""
        backend.fail_writes = True
        with pytest.raises(StorageError) as exc_info:
            await store.insert_memory(make_record("1", 1))
        assert isinstance(exc_info.value.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_state(self, store: MemoryStore, backend: InMemoryBackend):
        """After a failed write both memory and disk hold the last good snapshot."""
        await store.insert_memory(make_record("1", 1))
        before = backend.read(STORAGE_KEY)

        backend.fail_writes = True
        with pytest.raises(StorageError):
            await store.insert_memory(make_record("2", 2))

        assert [r.id for r in await store.get_all()] == ["1"]
        assert backend.read(STORAGE_KEY) == before

    @pytest.mark.asyncio
    async def test_store_recovers_after_failed_write(self, store: MemoryStore, backend: InMemoryBackend):
        """The store keeps working once the backend recovers."""
        backend.fail_writes = True
        with pytest.raises(StorageError):
            await store.insert_memory(make_record("1", 1))

        backend.fail_writes = False
        await store.insert_memory(make_record("2", 2))
        assert [r.id for r in await store.get_all()] == ["2"]

    @pytest.mark.asyncio
    async def test_unencodable_record_raises_storage_error(self, store: MemoryStore):
        """A serialization failure is a StorageError, not a crash."""
        with pytest.raises(StorageError):
            await store.insert_memory(make_record("1", 1, embedding=[float("inf")]))
        assert await store.get_all() == []

    @pytest.mark.asyncio
    async def test_read_failure_is_empty_store(self):
        """get_all and get_recent treat an unreadable backend as empty."""
        store = MemoryStore(UnreadableBackend())
        assert await store.get_all() == []
        assert await store.get_recent(5) == []
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_read_failure_blocks_insert(self):
        """An insert never overwrites a snapshot it could not read."""
        store = MemoryStore(UnreadableBackend())
        with pytest.raises(StorageError):
            await store.insert_memory(make_record("1", 1))

    @pytest.mark.asyncio
    async def test_corrupted_snapshot_reads_empty(self, backend: InMemoryBackend):
        """A malformed snapshot reads as an empty store."""
        backend.write(STORAGE_KEY, b'{"not": "a list"}')
        store = MemoryStore(backend)
        assert await store.get_all() == []

    @pytest.mark.asyncio
    async def test_failures_are_logged_as_events(self, tmp_path: Path, backend: InMemoryBackend):
        """Insert outcomes are written to the event log."""
        event_log = JSONLLogger(log_dir=tmp_path)
        store = MemoryStore(backend, event_log=event_log)

        await store.insert_memory(make_record("1", 1))
        backend.fail_writes = True
        with pytest.raises(StorageError):
            await store.insert_memory(make_record("2", 2))

        events = [json.loads(line) for line in event_log.log_path.read_text().splitlines()]
        assert [e["event"] for e in events] == ["memory_inserted", "memory_insert_failed"]
        assert events[0]["record_id"] == "1"
        assert events[1]["record_id"] == "2"
        assert "simulated write failure" in events[1]["error"]


class TestMemoryStoreRead:
    """Tests for ordering of reads."""

    @pytest.mark.asyncio
    async def test_get_all_empty(self, store: MemoryStore):
        """get_all returns an empty list for a new store."""
        assert await store.get_all() == []

    @pytest.mark.asyncio
    async def test_get_all_sorted_by_created_at(self, store: MemoryStore):
        """get_all orders by created_at descending, not insertion order."""
        for record_id, created_at in [("a", 20), ("b", 5), ("c", 30), ("d", 10)]:
            await store.insert_memory(make_record(record_id, created_at))

        records = await store.get_all()
        assert [r.id for r in records] == ["c", "a", "d", "b"]

    @pytest.mark.asyncio
    async def test_equal_timestamps_keep_newest_first(self, store: MemoryStore):
        """Records sharing a timestamp stay in newest-first insertion order."""
        await store.insert_memory(make_record("first", 7))
        await store.insert_memory(make_record("second", 7))

        assert [r.id for r in await store.get_all()] == ["second", "first"]

    @pytest.mark.asyncio
    async def test_get_recent_is_prefix(self, store: MemoryStore):
        """get_recent(k) returns min(k, N) records, a prefix of get_all."""
        for i in range(5):
            await store.insert_memory(make_record(str(i), i * 10))

        all_records = await store.get_all()
        for k in range(8):
            recent = await store.get_recent(k)
            assert len(recent) == min(k, 5)
            assert recent == all_records[: len(recent)]

    @pytest.mark.asyncio
    async def test_get_recent_zero(self, store: MemoryStore):
        """A limit of 0 returns an empty list."""
        await store.insert_memory(make_record("1", 1))
        assert await store.get_recent(0) == []

    @pytest.mark.asyncio
    async def test_get_recent_negative_raises(self, store: MemoryStore):
        """A negative limit is rejected."""
        with pytest.raises(ValueError):
            await store.get_recent(-1)

    @pytest.mark.asyncio
    async def test_returned_list_is_a_copy(self, store: MemoryStore):
        """Changing a returned list does not change the store."""
        await store.insert_memory(make_record("1", 1, embedding=[1.0, 0.0]))

        records = await store.get_all()
        records.clear()

        again = await store.get_all()
        assert len(again) == 1
        assert again[0].embedding == (1.0, 0.0)

    @pytest.mark.asyncio
    async def test_count(self, store: MemoryStore):
        """count reports the number of stored records."""
        assert await store.count() == 0
        await store.insert_memory(make_record("1", 1))
        await store.insert_memory(make_record("2", 2))
        assert await store.count() == 2

    @pytest.mark.asyncio
    async def test_close_reloads_from_backend(self, store: MemoryStore, backend: InMemoryBackend):
        """After close the next read goes back to the backend."""
        await store.insert_memory(make_record("1", 1))
        store.close()
        assert [r.id for r in await store.get_all()] == ["1"]


class TestMemoryStoreConcurrency:
    """Tests for concurrent inserts and reads."""

    @pytest.mark.asyncio
    async def test_concurrent_inserts_lose_nothing(self):
        """N concurrent inserts all end up in the snapshot exactly once."""
        backend = SlowBackend(delay=0.001)
        store = MemoryStore(backend)

        records = [make_record(f"id-{i}", i) for i in range(25)]
        await asyncio.gather(*(store.insert_memory(r) for r in records))

        stored = await store.get_all()
        assert len(stored) == 25
        assert sorted(r.id for r in stored) == sorted(r.id for r in records)

        persisted = decode(backend.read(STORAGE_KEY))
        assert sorted(r.id for r in persisted) == sorted(r.id for r in records)

    @pytest.mark.asyncio
    async def test_concurrent_inserts_on_disk(self, tmp_path: Path):
        """Concurrent inserts through the file backend are all persisted."""
        store = MemoryStore(FileBackend(tmp_path))

        await asyncio.gather(
            *(store.insert_memory(make_record(str(i), i)) for i in range(20))
        )

        fresh = MemoryStore(FileBackend(tmp_path))
        assert len(await fresh.get_all()) == 20

    @pytest.mark.asyncio
    async def test_reader_sees_pre_state_during_write(self):
        """A read during an in-flight write sees the previous snapshot."""
        backend = SlowBackend(delay=0.2)
        store = MemoryStore(backend)

        insert = asyncio.create_task(store.insert_memory(make_record("1", 1)))
        await asyncio.sleep(0.05)

        assert await store.get_all() == []

        await insert
        assert [r.id for r in await store.get_all()] == ["1"]

    @pytest.mark.asyncio
    async def test_concurrent_reads_and_writes(self):
        """Interleaved reads only ever observe whole snapshots."""
        backend = SlowBackend(delay=0.002)
        store = MemoryStore(backend)
        seen: list[int] = []

        async def reader() -> None:
            for _ in range(10):
                records = await store.get_all()
                ids = {r.id for r in records}
                assert ids == {str(i) for i in range(len(ids))}
                seen.append(len(records))
                await asyncio.sleep(0.001)

        async def writer() -> None:
            for i in range(10):
                await store.insert_memory(make_record(str(i), i))

        await asyncio.gather(writer(), reader(), reader())

        assert len(await store.get_all()) == 10
        assert seen
