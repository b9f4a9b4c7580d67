"""JSON codec for the persisted memory snapshot.

The snapshot is a JSON array of objects keyed the way the mobile app wrote
them (``id``, ``type``, ``rawText``, ``summary``, ``createdAt`` and the
optional ``embedding`` / ``mediaUri``), so older snapshots keep loading.
"""

import json
import logging
import math
from collections.abc import Iterable
from typing import Any

from .models import MemoryKind, MemoryRecord

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """Raised when a persisted snapshot cannot be read."""


def encode(records: Iterable[MemoryRecord]) -> bytes:
    """Serialize records, in order, to UTF-8 JSON."""
    return json.dumps(
        [_record_to_dict(r) for r in records],
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def decode(data: bytes | str | None) -> list[MemoryRecord]:
    """Deserialize a snapshot, returning an empty list if it is unreadable.

    Missing and empty input are a normal first run. Anything else that fails
    to parse is logged and treated as an empty collection.
    """
    if not data:
        return []
    try:
        return decode_strict(data)
    except DecodeError as e:
        logger.warning("Discarding unreadable memory snapshot: %s", e)
        return []


def decode_strict(data: bytes | str | None) -> list[MemoryRecord]:
    """Deserialize a snapshot, raising DecodeError on malformed input."""
    if not data:
        return []

    try:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        parsed = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"invalid JSON: {e}") from e

    if not isinstance(parsed, list):
        raise DecodeError(f"expected a list of records, got {type(parsed).__name__}")

    return [_record_from_dict(item, index) for index, item in enumerate(parsed)]


def _record_to_dict(record: MemoryRecord) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": record.id,
        "type": record.kind.value,
        "rawText": record.raw_text,
        "summary": record.summary,
        "createdAt": record.created_at,
    }
    if record.embedding is not None:
        data["embedding"] = list(record.embedding)
    if record.media_uri is not None:
        data["mediaUri"] = record.media_uri
    return data


def _record_from_dict(item: Any, index: int) -> MemoryRecord:
    if not isinstance(item, dict):
        raise DecodeError(f"record {index} is not an object")

    try:
        record_id = item["id"]
        kind = item["type"] if "type" in item else item["kind"]
        raw_text = item.get("rawText", "")
        summary = item.get("summary", "")
        created_at = item["createdAt"]
    except KeyError as e:
        raise DecodeError(f"record {index} is missing field {e}") from e

    if not isinstance(record_id, str):
        raise DecodeError(f"record {index} has a non-string id")
    if not isinstance(raw_text, str) or not isinstance(summary, str):
        raise DecodeError(f"record {index} has non-string text")
    if isinstance(created_at, bool) or not isinstance(created_at, (int, float)):
        raise DecodeError(f"record {index} has a non-numeric createdAt")

    try:
        kind = MemoryKind(kind)
    except ValueError as e:
        raise DecodeError(f"record {index} has unknown type {kind!r}") from e

    media_uri = item.get("mediaUri")
    if media_uri is not None and not isinstance(media_uri, str):
        raise DecodeError(f"record {index} has a non-string mediaUri")

    return MemoryRecord(
        id=record_id,
        kind=kind,
        raw_text=raw_text,
        summary=summary,
        created_at=int(created_at),
        embedding=_embedding_from_json(item.get("embedding"), index),
        media_uri=media_uri,
    )


def _embedding_from_json(value: Any, index: int) -> tuple[float, ...] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise DecodeError(f"record {index} has a non-list embedding")

    vector = []
    for component in value:
        if isinstance(component, bool) or not isinstance(component, (int, float)):
            raise DecodeError(f"record {index} has a non-numeric embedding value")
        if not math.isfinite(component):
            raise DecodeError(f"record {index} has a non-finite embedding value")
        vector.append(float(component))
    return tuple(vector)
