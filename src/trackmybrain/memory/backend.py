"""Key-value backends holding the persisted snapshot."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueBackend(Protocol):
    """Blob storage addressed by string keys.

    ``write`` must replace the value atomically: a concurrent ``read`` sees
    either the previous value or the new one, never a partial write.
    """

    def read(self, key: str) -> bytes | None:
        """Return the stored value, or None if the key was never written."""
        ...

    def write(self, key: str, data: bytes) -> None:
        """Store a value, raising OSError if it could not be made durable."""
        ...


class FileBackend:
    """Stores each key as a JSON file in a directory."""

    def __init__(self, directory: Path | str) -> None:
        """Initialize the backend.

        Args:
            directory: Directory for the snapshot files, created on first write.
        """
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        """File path backing a key."""
        return self.directory / f"{key}.json"

    def read(self, key: str) -> bytes | None:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def write(self, key: str, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)

        # Write next to the target so os.replace stays on one filesystem.
        fd, tmp_name = tempfile.mkstemp(
            dir=self.directory, prefix=f".{key}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

        logger.debug("Wrote %d bytes to %s", len(data), path)


class InMemoryBackend:
    """Dict-backed backend for tests and throwaway stores."""

    def __init__(self, fail_writes: bool = False) -> None:
        self.fail_writes = fail_writes
        self._data: dict[str, bytes] = {}

    def read(self, key: str) -> bytes | None:
        return self._data.get(key)

    def write(self, key: str, data: bytes) -> None:
        if self.fail_writes:
            raise OSError("simulated write failure")
        self._data[key] = bytes(data)
