"""Key-value persistence backends.

Backends are synchronous and have no transactions: ``set`` replaces the
whole blob for a key. A single reader/writer is assumed.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

_logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract byte store keyed by string."""

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the stored bytes, or None if the key is absent."""
        ...

    @abstractmethod
    def set(self, key: str, data: bytes) -> None:
        """Replace the bytes stored under key."""
        ...


class MemoryBackend(StorageBackend):
    """Process-local backend, mostly for tests and embedding hosts."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})
        self.writes = 0

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, data: bytes) -> None:
        self._data[key] = data
        self.writes += 1

    def keys(self) -> list[str]:
        return list(self._data)


class FileBackend(StorageBackend):
    """One ``<key>.json`` file per key inside a directory."""

    def __init__(self, directory: Path | str) -> None:
        self._dir = Path(directory)

    def path_for(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def get(self, key: str) -> bytes | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def set(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)
        _logger.debug("Wrote %d bytes to %s", len(data), path)
