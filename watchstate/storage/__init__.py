"""Versioned single-key storage.

A store binds a chain of integer schema versions to one persistence key.
Every load walks the stored payload forward to the latest version.
"""

from watchstate.storage.backend import FileBackend, MemoryBackend, StorageBackend
from watchstate.storage.runner import MigrationResult, MigrationRunner
from watchstate.storage.store import VERSION_FIELD, VersionedStore
from watchstate.storage.versions import SchemaVersion, VersionChain, VersionChainBuilder

__all__ = [
    "FileBackend",
    "MemoryBackend",
    "MigrationResult",
    "MigrationRunner",
    "SchemaVersion",
    "StorageBackend",
    "VERSION_FIELD",
    "VersionChain",
    "VersionChainBuilder",
    "VersionedStore",
]
