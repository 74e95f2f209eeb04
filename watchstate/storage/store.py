"""Versioned store — binds a version chain to one persistence key.

Persisted layout is a single JSON object: the payload body's fields plus a
reserved ``"--version"`` tag. An absent key, or bytes that cannot be read
back as such an object, count as "no prior state" and yield ``create()``.
"""

from __future__ import annotations

import logging
from typing import Any

import orjson
from pydantic import BaseModel

from watchstate.exceptions import ParseError
from watchstate.storage.backend import StorageBackend
from watchstate.storage.runner import MigrationRunner
from watchstate.storage.versions import VersionChain

_logger = logging.getLogger(__name__)

VERSION_FIELD = "--version"


def decode_blob(raw: bytes) -> tuple[int, dict[str, Any]]:
    """Split a persisted blob into (version, body). Raises ParseError."""
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise ParseError(f"Stored payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"Stored payload is a {type(data).__name__}, expected an object")

    version = data.pop(VERSION_FIELD, 0)  # untagged data predates versioning
    if not isinstance(version, int) or isinstance(version, bool) or version < 0:
        raise ParseError(f"Invalid version tag {version!r}")
    return version, data


def encode_blob(version: int, payload: Any) -> bytes:
    if isinstance(payload, BaseModel):
        body = payload.model_dump(mode="json", by_alias=True)
    else:
        body = payload
    if not isinstance(body, dict):
        raise TypeError(
            f"Versioned payloads must serialize to an object, got {type(body).__name__}"
        )
    return orjson.dumps({**body, VERSION_FIELD: version})


class VersionedStore:
    """Load/save access to one key, migrating on every load."""

    def __init__(self, key: str, chain: VersionChain, backend: StorageBackend) -> None:
        self._key = key
        self._chain = chain
        self._backend = backend
        self._runner = MigrationRunner(chain)

    @property
    def key(self) -> str:
        return self._key

    @property
    def chain(self) -> VersionChain:
        return self._chain

    def load(self) -> Any:
        """Return the payload at the latest version.

        Migrations run synchronously; any background work they schedule
        starts later and is not awaited here. Raises MigrationError if the
        stored body does not match its version or a step fails, leaving the
        persisted blob untouched.
        """
        stored = self._read()
        if stored is None:
            return self._initialize()

        version, payload = stored
        result = self._runner.run(version, payload)
        if result.migrated:
            self._write(result.payload)
            _logger.info(
                "Migrated '%s' from version %d to %d (steps: %s)",
                self._key, result.from_version, result.to_version, result.applied,
            )
        return result.payload

    def save(self, payload: Any) -> None:
        """Replace the stored blob with payload at the latest version."""
        self._write(self._chain.latest.coerce(payload))

    def version(self) -> int | None:
        """Version tag currently persisted, or None if nothing usable is stored."""
        raw = self._backend.get(self._key)
        if raw is None:
            return None
        try:
            version, _ = decode_blob(raw)
        except ParseError:
            return None
        return version

    def _read(self) -> tuple[int, Any] | None:
        raw = self._backend.get(self._key)
        if raw is None:
            return None
        # Only unreadable bytes count as absent. A readable body that fails
        # its model is the runner's to reject, so it is never overwritten.
        try:
            return decode_blob(raw)
        except ParseError as e:
            _logger.warning("Discarding unreadable state for '%s': %s", self._key, e)
            return None

    def _initialize(self) -> Any:
        if not self._chain.can_create:
            _logger.debug("No state for '%s' and no create() defined", self._key)
            return None
        payload = self._chain.create()
        self._write(payload)
        _logger.info(
            "Initialized '%s' at version %d", self._key, self._chain.latest_version
        )
        return payload

    def _write(self, payload: Any) -> None:
        self._backend.set(self._key, encode_blob(self._chain.latest_version, payload))
