"""Migration runner — walks a payload from its stored version to the latest.

The stored payload is first read through its own version's model, then
each step's output is the next step's input. A step without ``migrate``
passes the payload through unchanged. The runner never persists anything;
the store writes the final result once the whole walk succeeded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from watchstate.exceptions import MigrationError
from watchstate.storage.versions import VersionChain

_logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    payload: Any
    from_version: int
    to_version: int
    applied: list[int] = field(default_factory=list)

    @property
    def migrated(self) -> bool:
        return self.from_version != self.to_version


class MigrationRunner:
    """Applies every migrator in (stored, latest], ascending."""

    def __init__(self, chain: VersionChain) -> None:
        self._chain = chain

    def run(self, version: int, payload: Any) -> MigrationResult:
        latest = self._chain.latest_version
        if version > latest:
            raise MigrationError(
                f"Stored version {version} is newer than latest known version {latest}",
                version=version,
            )

        try:
            current = self._chain.get(version).coerce(payload)
        except ValidationError as e:
            raise MigrationError(
                f"Stored payload does not match version {version}: {e}",
                version=version,
            ) from e

        applied: list[int] = []
        for step in self._chain.steps_after(version):
            try:
                if step.migrate is not None:
                    current = step.migrate(current)
                current = step.coerce(current)
            except MigrationError:
                raise
            except ValidationError as e:
                raise MigrationError(
                    f"Migration to version {step.version} produced an invalid payload: {e}",
                    version=step.version,
                ) from e
            except Exception as e:
                raise MigrationError(
                    f"Migration to version {step.version} failed: {e}",
                    version=step.version,
                ) from e
            applied.append(step.version)
            _logger.debug("Migrated payload to version %d", step.version)

        return MigrationResult(
            payload=current,
            from_version=version,
            to_version=latest,
            applied=applied,
        )
