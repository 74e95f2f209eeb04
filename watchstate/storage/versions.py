"""Schema version descriptors and the chain builder.

A chain is built once and never changes afterwards. Versions are the
integers 0..N with no gaps; only the latest version may define ``create``.

Usage:
    chain = (
        VersionChainBuilder()
        .add_version(0)
        .add_version(1, migrate=upgrade_v1, model=PayloadV1)
        .add_version(2, migrate=upgrade_v2, create=empty_v2, model=PayloadV2)
        .build()
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel

from watchstate.exceptions import ConfigurationError

Migrator = Callable[[Any], Any]
Factory = Callable[[], Any]


@dataclass(frozen=True)
class SchemaVersion:
    """One schema revision.

    ``migrate`` receives the payload of the previous version and returns the
    payload of this one. ``model``, when set, is the payload shape at this
    version and is used to validate what is read or produced.
    """

    version: int
    migrate: Migrator | None = None
    create: Factory | None = None
    model: type[BaseModel] | None = None

    def coerce(self, payload: Any) -> Any:
        """Validate payload against this version's model, if any."""
        if self.model is None or isinstance(payload, self.model):
            return payload
        return self.model.model_validate(payload)


class VersionChain:
    """Ordered, immutable sequence of schema versions."""

    def __init__(self, versions: tuple[SchemaVersion, ...]) -> None:
        self._versions = versions

    @property
    def versions(self) -> tuple[SchemaVersion, ...]:
        return self._versions

    @property
    def latest(self) -> SchemaVersion:
        return self._versions[-1]

    @property
    def latest_version(self) -> int:
        return self.latest.version

    def get(self, version: int) -> SchemaVersion:
        if not 0 <= version <= self.latest_version:
            raise KeyError(version)
        return self._versions[version]

    def steps_after(self, version: int) -> tuple[SchemaVersion, ...]:
        """Descriptors for versions in (version, latest], ascending."""
        return self._versions[max(version + 1, 0):]

    @property
    def can_create(self) -> bool:
        return self.latest.create is not None

    def create(self) -> Any:
        """Fresh payload at the latest version, or None without a factory."""
        if self.latest.create is None:
            return None
        return self.latest.coerce(self.latest.create())

    def __len__(self) -> int:
        return len(self._versions)

    def __repr__(self) -> str:
        return f"VersionChain(versions={[v.version for v in self._versions]})"


class VersionChainBuilder:
    """Accumulates version descriptors and validates them on build()."""

    def __init__(self) -> None:
        self._versions: list[SchemaVersion] = []

    def add_version(
        self,
        version: int,
        *,
        migrate: Migrator | None = None,
        create: Factory | None = None,
        model: type[BaseModel] | None = None,
    ) -> VersionChainBuilder:
        self._versions.append(
            SchemaVersion(version=version, migrate=migrate, create=create, model=model)
        )
        return self

    def build(self) -> VersionChain:
        """Validate the accumulated versions and freeze them into a chain."""
        if not self._versions:
            raise ConfigurationError("Version chain has no versions")

        seen: set[int] = set()
        for index, descriptor in enumerate(self._versions):
            version = descriptor.version
            if not isinstance(version, int) or isinstance(version, bool):
                raise ConfigurationError(f"Version {version!r} is not an integer")
            if version in seen:
                raise ConfigurationError(f"Duplicate version {version}")
            if index > 0 and version < self._versions[index - 1].version:
                raise ConfigurationError(
                    f"Version {version} is out of order "
                    f"(follows {self._versions[index - 1].version})"
                )
            if version != index:
                raise ConfigurationError(
                    f"Expected version {index} at position {index}, got {version}"
                )
            seen.add(version)

        if self._versions[0].migrate is not None:
            raise ConfigurationError("Version 0 cannot define migrate()")

        creators = [v.version for v in self._versions if v.create is not None]
        if len(creators) > 1:
            raise ConfigurationError(
                f"Only one version may define create(), found {creators}"
            )
        if creators and creators[0] != self._versions[-1].version:
            raise ConfigurationError(
                f"create() must be defined on the latest version, "
                f"found it on version {creators[0]}"
            )

        return VersionChain(tuple(self._versions))
