"""Video progress store — the watch-history key and its schema history.

Version 0: anything stored before versioning existed.
Version 1: flat legacy records (``LegacyPayload``). Version 0 data cannot
           be carried over and is dropped.
Version 2: structured watched items (``WatchedStoreData``). The step returns
           an empty list at once and hands the legacy records to the
           reconciler, which fills the store in later.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from watchstate.config import WatchStateSettings, settings as default_settings
from watchstate.exceptions import ConfigurationError
from watchstate.metadata.base import MetadataProvider
from watchstate.scheduling import DeferredScheduler
from watchstate.storage.backend import StorageBackend
from watchstate.storage.store import VersionedStore
from watchstate.storage.versions import VersionChain, VersionChainBuilder
from watchstate.types import LegacyPayload, WatchedStoreData
from watchstate.watched.reconciler import Reconciler

_logger = logging.getLogger(__name__)

LegacyHandoff = Callable[[LegacyPayload], None]


def build_progress_chain(on_legacy: LegacyHandoff) -> VersionChain:
    """Schema history of the video progress key.

    ``on_legacy`` receives the legacy payload when the structured format is
    introduced; it must not block.
    """

    def to_legacy(_old: Any) -> LegacyPayload:
        return LegacyPayload()

    def to_structured(old: LegacyPayload) -> WatchedStoreData:
        if old.items:
            on_legacy(old)
        return WatchedStoreData()

    return (
        VersionChainBuilder()
        .add_version(0)
        .add_version(1, migrate=to_legacy, model=LegacyPayload)
        .add_version(2, migrate=to_structured, create=WatchedStoreData, model=WatchedStoreData)
        .build()
    )


class VideoProgress:
    """Owns the progress store, its reconciler and the background scheduler."""

    def __init__(
        self,
        backend: StorageBackend,
        provider: MetadataProvider | None = None,
        scheduler: DeferredScheduler | None = None,
        config: WatchStateSettings | None = None,
    ) -> None:
        config = config or default_settings
        self.scheduler = scheduler or DeferredScheduler(delay=config.reconcile_delay)
        self.reconciler = (
            Reconciler(provider, year_tolerance=config.year_tolerance)
            if provider is not None else None
        )
        self.store = VersionedStore(
            config.store_key, build_progress_chain(self._schedule_reconcile), backend,
        )

    def load(self) -> WatchedStoreData:
        return self.store.load()

    def save(self, data: WatchedStoreData) -> None:
        self.store.save(data)

    async def wait_for_background(self) -> None:
        """Block until any scheduled reconciliation has settled."""
        await self.scheduler.drain()

    def _schedule_reconcile(self, legacy: LegacyPayload) -> None:
        if self.reconciler is None:
            # Aborts the migration; the legacy blob stays as it is.
            raise ConfigurationError(
                f"{len(legacy.items)} legacy watch records need a metadata provider"
            )
        _logger.info(
            "Scheduling reconciliation of %d legacy watch records", len(legacy.items)
        )
        self.scheduler.defer(self.reconciler.run, legacy, self.store)
