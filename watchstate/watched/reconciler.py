"""Reconciler — upgrades legacy flat watch records into structured items.

Runs in the background after the legacy->structured migration has already
returned an empty item list. Each unique legacy media is matched against
the metadata service by title and year; shows are then resolved season by
season, and every legacy entry that still maps onto a canonical movie or
episode becomes a WatchedItem.

Best effort throughout: a media, season or episode that cannot be matched
is logged and left out. Nothing is retried; unmatched entries are gone once
the rebuilt list is saved.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

import structlog
from pydantic import BaseModel

from watchstate.config import settings
from watchstate.exceptions import LookupMiss, StructuralMismatch
from watchstate.metadata.base import MetadataProvider
from watchstate.storage.store import VersionedStore
from watchstate.types import (
    CanonicalMeta,
    LegacyItem,
    LegacyPayload,
    MediaId,
    MediaType,
    SearchQuery,
    SearchResult,
    WatchedItem,
    WatchedMedia,
    WatchedSeries,
    WatchedStoreData,
)
from watchstate.watched.matching import (
    derive_search_year,
    item_key,
    pick_search_match,
    season_numbers,
    structurally_equal,
    unique_media,
)

logger = structlog.get_logger()

# (media id, legacy season number or None for movies)
MetaKey = tuple[MediaId, int | None]


class ReconcileReport(BaseModel):
    """What one reconciliation run did."""

    legacy_items: int = 0
    unique_media: int = 0
    resolved_media: int = 0
    resolved_seasons: int = 0
    restored: int = 0
    dropped: int = 0
    duplicates: int = 0
    written: bool = False


def _now_ms() -> int:
    return int(time.time() * 1000)


def _skip(error: BaseException, **context: Any) -> None:
    logger.warning(
        "reconcile_entry_skipped",
        reason=type(error).__name__,
        error=str(error),
        **context,
    )


class Reconciler:
    """Resolves legacy watch records against a metadata provider."""

    def __init__(
        self,
        provider: MetadataProvider,
        year_tolerance: int | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._provider = provider
        self._tolerance = (
            year_tolerance if year_tolerance is not None else settings.year_tolerance
        )
        self._clock = clock

    async def run(self, legacy: LegacyPayload, store: VersionedStore) -> ReconcileReport:
        """Rebuild the store's items from legacy records; write only on change."""
        items = legacy.items
        report = ReconcileReport(legacy_items=len(items))

        media = unique_media(items)
        report.unique_media = len(media)

        matches = await self._match_all(media)
        report.resolved_media = len(matches)

        metas = await self._resolve_all(items, matches)
        report.resolved_seasons = sum(1 for _, season in metas if season is not None)

        # The hand-off only fires while the blob is below version 2, and the
        # load that fired it has already written version 2. This load runs no
        # migrator, so it cannot schedule a second reconciliation.
        current: WatchedStoreData = store.load()
        rebuilt = self._rebuild(items, metas, current, report)
        report.restored = len(rebuilt)

        if structurally_equal(rebuilt, current.items):
            logger.info("reconcile_unchanged", **report.model_dump())
            return report

        store.save(WatchedStoreData(items=rebuilt))
        report.written = True
        logger.info("reconcile_completed", **report.model_dump())
        return report

    # ── Media matching ──────────────────────────────────────────

    async def _match_all(self, media: list[LegacyItem]) -> dict[MediaId, SearchResult]:
        outcomes = await asyncio.gather(
            *(self._match(entry) for entry in media), return_exceptions=True,
        )
        matches: dict[MediaId, SearchResult] = {}
        for entry, outcome in zip(media, outcomes):
            if isinstance(outcome, BaseException):
                _skip(outcome, media_id=entry.media_id, title=entry.title)
                continue
            matches[entry.media_id] = outcome
        return matches

    async def _match(self, entry: LegacyItem) -> SearchResult:
        year = derive_search_year(entry.year)
        if year is None:
            raise LookupMiss(f"Cannot derive a search year from {entry.year!r}")

        results = await self._provider.search(
            SearchQuery(title=entry.title, year=year, media_type=entry.media_type)
        )
        match = pick_search_match(results, year, self._tolerance)
        if match is None:
            raise LookupMiss(
                f"No search result for '{entry.title}' within "
                f"{self._tolerance} year(s) of {year}"
            )
        return match

    # ── Canonical metadata ──────────────────────────────────────

    async def _resolve_all(
        self, items: list[LegacyItem], matches: dict[MediaId, SearchResult],
    ) -> dict[MetaKey, CanonicalMeta]:
        media_ids = list(matches)
        outcomes = await asyncio.gather(
            *(self._resolve_media(items, mid, matches[mid]) for mid in media_ids),
            return_exceptions=True,
        )
        metas: dict[MetaKey, CanonicalMeta] = {}
        for media_id, outcome in zip(media_ids, outcomes):
            if isinstance(outcome, BaseException):
                _skip(outcome, media_id=media_id, match_id=matches[media_id].id)
                continue
            metas.update(outcome)
        return metas

    async def _resolve_media(
        self, items: list[LegacyItem], media_id: MediaId, match: SearchResult,
    ) -> dict[MetaKey, CanonicalMeta]:
        if match.type == MediaType.SERIES:
            return await self._resolve_seasons(items, media_id, match)

        detailed = await self._provider.get_by_id(match.type, match.id)
        if detailed is None:
            # The search hit alone still identifies the movie.
            return {(media_id, None): CanonicalMeta(
                id=match.id, type=match.type, title=match.title, year=match.year,
            )}
        return {(media_id, None): detailed.meta}

    async def _resolve_seasons(
        self, items: list[LegacyItem], media_id: MediaId, match: SearchResult,
    ) -> dict[MetaKey, CanonicalMeta]:
        show = await self._provider.get_by_id(match.type, match.id)
        if show is None or not show.meta.seasons:
            raise LookupMiss(f"No season list for series {match.id}")
        seasons = show.meta.seasons

        # Legacy season N is the show's Nth season, by position.
        wanted = []
        for number in season_numbers(items, media_id):
            if not 1 <= number <= len(seasons):
                _skip(
                    StructuralMismatch(
                        f"Season {number} is out of range ({len(seasons)} seasons)"
                    ),
                    media_id=media_id, match_id=match.id,
                )
                continue
            wanted.append((number, seasons[number - 1]))

        outcomes = await asyncio.gather(
            *(self._provider.get_by_id(match.type, match.id, season.id) for _, season in wanted),
            return_exceptions=True,
        )
        metas: dict[MetaKey, CanonicalMeta] = {}
        for (number, season), outcome in zip(wanted, outcomes):
            if isinstance(outcome, BaseException):
                _skip(outcome, media_id=media_id, season=number)
            elif outcome is None or outcome.meta.season_data is None:
                _skip(
                    LookupMiss(f"No metadata for season {season.id} of {match.id}"),
                    media_id=media_id, season=number,
                )
            else:
                metas[(media_id, number)] = outcome.meta
        return metas

    # ── Output ──────────────────────────────────────────────────

    def _rebuild(
        self,
        items: list[LegacyItem],
        metas: dict[MetaKey, CanonicalMeta],
        current: WatchedStoreData,
        report: ReconcileReport,
    ) -> list[WatchedItem]:
        now = self._clock()
        previous = {item_key(existing): existing.watched_at for existing in current.items}
        rebuilt: list[WatchedItem] = []
        keys: set[tuple[str, str | None]] = set()

        for entry in items:
            media = self._build_media(entry, metas)
            if media is None:
                report.dropped += 1
                continue

            candidate = WatchedItem(
                item=media,
                progress=entry.progress,
                percentage=entry.percentage,
                watched_at=now,  # legacy records carry no timestamp
            )
            key = item_key(candidate)
            if key in keys:
                report.duplicates += 1
                continue
            keys.add(key)
            if key in previous:
                candidate = candidate.model_copy(update={"watched_at": previous[key]})
            rebuilt.append(candidate)

        return rebuilt

    def _build_media(
        self, entry: LegacyItem, metas: dict[MetaKey, CanonicalMeta],
    ) -> WatchedMedia | None:
        if entry.media_type == MediaType.MOVIE:
            meta = metas.get((entry.media_id, None))
            return WatchedMedia(meta=meta) if meta is not None else None

        if entry.season_id is None or entry.episode_id is None:
            _skip(
                StructuralMismatch("Series entry lacks a season or episode number"),
                media_id=entry.media_id,
            )
            return None

        meta = metas.get((entry.media_id, entry.season_id))
        if meta is None or meta.season_data is None:
            return None

        episodes = meta.season_data.episodes
        index = entry.episode_id - 1
        if not 0 <= index < len(episodes):
            _skip(
                StructuralMismatch(
                    f"Episode {entry.episode_id} is out of range "
                    f"({len(episodes)} episodes in season {entry.season_id})"
                ),
                media_id=entry.media_id, season=entry.season_id,
            )
            return None

        return WatchedMedia(
            meta=meta,
            series=WatchedSeries(
                season=entry.season_id,
                episode=entry.episode_id,
                season_id=meta.season_data.id,
                episode_id=episodes[index].id,
            ),
        )
