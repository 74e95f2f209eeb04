"""Core types shared across all watchstate subsystems.

Persisted shapes use camelCase field names on the wire; models accept
either the alias or the Python attribute name.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, TypeAlias

from pydantic import BaseModel, Field, ValidationError, field_validator

_logger = logging.getLogger(__name__)

MediaId: TypeAlias = int
Number: TypeAlias = int | float
Year: TypeAlias = int | str


class MediaType(str, Enum):
    MOVIE = "movie"
    SERIES = "series"


# ── Legacy (schema version 1) ────────────────────────────────────────────────


class LegacyItem(BaseModel):
    """A flat watch-history record from before structured items existed.

    Read-only once loaded. Series entries carry season and episode numbers
    in ``seasonId`` / ``episodeId``.
    """

    media_id: MediaId = Field(alias="mediaId")
    media_type: MediaType = Field(alias="mediaType")
    percentage: Number = 0
    progress: Number = 0
    provider_id: str = Field(default="", alias="providerId")
    title: str
    year: Year
    season_id: int | None = Field(default=None, alias="seasonId")
    episode_id: int | None = Field(default=None, alias="episodeId")

    model_config = {"populate_by_name": True, "frozen": True}


class LegacyPayload(BaseModel):
    """Legacy records. Unreadable entries are logged and dropped one by one."""

    items: list[LegacyItem] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def drop_unreadable_items(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        kept = []
        for index, raw in enumerate(value):
            try:
                kept.append(LegacyItem.model_validate(raw))
            except ValidationError as e:
                _logger.warning(
                    "Dropping unreadable legacy record %d: %s",
                    index, "; ".join(err["msg"] for err in e.errors()),
                )
        return kept


# ── Canonical metadata ───────────────────────────────────────────────────────


class EpisodeRef(BaseModel):
    id: str
    number: int | None = None
    title: str = ""


class SeasonRef(BaseModel):
    id: str
    number: int | None = None
    title: str = ""


class SeasonData(BaseModel):
    """One season of a show with its positionally ordered episodes."""

    id: str
    number: int | None = None
    title: str = ""
    episodes: list[EpisodeRef] = Field(default_factory=list)


class CanonicalMeta(BaseModel):
    """Authoritative media descriptor from the metadata service."""

    id: str
    type: MediaType
    title: str = ""
    year: Year | None = None
    poster: str | None = None
    seasons: list[SeasonRef] | None = None
    season_data: SeasonData | None = Field(default=None, alias="seasonData")

    model_config = {"populate_by_name": True}


class DetailedMeta(BaseModel):
    meta: CanonicalMeta
    imdb_id: str | None = Field(default=None, alias="imdbId")
    tmdb_id: str | None = Field(default=None, alias="tmdbId")

    model_config = {"populate_by_name": True}


class SearchQuery(BaseModel):
    title: str
    year: int
    media_type: MediaType = Field(alias="mediaType")

    model_config = {"populate_by_name": True}


class SearchResult(BaseModel):
    id: str
    type: MediaType
    title: str = ""
    year: Year | None = None


# ── Watched items (schema version 2) ─────────────────────────────────────────


class WatchedSeries(BaseModel):
    season: int
    episode: int
    season_id: str = Field(alias="seasonId")
    episode_id: str = Field(alias="episodeId")

    model_config = {"populate_by_name": True}


class WatchedMedia(BaseModel):
    meta: CanonicalMeta
    series: WatchedSeries | None = None


class WatchedItem(BaseModel):
    item: WatchedMedia
    progress: Number
    percentage: Number
    watched_at: int = Field(alias="watchedAt")  # epoch milliseconds

    model_config = {"populate_by_name": True}


class WatchedStoreData(BaseModel):
    """Ordered watch progress. Keys: ``meta.id`` or ``(meta.id, episodeId)``."""

    items: list[WatchedItem] = Field(default_factory=list)
