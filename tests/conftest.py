"""Shared test fixtures — in-memory storage and a canned metadata provider."""

from __future__ import annotations

import asyncio
from typing import Any

import orjson
import pytest

from watchstate.metadata.base import MetadataProvider
from watchstate.storage.backend import MemoryBackend
from watchstate.types import (
    CanonicalMeta,
    DetailedMeta,
    EpisodeRef,
    MediaType,
    SearchQuery,
    SearchResult,
    SeasonData,
    SeasonRef,
)


class FakeMetadataProvider(MetadataProvider):
    """Provider that answers from dicts. No network calls."""

    def __init__(
        self,
        search_results: dict[str, list[SearchResult]] | None = None,
        metas: dict[tuple[str, str | None], DetailedMeta] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.search_results = search_results or {}
        self.metas = metas or {}
        self.errors = errors or {}
        self.search_calls: list[SearchQuery] = []  # record all calls for assertions
        self.meta_calls: list[tuple[MediaType, str, str | None]] = []

    async def search(self, query: SearchQuery) -> list[SearchResult]:
        self.search_calls.append(query)
        await asyncio.sleep(0)
        if query.title in self.errors:
            raise self.errors[query.title]
        return list(self.search_results.get(query.title, []))

    async def get_by_id(self, media_type, media_id, season_id=None):
        self.meta_calls.append((media_type, media_id, season_id))
        await asyncio.sleep(0)
        return self.metas.get((media_id, season_id))


def movie_meta(meta_id: str, title: str = "", year: str = "") -> DetailedMeta:
    return DetailedMeta(meta=CanonicalMeta(id=meta_id, type=MediaType.MOVIE, title=title, year=year))


def show_metas(show_id: str, title: str, episodes_per_season: list[int]) -> dict:
    """Show-level meta plus one season-level meta per season."""
    seasons = [
        SeasonRef(id=f"{show_id}-s{n}", number=n)
        for n in range(1, len(episodes_per_season) + 1)
    ]
    metas: dict[tuple[str, str | None], DetailedMeta] = {
        (show_id, None): DetailedMeta(
            meta=CanonicalMeta(id=show_id, type=MediaType.SERIES, title=title, seasons=seasons)
        ),
    }
    for season, count in zip(seasons, episodes_per_season):
        metas[(show_id, season.id)] = DetailedMeta(
            meta=CanonicalMeta(
                id=show_id,
                type=MediaType.SERIES,
                title=title,
                seasons=seasons,
                season_data=SeasonData(
                    id=season.id,
                    number=season.number,
                    episodes=[
                        EpisodeRef(id=f"{season.id}-e{e}", number=e)
                        for e in range(1, count + 1)
                    ],
                ),
            )
        )
    return metas


def blob(body: Any, version: int | None) -> bytes:
    data = dict(body)
    if version is not None:
        data["--version"] = version
    return orjson.dumps(data)


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def provider():
    return FakeMetadataProvider()


@pytest.fixture
def make_provider():
    def _factory(**kwargs) -> FakeMetadataProvider:
        return FakeMetadataProvider(**kwargs)
    return _factory


@pytest.fixture
def make_blob():
    return blob


@pytest.fixture
def make_movie_meta():
    return movie_meta


@pytest.fixture
def make_show_metas():
    return show_metas
