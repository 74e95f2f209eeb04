"""Metadata provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from watchstate.types import DetailedMeta, MediaType, SearchQuery, SearchResult


class MetadataProvider(ABC):
    """Search and by-id lookup against an external metadata catalogue."""

    @abstractmethod
    async def search(self, query: SearchQuery) -> list[SearchResult]:
        """Search by title/year/type. Results are ordered best match first."""
        ...

    @abstractmethod
    async def get_by_id(
        self, media_type: MediaType, media_id: str, season_id: str | None = None,
    ) -> DetailedMeta | None:
        """Fetch full metadata, optionally scoped to one season of a show.

        Returns None when the catalogue has no such entry.
        """
        ...
