"""HTTP metadata provider — JSON catalogue API over httpx.

Follows the same per-call ``httpx.AsyncClient`` pattern as the rest of the
codebase's remote clients.

Endpoints:
    GET {base}/search?query=<title>&year=<year>&type=<movie|series>
        -> [{"id", "type", "title", "year"}, ...]
    GET {base}/meta/<type>/<id>[?season=<season id>]
        -> {"meta": {...}, "imdbId": ..., "tmdbId": ...}   (404 when unknown)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from watchstate.config import settings
from watchstate.metadata.base import MetadataProvider
from watchstate.types import DetailedMeta, MediaType, SearchQuery, SearchResult

_logger = logging.getLogger(__name__)


class HttpMetadataProvider(MetadataProvider):
    """Talks to a JSON metadata API."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._base_url = (base_url if base_url is not None else settings.metadata_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.metadata_api_key
        self._timeout = timeout if timeout is not None else settings.metadata_timeout
        if not self._base_url:
            raise ValueError("No metadata service URL configured (WATCHSTATE_METADATA_URL)")

    async def search(self, query: SearchQuery) -> list[SearchResult]:
        data = await self._get(
            "/search",
            params={
                "query": query.title,
                "year": query.year,
                "type": query.media_type.value,
            },
        )
        if not isinstance(data, list):
            _logger.warning("Unexpected search response for '%s': %r", query.title, data)
            return []
        return [SearchResult(**entry) for entry in data]

    async def get_by_id(
        self, media_type: MediaType, media_id: str, season_id: str | None = None,
    ) -> DetailedMeta | None:
        params = {"season": season_id} if season_id else None
        data = await self._get(f"/meta/{media_type.value}/{media_id}", params=params)
        if data is None:
            return None
        return DetailedMeta(**data)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self._base_url}{path}"
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(url, params=params, headers=self._headers())
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return resp.json()
