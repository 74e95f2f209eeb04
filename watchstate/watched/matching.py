"""Dedup, equality and matching helpers for watch-history reconciliation."""

from __future__ import annotations

import re
from typing import Any, Iterable

from pydantic import BaseModel

from watchstate.types import LegacyItem, MediaId, SearchResult, WatchedItem, Year

_YEAR_RE = re.compile(r"\d{4}")


def derive_search_year(year: Year | None) -> int | None:
    """Four-digit year from a plain, date- or range-formatted value.

    "2009-05-01" -> 2009, "2019-2021" -> 2019, 2009 -> 2009.
    """
    if year is None or isinstance(year, bool):
        return None
    head = str(year).strip().split("-")[0]
    match = _YEAR_RE.search(head)
    if match is None:
        return None
    return int(match.group())


def years_are_close(a: int, b: int, tolerance: int = 1) -> bool:
    return abs(a - b) <= tolerance


def pick_search_match(
    results: Iterable[SearchResult], year: int, tolerance: int = 1,
) -> SearchResult | None:
    """First result whose year is within tolerance of ``year``."""
    for result in results:
        result_year = derive_search_year(result.year)
        if result_year is not None and years_are_close(result_year, year, tolerance):
            return result
    return None


def unique_media(items: Iterable[LegacyItem]) -> list[LegacyItem]:
    """Collapse entries by mediaId; the first occurrence wins."""
    seen: set[MediaId] = set()
    unique: list[LegacyItem] = []
    for item in items:
        if item.media_id in seen:
            continue
        seen.add(item.media_id)
        unique.append(item)
    return unique


def season_numbers(items: Iterable[LegacyItem], media_id: MediaId) -> list[int]:
    """Distinct season numbers referenced for one media, first-seen order."""
    numbers: list[int] = []
    for item in items:
        if item.media_id != media_id or item.season_id is None:
            continue
        if item.season_id not in numbers:
            numbers.append(item.season_id)
    return numbers


def item_key(item: WatchedItem) -> tuple[str, str | None]:
    """Uniqueness key: meta id, plus the canonical episode id for series."""
    series = item.item.series
    return item.item.meta.id, series.episode_id if series else None


def _normalize(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def structurally_equal(a: Any, b: Any) -> bool:
    """Deep equality over models, mappings and sequences."""
    return _normalize(a) == _normalize(b)

