from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

IndexerProvider = Literal["jackett", "prowlarr"]


@dataclass(frozen=True)
class SearchOptions:
    """Per-call search constraints. Empty tuples mean "use process defaults"."""

    categories: tuple[str, ...] = ()
    indexer_ids: tuple[str, ...] = ()
    limit: int | None = None


@dataclass(frozen=True)
class SearchResult:
    """Canonical indexer result, identical for every backend."""

    title: str
    size: int = 0  # bytes
    seeders: int = 0
    leechers: int = 0
    indexer_name: str | None = None
    direct_link: str | None = None  # download / redirect URL
    magnet_field: str | None = None  # explicit magnet URI field
    info_hash: str | None = None
    guid: str | None = None  # canonical result identifier
    categories: tuple[str, ...] = ()
