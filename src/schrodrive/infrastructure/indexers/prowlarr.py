"""Prowlarr adapter (``/api/v1/search``)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from schrodrive.domain.entities.search import SearchResult
from schrodrive.infrastructure.common.converters import to_int, to_size_bytes, to_str
from schrodrive.infrastructure.indexers.base import IndexerBackend, SearchRequest


def _categories(raw: Any) -> tuple[str, ...]:
    """Prowlarr returns categories as ints or ``{"id": 2000, "name": ...}`` objects."""
    if not isinstance(raw, list):
        return ()
    out: list[str] = []
    for item in raw:
        if isinstance(item, dict):
            item = item.get("id")
        if item is not None:
            out.append(str(item))
    return tuple(out)


class ProwlarrBackend(IndexerBackend):
    name = "prowlarr"

    def _headers(self) -> dict[str, str]:
        return {"X-Api-Key": self._config.api_key}

    def _build_search_request(
        self,
        query: str,
        *,
        categories: Sequence[str],
        indexer_ids: Sequence[str],
        limit: int,
    ) -> SearchRequest:
        params = [("query", query)]
        if categories:
            params.append(("categories", ",".join(categories)))
        if indexer_ids:
            params.append(("indexerIds", ",".join(indexer_ids)))
        if limit:
            params.append(("limit", str(limit)))
        return SearchRequest(
            url=f"{self.base_url}/api/v1/search",
            params=params,
            headers=self._headers(),
        )

    def _connection_request(self) -> SearchRequest:
        return SearchRequest(url=f"{self.base_url}/api/v1/indexer", headers=self._headers())

    def _normalize(self, record: dict[str, Any]) -> SearchResult:
        return SearchResult(
            title=to_str(record.get("title")) or "",
            size=to_size_bytes(record.get("size")),
            seeders=to_int(record.get("seeders")),
            leechers=to_int(record.get("leechers")),
            indexer_name=to_str(record.get("indexer")),
            direct_link=to_str(record.get("downloadUrl") or record.get("link")),
            magnet_field=to_str(record.get("magnetUrl")),
            info_hash=to_str(record.get("infoHash")),
            guid=to_str(record.get("guid")),
            categories=_categories(record.get("categories")),
        )
