"""Jackett adapter (``/api/v2.0/indexers/{id|all}/results``)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from schrodrive.domain.entities.search import SearchResult
from schrodrive.infrastructure.common.converters import to_int, to_size_bytes, to_str
from schrodrive.infrastructure.indexers.base import IndexerBackend, SearchRequest


def _categories(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple)):
        return tuple(str(c) for c in raw if c is not None)
    return (str(raw),)


class JackettBackend(IndexerBackend):
    """Jackett speaks PascalCase and searches one indexer (or ``all``) per call.

    Only the first configured indexer id is used; Jackett has no server-side
    limit, so results are truncated client-side.
    """

    name = "jackett"

    def _build_search_request(
        self,
        query: str,
        *,
        categories: Sequence[str],
        indexer_ids: Sequence[str],
        limit: int,
    ) -> SearchRequest:
        indexer_path = indexer_ids[0] if indexer_ids else "all"
        params = [("apikey", self._config.api_key), ("Query", query)]
        params.extend(("Category", str(c)) for c in categories)
        return SearchRequest(
            url=f"{self.base_url}/api/v2.0/indexers/{indexer_path}/results",
            params=params,
        )

    def _connection_request(self) -> SearchRequest:
        return SearchRequest(
            url=f"{self.base_url}/api/v2.0/server/config",
            params=[("apikey", self._config.api_key)],
        )

    def _normalize(self, record: dict[str, Any]) -> SearchResult:
        return SearchResult(
            title=to_str(record.get("Title") or record.get("title")) or "",
            size=to_size_bytes(record.get("Size", record.get("size"))),
            seeders=to_int(record.get("Seeders", record.get("seeders"))),
            leechers=to_int(record.get("Peers", record.get("leechers"))),
            indexer_name=to_str(record.get("Tracker") or record.get("indexer")),
            direct_link=to_str(record.get("Link") or record.get("link")),
            magnet_field=to_str(record.get("MagnetUri") or record.get("magnetUrl")),
            info_hash=to_str(record.get("InfoHash") or record.get("infoHash")),
            guid=to_str(record.get("Guid") or record.get("guid")),
            categories=_categories(record.get("Category", record.get("categories"))),
        )
