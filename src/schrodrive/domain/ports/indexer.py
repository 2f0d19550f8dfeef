"""Port for torrent indexer search and magnet resolution."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from schrodrive.domain.entities.search import SearchOptions, SearchResult


@runtime_checkable
class IndexerPort(Protocol):
    """Searches an indexer and turns its results into magnet URIs.

    Implementations:
      - JackettBackend / ProwlarrBackend (one indexer each)
      - IndexerFacade (selects one backend and delegates)
    """

    async def test_connection(self) -> bool: ...

    async def search(
        self, query: str, options: SearchOptions | None = None
    ) -> list[SearchResult]:
        """Run the staged search. Raises on missing configuration."""
        ...

    def pick_best(self, results: list[SearchResult]) -> SearchResult | None: ...

    def get_magnet(self, result: SearchResult | None) -> str | None:
        """Return a magnet without any network call, or None."""
        ...

    async def get_magnet_or_resolve(self, result: SearchResult | None) -> str | None:
        """Like get_magnet, but may follow the result's redirect chain."""
        ...
