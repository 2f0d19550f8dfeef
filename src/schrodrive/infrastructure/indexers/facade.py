"""Active-backend selection and delegation."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

import structlog

from schrodrive.domain.entities.errors import IndexerNotConfiguredError
from schrodrive.domain.entities.search import SearchOptions, SearchResult
from schrodrive.infrastructure.indexers import magnet
from schrodrive.infrastructure.indexers.base import IndexerBackend

log = structlog.get_logger(__name__)

ProviderName = Literal["jackett", "prowlarr", "none"]

# Probe order when no backend is named explicitly.
AUTO_PRIORITY: tuple[str, ...] = ("jackett", "prowlarr")


class IndexerFacade:
    """Picks one backend for the process lifetime and delegates to it.

    An explicitly configured provider is used only if its credentials are
    present (otherwise ``"none"`` with a warning).  ``"auto"`` probes
    Jackett, then Prowlarr.  The choice is cached; tests reset it with
    :meth:`clear_provider_cache`.
    """

    def __init__(
        self,
        backends: Mapping[str, IndexerBackend],
        *,
        preferred: str = "auto",
    ) -> None:
        self._backends = dict(backends)
        self._preferred = (preferred or "auto").lower()
        self._cached: ProviderName | None = None

    def provider_name(self) -> ProviderName:
        if self._cached is None:
            self._cached = self._select()
            log.info("indexer_provider_selected", provider=self._cached, preferred=self._preferred)
        return self._cached

    def clear_provider_cache(self) -> None:
        self._cached = None

    def _select(self) -> ProviderName:
        if self._preferred in AUTO_PRIORITY:
            backend = self._backends.get(self._preferred)
            if backend is not None and backend.is_configured():
                return self._preferred  # type: ignore[return-value]
            log.warning(
                "indexer_provider_not_configured",
                provider=self._preferred,
                hint=f"set {self._preferred} url and api_key",
            )
            return "none"

        for name in AUTO_PRIORITY:
            backend = self._backends.get(name)
            if backend is not None and backend.is_configured():
                return name  # type: ignore[return-value]
        return "none"

    def active_backend(self) -> IndexerBackend | None:
        name = self.provider_name()
        if name == "none":
            return None
        return self._backends[name]

    def is_configured(self) -> bool:
        return self.active_backend() is not None

    async def test_connection(self) -> bool:
        backend = self.active_backend()
        if backend is None:
            return False
        return await backend.test_connection()

    async def search(
        self, query: str, options: SearchOptions | None = None
    ) -> list[SearchResult]:
        backend = self.active_backend()
        if backend is None:
            raise IndexerNotConfiguredError(
                "No indexer provider configured. Set jackett url/api_key "
                "or prowlarr url/api_key."
            )
        return await backend.search(query, options)

    def pick_best(self, results: list[SearchResult]) -> SearchResult | None:
        return magnet.pick_best(results)

    def get_magnet(self, result: SearchResult | None) -> str | None:
        return magnet.get_magnet(result)

    async def get_magnet_or_resolve(self, result: SearchResult | None) -> str | None:
        direct = magnet.get_magnet(result)
        if direct or result is None:
            return direct
        backend = self.active_backend()
        if backend is None:
            return None
        return await backend.get_magnet_or_resolve(result)
