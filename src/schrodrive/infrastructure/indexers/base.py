"""Shared search machinery for indexer backends.

A backend only describes its wire format (:meth:`_build_search_request`,
:meth:`_normalize`, :meth:`_connection_request`).  Everything else lives
here:

- query preparation (``TMDB<id>`` tag stripping),
- the staged fallback protocol (base -> without year -> without categories),
- Gateway discipline for every HTTP call (skip while rate limited,
  throttle, cache on success, classify failures),
- payload normalization and truncation,
- magnet helpers and redirect resolution.
"""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode, urljoin

import httpx
import structlog

from schrodrive.domain.entities.errors import IndexerNotConfiguredError, IndexerRequestError
from schrodrive.domain.entities.search import SearchOptions, SearchResult
from schrodrive.infrastructure.common.gateway import ProviderGateway
from schrodrive.infrastructure.config.schema import IndexerBackendConfig
from schrodrive.infrastructure.indexers import magnet
from schrodrive.infrastructure.indexers.redirect_walker import (
    RedirectWalker,
    clamp_hops,
    is_http_url,
)

log = structlog.get_logger(__name__)

MIN_TIMEOUT_SECONDS = 5.0
MAX_TIMEOUT_SECONDS = 120.0

_TMDB_TAG_RE = re.compile(r"\s*TMDB\d+\b", re.IGNORECASE)
_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
_MULTI_SPACE_RE = re.compile(r"\s{2,}")
_WRAPPER_KEYS = ("Results", "results", "data")
_SECRET_PARAMS = frozenset({"apikey", "api_key"})


def strip_tmdb_tag(query: str) -> str:
    """Remove ``TMDB<digits>`` tags; returns the original if nothing remains."""
    stripped = _MULTI_SPACE_RE.sub(" ", _TMDB_TAG_RE.sub("", query)).strip()
    return stripped or query


def has_year(query: str) -> bool:
    return bool(_YEAR_RE.search(query))


def strip_years(query: str) -> str:
    return _MULTI_SPACE_RE.sub(" ", _YEAR_RE.sub("", query)).strip()


def clamp_timeout(seconds: float) -> float:
    return max(MIN_TIMEOUT_SECONDS, min(float(seconds), MAX_TIMEOUT_SECONDS))


def extract_records(payload: Any) -> list[dict[str, Any]]:
    """Return the list of result records from a bare or wrapped payload.

    Anything that is not a list (or a dict wrapping one under a known key)
    yields no records; non-dict items are dropped.
    """
    records: Any = payload
    if isinstance(payload, dict):
        records = next(
            (payload[k] for k in _WRAPPER_KEYS if isinstance(payload.get(k), list)),
            None,
        )
    if not isinstance(records, list):
        return []
    return [r for r in records if isinstance(r, dict)]


@dataclass(frozen=True)
class SearchRequest:
    """One HTTP round-trip of the search protocol."""

    url: str
    params: list[tuple[str, str]] = field(default_factory=list)
    headers: dict[str, str] = field(default_factory=dict)

    def cache_key(self, provider: str) -> str:
        public = sorted((k, v) for k, v in self.params if k.lower() not in _SECRET_PARAMS)
        return f"{provider}:search:{self.url}?{urlencode(public)}"


class IndexerBackend(ABC):
    """Base for one indexer (Jackett or Prowlarr)."""

    name: str = ""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        gateway: ProviderGateway,
        config: IndexerBackendConfig,
        redirect_walker: RedirectWalker | None = None,
    ) -> None:
        self._client = http_client
        self._gateway = gateway
        self._config = config
        self._walker = redirect_walker or RedirectWalker(http_client, gateway)

    # ------------------------------------------------------------------
    # Wire format (backend specific)
    # ------------------------------------------------------------------

    @abstractmethod
    def _build_search_request(
        self,
        query: str,
        *,
        categories: Sequence[str],
        indexer_ids: Sequence[str],
        limit: int,
    ) -> SearchRequest: ...

    @abstractmethod
    def _normalize(self, record: dict[str, Any]) -> SearchResult: ...

    @abstractmethod
    def _connection_request(self) -> SearchRequest: ...

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        return self._config.url

    @property
    def timeout(self) -> float:
        return clamp_timeout(self._config.timeout_seconds)

    def is_configured(self) -> bool:
        return self._config.is_configured

    def _redact(self, text: str) -> str:
        """Hide the API key if it leaked into an error message (query string)."""
        key = self._config.api_key
        return text.replace(key, "***") if key else text

    async def test_connection(self) -> bool:
        """Probe the backend. Returns False on any failure."""
        if not self.is_configured():
            return False
        request = self._connection_request()
        started = time.perf_counter()
        await self._gateway.throttle(self.name)
        try:
            response = await self._client.get(
                request.url,
                params=request.params,
                headers=request.headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.error(
                "indexer_connection_test_failed",
                provider=self.name,
                error=self._redact(str(exc)),
                error_type=type(exc).__name__,
                status_code=_status_code(exc),
            )
            return False
        log.info(
            "indexer_connection_test_ok",
            provider=self.name,
            duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
        )
        return True

    async def search(
        self, query: str, options: SearchOptions | None = None
    ) -> list[SearchResult]:
        """Run the staged search: base, then without year, then without categories.

        At most three sequential round-trips; each later stage runs only if
        the previous one returned nothing.

        Raises:
            IndexerNotConfiguredError: URL or API key missing.
            IndexerRequestError: transient failure with nothing cached.
        """
        if not self.is_configured():
            raise IndexerNotConfiguredError(
                f"{self.name} is not configured (url and api_key are required)"
            )

        options = options or SearchOptions()
        used_query = strip_tmdb_tag(str(query or ""))
        categories = tuple(options.categories) or tuple(self._config.categories)
        indexer_ids = tuple(options.indexer_ids) or tuple(self._config.indexer_ids)
        limit = options.limit or self._config.search_limit

        results = await self._search_once(
            used_query, categories=categories, indexer_ids=indexer_ids, limit=limit
        )

        if not results and has_year(used_query):
            without_year = strip_years(used_query)
            if without_year and without_year != used_query:
                log.info(
                    "indexer_search_fallback",
                    provider=self.name,
                    stage="without_year",
                    query=used_query,
                    fallback_query=without_year,
                )
                results = await self._search_once(
                    without_year, categories=categories, indexer_ids=indexer_ids, limit=limit
                )

        if not results and categories:
            log.info(
                "indexer_search_fallback",
                provider=self.name,
                stage="without_categories",
                query=used_query,
            )
            results = await self._search_once(
                used_query, categories=(), indexer_ids=indexer_ids, limit=limit
            )

        return results

    def pick_best(self, results: list[SearchResult]) -> SearchResult | None:
        return magnet.pick_best(results)

    def get_magnet(self, result: SearchResult | None) -> str | None:
        return magnet.get_magnet(result)

    async def get_magnet_or_resolve(self, result: SearchResult | None) -> str | None:
        """Return the direct magnet, else walk the link (then guid) redirects."""
        if result is None:
            return None
        direct = magnet.get_magnet(result)
        if direct:
            return direct

        seen: set[str] = set()
        for candidate in (result.direct_link, result.guid):
            if not candidate:
                continue
            url = urljoin(self.base_url + "/", candidate)
            if url in seen or not is_http_url(url):
                continue
            seen.add(url)
            resolved = await self._walker.resolve(
                url,
                provider=self.name,
                max_hops=clamp_hops(self._config.redirect_max_hops),
                timeout=self.timeout,
            )
            if resolved:
                return resolved
        return None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _search_once(
        self,
        query: str,
        *,
        categories: Sequence[str],
        indexer_ids: Sequence[str],
        limit: int,
    ) -> list[SearchResult]:
        request = self._build_search_request(
            query, categories=categories, indexer_ids=indexer_ids, limit=limit
        )
        log.info(
            "indexer_search_request",
            provider=self.name,
            url=request.url,
            query=query,
            categories=list(categories),
            indexer_ids=list(indexer_ids),
            timeout_seconds=self.timeout,
        )
        started = time.perf_counter()
        payload = await self._fetch(request, query=query)

        results: list[SearchResult] = []
        for record in extract_records(payload):
            try:
                results.append(self._normalize(record))
            except (TypeError, ValueError) as exc:
                log.debug("indexer_record_skipped", provider=self.name, error=str(exc))
        if limit and len(results) > limit:
            results = results[:limit]

        log.info(
            "indexer_search_response",
            provider=self.name,
            count=len(results),
            duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
            sample=[
                {"title": r.title, "seeders": r.seeders, "size": r.size}
                for r in results[:5]
            ],
        )
        return results

    async def _fetch(self, request: SearchRequest, *, query: str) -> Any:
        """GET *request* through the Gateway and return the decoded payload.

        Rate limited (now or by this call): cached payload or [].
        Malformed JSON: [].
        Other HTTP failure: cached payload, else IndexerRequestError.
        """
        cache_key = request.cache_key(self.name)

        if self._gateway.is_rate_limited(self.name):
            cached = self._gateway.get_cache(cache_key)
            log.warning(
                "indexer_rate_limited_skip",
                provider=self.name,
                wait_seconds=self._gateway.wait_seconds(self.name),
                served_from_cache=cached is not None,
            )
            return cached if cached is not None else []

        await self._gateway.throttle(self.name)
        try:
            response = await self._client.get(
                request.url,
                params=request.params,
                headers=request.headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            return self._handle_failure(exc, cache_key=cache_key, request=request, query=query)
        except ValueError as exc:
            log.warning(
                "indexer_malformed_payload",
                provider=self.name,
                query=query,
                error=self._redact(str(exc)),
            )
            return []

        self._gateway.record_success(self.name)
        self._gateway.set_cache(cache_key, payload)
        return payload

    def _handle_failure(
        self,
        exc: httpx.HTTPError,
        *,
        cache_key: str,
        request: SearchRequest,
        query: str,
    ) -> Any:
        cached = self._gateway.get_cache(cache_key)

        if self._gateway.is_rate_limit_error(exc):
            self._gateway.record_rate_limit(
                self.name, self._redact(str(exc)) or type(exc).__name__
            )
            return cached if cached is not None else []

        log.error(
            "indexer_request_failed",
            provider=self.name,
            url=request.url,
            query=query,
            error=self._redact(str(exc)),
            error_type=type(exc).__name__,
            status_code=_status_code(exc),
            timeout_seconds=self.timeout,
        )
        if isinstance(exc, httpx.TimeoutException):
            log.error(
                "indexer_timeout_diagnostics",
                provider=self.name,
                base_url=self.base_url,
                query=query,
                suggestion=(
                    f"Check network connectivity to {self.name}; consider raising "
                    "timeout_seconds or narrowing indexer_ids/categories"
                ),
            )

        if cached is not None:
            log.info("indexer_served_from_cache", provider=self.name, query=query)
            return cached
        raise IndexerRequestError(f"{self.name} search failed: {self._redact(str(exc))}") from exc


def _status_code(exc: BaseException) -> int | None:
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None)
