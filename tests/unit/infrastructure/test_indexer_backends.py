"""Tests for the Jackett and Prowlarr backends (search protocol, gateway use)."""

from __future__ import annotations

import httpx
import pytest
import respx

from schrodrive.domain.entities.errors import IndexerNotConfiguredError, IndexerRequestError
from schrodrive.domain.entities.search import SearchOptions, SearchResult
from schrodrive.infrastructure.common.gateway import ProviderGateway
from schrodrive.infrastructure.config.schema import IndexerBackendConfig
from schrodrive.infrastructure.indexers.base import (
    clamp_timeout,
    extract_records,
    strip_tmdb_tag,
    strip_years,
)
from schrodrive.infrastructure.indexers.jackett import JackettBackend
from schrodrive.infrastructure.indexers.prowlarr import ProwlarrBackend

_JACKETT = "http://jackett.local"
_JACKETT_SEARCH = f"{_JACKETT}/api/v2.0/indexers/all/results"
_PROWLARR = "http://prowlarr.local"
_PROWLARR_SEARCH = f"{_PROWLARR}/api/v1/search"
_MAGNET = "magnet:?xt=urn:btih:0123456789ABCDEF0123456789ABCDEF01234567"

_JACKETT_RECORD = {
    "Title": "Dune.2021.2160p.WEB",
    "Size": 12884901888,
    "Seeders": 120,
    "Peers": 14,
    "Tracker": "TrackerX",
    "Link": "http://jackett.local/dl/abc",
    "MagnetUri": _MAGNET,
    "InfoHash": "0123456789abcdef0123456789abcdef01234567",
    "Guid": "https://trackerx/details/1",
    "Category": [2000, 2045],
}

_PROWLARR_RECORD = {
    "title": "Dune.2021.1080p.BluRay",
    "size": "8 GB",
    "seeders": "45",
    "leechers": 2,
    "indexer": "TrackerY",
    "downloadUrl": "http://prowlarr.local/1/download",
    "infoHash": None,
    "guid": "https://trackery/t/9",
    "categories": [{"id": 2000, "name": "Movies"}, 2040],
}


def _jackett(
    http_client: httpx.AsyncClient, gateway: ProviderGateway, **overrides: object
) -> JackettBackend:
    config = IndexerBackendConfig(url=_JACKETT, api_key="jk-secret", **overrides)
    return JackettBackend(http_client=http_client, gateway=gateway, config=config)


def _prowlarr(
    http_client: httpx.AsyncClient, gateway: ProviderGateway, **overrides: object
) -> ProwlarrBackend:
    config = IndexerBackendConfig(url=_PROWLARR, api_key="pw-secret", **overrides)
    return ProwlarrBackend(http_client=http_client, gateway=gateway, config=config)


# ---------------------------------------------------------------------------
# Jackett
# ---------------------------------------------------------------------------


class TestJackettSearch:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_request_shape_and_normalization(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        route = respx.get(_JACKETT_SEARCH).respond(json={"Results": [_JACKETT_RECORD]})
        backend = _jackett(http_client, gateway)

        results = await backend.search(
            "Dune 2021 TMDB438631", SearchOptions(categories=("2000", "2045"))
        )

        params = route.calls[0].request.url.params
        assert params["apikey"] == "jk-secret"
        assert params["Query"] == "Dune 2021"
        assert params.get_list("Category") == ["2000", "2045"]
        assert results == [
            SearchResult(
                title="Dune.2021.2160p.WEB",
                size=12884901888,
                seeders=120,
                leechers=14,
                indexer_name="TrackerX",
                direct_link="http://jackett.local/dl/abc",
                magnet_field=_MAGNET,
                info_hash="0123456789abcdef0123456789abcdef01234567",
                guid="https://trackerx/details/1",
                categories=("2000", "2045"),
            )
        ]

    @respx.mock
    @pytest.mark.asyncio()
    async def test_first_indexer_id_in_path(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        route = respx.get(f"{_JACKETT}/api/v2.0/indexers/1337x/results").respond(
            json=[_JACKETT_RECORD]
        )
        backend = _jackett(http_client, gateway, indexer_ids="1337x,rarbg")

        results = await backend.search("Dune")

        assert route.called
        assert len(results) == 1

    @respx.mock
    @pytest.mark.asyncio()
    async def test_fallback_stages(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        route = respx.get(_JACKETT_SEARCH).mock(
            side_effect=[
                httpx.Response(200, json={"Results": []}),
                httpx.Response(200, json={"Results": []}),
                httpx.Response(200, json={"Results": [_JACKETT_RECORD]}),
            ]
        )
        backend = _jackett(http_client, gateway, categories="2000")

        results = await backend.search("Dune 2021")

        assert len(results) == 1
        assert route.call_count == 3
        first, second, third = (c.request.url.params for c in route.calls)
        assert (first["Query"], first.get_list("Category")) == ("Dune 2021", ["2000"])
        assert (second["Query"], second.get_list("Category")) == ("Dune", ["2000"])
        assert (third["Query"], third.get_list("Category")) == ("Dune 2021", [])

    @respx.mock
    @pytest.mark.asyncio()
    async def test_stops_at_first_stage_with_results(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        route = respx.get(_JACKETT_SEARCH).respond(json={"Results": [_JACKETT_RECORD]})
        backend = _jackett(http_client, gateway, categories="2000")

        await backend.search("Dune 2021")

        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio()
    async def test_results_truncated_to_limit(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        respx.get(_JACKETT_SEARCH).respond(json={"Results": [_JACKETT_RECORD] * 3})
        backend = _jackett(http_client, gateway, search_limit=2)

        assert len(await backend.search("Dune")) == 2

    @respx.mock
    @pytest.mark.asyncio()
    async def test_malformed_json_is_empty(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        respx.get(_JACKETT_SEARCH).respond(200, text="<html>oops</html>")
        backend = _jackett(http_client, gateway)

        assert await backend.search("Dune") == []

    @pytest.mark.asyncio()
    async def test_not_configured(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        backend = JackettBackend(
            http_client=http_client,
            gateway=gateway,
            config=IndexerBackendConfig(url=_JACKETT),
        )
        with pytest.raises(IndexerNotConfiguredError):
            await backend.search("Dune")


class TestJackettFailures:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_rate_limit_records_backoff_and_skips_network(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        route = respx.get(_JACKETT_SEARCH).respond(429)
        backend = _jackett(http_client, gateway)

        assert await backend.search("Dune") == []
        assert gateway.is_rate_limited("jackett")
        assert gateway.wait_seconds("jackett") == 60

        assert await backend.search("Dune") == []
        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio()
    async def test_server_error_served_from_cache(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        respx.get(_JACKETT_SEARCH).mock(
            side_effect=[
                httpx.Response(200, json={"Results": [_JACKETT_RECORD]}),
                httpx.Response(500),
            ]
        )
        backend = _jackett(http_client, gateway)

        first = await backend.search("Dune")
        second = await backend.search("Dune")

        assert second == first

    @respx.mock
    @pytest.mark.asyncio()
    async def test_server_error_without_cache_raises(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        respx.get(_JACKETT_SEARCH).respond(500)
        backend = _jackett(http_client, gateway)

        with pytest.raises(IndexerRequestError) as exc_info:
            await backend.search("Dune")
        assert "jk-secret" not in str(exc_info.value)

    @respx.mock
    @pytest.mark.asyncio()
    async def test_timeout_without_cache_raises(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        respx.get(_JACKETT_SEARCH).mock(side_effect=httpx.ReadTimeout("timed out"))
        backend = _jackett(http_client, gateway)

        with pytest.raises(IndexerRequestError):
            await backend.search("Dune")


class TestJackettMagnet:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_resolves_relative_link(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        respx.head(f"{_JACKETT}/dl/xyz").respond(302, headers={"Location": _MAGNET})
        backend = _jackett(http_client, gateway)
        result = SearchResult(title="Dune", direct_link="/dl/xyz")

        assert await backend.get_magnet_or_resolve(result) == _MAGNET

    @respx.mock
    @pytest.mark.asyncio()
    async def test_falls_back_to_guid(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        respx.head(f"{_JACKETT}/dl/dead").respond(404)
        respx.head("https://trackerx/details/1").respond(301, headers={"Location": _MAGNET})
        backend = _jackett(http_client, gateway)
        result = SearchResult(
            title="Dune", direct_link="/dl/dead", guid="https://trackerx/details/1"
        )

        assert await backend.get_magnet_or_resolve(result) == _MAGNET

    @pytest.mark.asyncio()
    async def test_direct_magnet_needs_no_network(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        backend = _jackett(http_client, gateway)
        result = SearchResult(title="Dune", magnet_field=_MAGNET)

        assert await backend.get_magnet_or_resolve(result) == _MAGNET
        assert await backend.get_magnet_or_resolve(None) is None


class TestJackettConnection:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_ok(self, http_client: httpx.AsyncClient, gateway: ProviderGateway) -> None:
        route = respx.get(f"{_JACKETT}/api/v2.0/server/config").respond(json={})
        assert await _jackett(http_client, gateway).test_connection() is True
        assert route.calls[0].request.url.params["apikey"] == "jk-secret"

    @respx.mock
    @pytest.mark.asyncio()
    async def test_failure(self, http_client: httpx.AsyncClient, gateway: ProviderGateway) -> None:
        respx.get(f"{_JACKETT}/api/v2.0/server/config").respond(401)
        assert await _jackett(http_client, gateway).test_connection() is False


# ---------------------------------------------------------------------------
# Prowlarr
# ---------------------------------------------------------------------------


class TestProwlarrSearch:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_request_shape_and_normalization(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        route = respx.get(_PROWLARR_SEARCH).respond(json=[_PROWLARR_RECORD])
        backend = _prowlarr(http_client, gateway, indexer_ids="3, 7", search_limit=25)

        results = await backend.search("Dune", SearchOptions(categories=("2000", "5000")))

        request = route.calls[0].request
        assert request.headers["X-Api-Key"] == "pw-secret"
        assert request.url.params["query"] == "Dune"
        assert request.url.params["categories"] == "2000,5000"
        assert request.url.params["indexerIds"] == "3,7"
        assert request.url.params["limit"] == "25"

        assert len(results) == 1
        result = results[0]
        assert result.size == 8 * 1024**3
        assert result.seeders == 45
        assert result.direct_link == "http://prowlarr.local/1/download"
        assert result.magnet_field is None
        assert result.categories == ("2000", "2040")

    @respx.mock
    @pytest.mark.asyncio()
    async def test_options_override_configured_limit(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        route = respx.get(_PROWLARR_SEARCH).respond(json=[_PROWLARR_RECORD])
        backend = _prowlarr(http_client, gateway)

        await backend.search("Dune", SearchOptions(limit=5, indexer_ids=("9",)))

        params = route.calls[0].request.url.params
        assert params["limit"] == "5"
        assert params["indexerIds"] == "9"
        assert "categories" not in params

    @respx.mock
    @pytest.mark.asyncio()
    async def test_connection(
        self, http_client: httpx.AsyncClient, gateway: ProviderGateway
    ) -> None:
        route = respx.get(f"{_PROWLARR}/api/v1/indexer").respond(json=[])
        assert await _prowlarr(http_client, gateway).test_connection() is True
        assert route.calls[0].request.headers["X-Api-Key"] == "pw-secret"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_strip_tmdb_tag() -> None:
    assert strip_tmdb_tag("Dune 2021 TMDB438631") == "Dune 2021"
    assert strip_tmdb_tag("TMDB1") == "TMDB1"
    assert strip_tmdb_tag("Dune") == "Dune"


def test_strip_years() -> None:
    assert strip_years("Blade Runner 2049 1982") == "Blade Runner"


def test_clamp_timeout() -> None:
    assert clamp_timeout(1) == 5.0
    assert clamp_timeout(30) == 30.0
    assert clamp_timeout(600) == 120.0


def test_extract_records() -> None:
    assert extract_records([{"a": 1}, "x"]) == [{"a": 1}]
    assert extract_records({"Results": [{"a": 1}]}) == [{"a": 1}]
    assert extract_records({"data": [{"b": 2}]}) == [{"b": 2}]
    assert extract_records({"unexpected": True}) == []
    assert extract_records("nope") == []
