"""Shared test fixtures for the SchroDrive test suite."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from schrodrive.domain.entities.search import SearchResult
from schrodrive.infrastructure.common.gateway import ProviderGateway

HASH_HEX = "0123456789abcdef0123456789abcdef01234567"
MAGNET = f"magnet:?xt=urn:btih:{HASH_HEX.upper()}&dn=Dune"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def gateway(clock: FakeClock) -> ProviderGateway:
    """Gateway without throttle spacing so tests never sleep."""
    return ProviderGateway(throttle_delays={}, default_delay=0.0, clock=clock)


@pytest.fixture()
async def http_client() -> Any:
    async with httpx.AsyncClient() as client:
        yield client


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


def make_result(**overrides: Any) -> SearchResult:
    data: dict[str, Any] = {
        "title": "Dune.2021.1080p.BluRay",
        "size": 8 * 1024**3,
        "seeders": 50,
        "leechers": 3,
        "indexer_name": "tracker",
    }
    data.update(overrides)
    return SearchResult(**data)


@pytest.fixture()
def search_result() -> SearchResult:
    return make_result(magnet_field=MAGNET)


# ---------------------------------------------------------------------------
# Port mocks
# ---------------------------------------------------------------------------


def make_indexer(results: list[SearchResult] | None = None, magnet: str | None = MAGNET) -> MagicMock:
    """IndexerPort mock returning *results* and resolving to *magnet*."""
    results = results if results is not None else [make_result(magnet_field=magnet)]
    indexer = MagicMock()
    indexer.is_configured.return_value = True
    indexer.search = AsyncMock(return_value=results)
    indexer.pick_best.side_effect = lambda rs: rs[0] if rs else None
    indexer.get_magnet.side_effect = lambda r: magnet if r is not None else None
    indexer.get_magnet_or_resolve = AsyncMock(return_value=magnet)
    return indexer


def make_provider(
    name: str,
    *,
    configured: bool = True,
    torrents: list[dict[str, Any]] | None = None,
    dead_statuses: tuple[str, ...] = ("magnet_error",),
    added: dict[str, Any] | None = None,
) -> MagicMock:
    """DebridProviderPort mock."""
    provider = MagicMock()
    provider.name = name
    provider.is_configured.return_value = configured
    provider.list_torrents = AsyncMock(return_value=torrents or [])
    provider.is_dead.side_effect = lambda t: t.get("status") in dead_statuses
    provider.add_magnet = AsyncMock(return_value=added if added is not None else {"id": "t1"})
    provider.select_all_files = AsyncMock(return_value=None)
    provider.find_existing = AsyncMock(return_value=False)
    return provider


@pytest.fixture()
def magnet() -> str:
    return MAGNET


@pytest.fixture()
def result_factory() -> Any:
    return make_result


@pytest.fixture()
def indexer_factory() -> Any:
    return make_indexer


@pytest.fixture()
def provider_factory() -> Any:
    return make_provider
