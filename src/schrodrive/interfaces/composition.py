"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from schrodrive.application.use_cases import (
    AcquireMediaUseCase,
    DeadTorrentScanner,
    RequestPoller,
)
from schrodrive.domain.entities.processed_set import ProcessedRequestSet
from schrodrive.infrastructure.common.gateway import ProviderGateway
from schrodrive.infrastructure.config.schema import AppConfig
from schrodrive.infrastructure.debrid import DebridClient, RealDebridClient, TorBoxClient
from schrodrive.infrastructure.indexers import (
    IndexerBackend,
    IndexerFacade,
    JackettBackend,
    ProwlarrBackend,
    RedirectWalker,
)
from schrodrive.infrastructure.overseerr import OverseerrClient
from schrodrive.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


@dataclass
class Services:
    """Everything a request handler, background loop or CLI command needs."""

    gateway: ProviderGateway
    indexer: IndexerFacade
    providers: dict[str, DebridClient]
    overseerr: OverseerrClient
    acquire: AcquireMediaUseCase
    scanner: DeadTorrentScanner
    poller: RequestPoller


def build_gateway(config: AppConfig) -> ProviderGateway:
    gw = config.gateway
    return ProviderGateway(
        throttle_delays=gw.throttle_delays,
        default_delay=gw.default_delay_seconds,
        backoff_base=gw.backoff_base_seconds,
        backoff_max=gw.backoff_max_seconds,
        cache_ttl=gw.cache_ttl_seconds,
    )


def _build_debrid(
    config: AppConfig, http_client: httpx.AsyncClient, gateway: ProviderGateway
) -> dict[str, DebridClient]:
    debrid = config.debrid
    available: dict[str, DebridClient] = {
        "torbox": TorBoxClient(
            http_client=http_client,
            gateway=gateway,
            base_url=debrid.torbox_base_url,
            token=debrid.torbox_api_key,
            timeout=debrid.timeout_seconds,
        ),
        "realdebrid": RealDebridClient(
            http_client=http_client,
            gateway=gateway,
            base_url=debrid.rd_api_base,
            token=debrid.rd_access_token,
            timeout=debrid.timeout_seconds,
        ),
    }
    # Insertion order is the preference order used to pick a default target.
    return {name: available[name] for name in debrid.providers if name in available}


def build_services(config: AppConfig, http_client: httpx.AsyncClient) -> Services:
    """Wire adapters and use cases around one shared client and gateway."""
    gateway = build_gateway(config)
    walker = RedirectWalker(http_client, gateway)

    backends: dict[str, IndexerBackend] = {
        "jackett": JackettBackend(
            http_client=http_client,
            gateway=gateway,
            config=config.indexer.jackett,
            redirect_walker=walker,
        ),
        "prowlarr": ProwlarrBackend(
            http_client=http_client,
            gateway=gateway,
            config=config.indexer.prowlarr,
            redirect_walker=walker,
        ),
    }
    indexer = IndexerFacade(backends, preferred=config.indexer.provider)
    providers = _build_debrid(config, http_client, gateway)

    overseerr = OverseerrClient(
        http_client=http_client,
        gateway=gateway,
        base_url=config.overseerr.url,
        api_key=config.overseerr.api_key,
        take=config.overseerr.poll_take,
    )
    acquire = AcquireMediaUseCase(indexer=indexer, providers=providers)
    scanner = DeadTorrentScanner(
        indexer=indexer,
        providers=providers,
        interval_seconds=config.scanner.interval_seconds,
        min_interval_seconds=config.scanner.min_interval_seconds,
    )
    poller = RequestPoller(
        source=overseerr,
        acquire=acquire,
        processed=ProcessedRequestSet(config.overseerr.processed_capacity),
        interval_seconds=config.overseerr.poll_interval_seconds,
    )
    return Services(
        gateway=gateway,
        indexer=indexer,
        providers=providers,
        overseerr=overseerr,
        acquire=acquire,
        scanner=scanner,
        poller=poller,
    )


def build_http_client(config: AppConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(30.0),
        headers={"User-Agent": config.http_user_agent},
    )


async def _scan_once(scanner: DeadTorrentScanner) -> None:
    try:
        await scanner.scan_dead_once()
    except Exception:
        log.error("startup_dead_scan_failed", exc_info=True)


def _start_background_tasks(state: AppState, config: AppConfig) -> None:
    services = config.services
    tasks: list[asyncio.Task] = []

    if services.run_poller:
        if state.services.overseerr.is_configured():
            tasks.append(asyncio.create_task(state.services.poller.run_forever()))
            log.info("poller_task_started")
        else:
            log.warning("poller_not_started", reason="overseerr url/api_key missing")

    if services.run_dead_scanner_watch:
        tasks.append(asyncio.create_task(state.services.scanner.run_forever()))
        log.info("dead_scanner_task_started", mode="watch")
    elif services.run_dead_scanner:
        tasks.append(asyncio.create_task(_scan_once(state.services.scanner)))
        log.info("dead_scanner_task_started", mode="once")

    state.background_tasks = tasks


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: build shared resources, start background services.

    Order matters:
        1. HTTP client (shared by every adapter)
        2. Gateway, adapters and use cases
        3. Background tasks (poller, dead scanner)
    """
    state = cast(AppState, app.state)
    config = state.config

    state.http_client = build_http_client(config)
    log.info("http_client_initialized", user_agent=config.http_user_agent)

    state.services = build_services(config, state.http_client)
    log.info(
        "services_initialized",
        indexer=state.services.indexer.provider_name(),
        debrid=state.services.acquire.configured_providers(),
        overseerr=state.services.overseerr.is_configured(),
    )

    _start_background_tasks(state, config)
    log.info("app_startup_complete")

    try:
        yield
    finally:
        for task in state.background_tasks:
            task.cancel()
        for task in state.background_tasks:
            with suppress(asyncio.CancelledError):
                await task
        if state.background_tasks:
            log.info("background_tasks_stopped", count=len(state.background_tasks))

        await state.http_client.aclose()
        log.info("http_client_closed")

        log.info("app_shutdown_complete")
