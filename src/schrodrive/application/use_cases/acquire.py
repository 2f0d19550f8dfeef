"""Acquire media: search an indexer, resolve a magnet, hand it to a debrid provider."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

import structlog

from schrodrive.domain.entities.errors import (
    DebridNotConfiguredError,
    UnknownDebridProviderError,
)
from schrodrive.domain.entities.search import SearchOptions
from schrodrive.domain.ports.debrid import DebridProviderPort
from schrodrive.domain.ports.indexer import IndexerPort

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AcquireOutcome:
    query: str | None
    provider: str | None
    title: str | None = None
    magnet: str | None = None
    added: bool = False
    skipped_reason: str | None = None  # "no_magnet" | "duplicate"
    response: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class AcquireMediaUseCase:
    """Shared by the webhook, the poller, the CLI and ``/api/add``.

    Flow:
        1. Resolve the target provider (explicit, else first configured)
        2. Search and rank via the indexer
        3. Resolve a magnet (direct, info hash or redirect walk)
        4. Skip if the provider already has a torrent with that title
        5. Submit; select all files when the provider returns an id

    Debrid failures propagate to the caller.
    """

    def __init__(
        self,
        *,
        indexer: IndexerPort,
        providers: Mapping[str, DebridProviderPort],
        check_duplicates: bool = True,
    ) -> None:
        self._indexer = indexer
        self._providers = dict(providers)
        self._check_duplicates = check_duplicates

    def configured_providers(self) -> list[str]:
        return [name for name, p in self._providers.items() if p.is_configured()]

    def select_provider(self, name: str | None = None) -> tuple[str, DebridProviderPort]:
        if name:
            key = name.strip().lower()
            if key not in self._providers:
                raise UnknownDebridProviderError(f"Unknown provider: {name}")
            provider = self._providers[key]
            if not provider.is_configured():
                raise DebridNotConfiguredError(f"{key} is not configured")
            return key, provider

        configured = self.configured_providers()
        if not configured:
            raise DebridNotConfiguredError("No debrid provider configured")
        return configured[0], self._providers[configured[0]]

    async def acquire(
        self,
        query: str,
        categories: Sequence[str] = (),
        *,
        provider: str | None = None,
    ) -> AcquireOutcome:
        target_name, target = self.select_provider(provider)

        results = await self._indexer.search(
            query, SearchOptions(categories=tuple(categories))
        )
        best = self._indexer.pick_best(results)
        magnet = await self._indexer.get_magnet_or_resolve(best)
        title = best.title if best else None

        if not magnet:
            log.warning("acquire_no_magnet", query=query, results=len(results), title=title)
            return AcquireOutcome(
                query=query, provider=target_name, title=title, skipped_reason="no_magnet"
            )

        if self._check_duplicates and title and await target.find_existing(title):
            log.info("acquire_duplicate_skipped", query=query, provider=target_name, title=title)
            return AcquireOutcome(
                query=query,
                provider=target_name,
                title=title,
                magnet=magnet,
                skipped_reason="duplicate",
            )

        response = await self._submit(target_name, target, magnet, title)
        log.info("acquire_added", query=query, provider=target_name, title=title)
        return AcquireOutcome(
            query=query,
            provider=target_name,
            title=title,
            magnet=magnet,
            added=True,
            response=response,
        )

    async def add_magnet_direct(
        self,
        magnet: str,
        name: str | None = None,
        *,
        provider: str | None = None,
    ) -> AcquireOutcome:
        target_name, target = self.select_provider(provider)
        response = await self._submit(target_name, target, magnet, name)
        return AcquireOutcome(
            query=None,
            provider=target_name,
            title=name,
            magnet=magnet,
            added=True,
            response=response,
        )

    async def _submit(
        self,
        name: str,
        provider: DebridProviderPort,
        magnet: str,
        title: str | None,
    ) -> dict[str, Any]:
        response = await provider.add_magnet(magnet, title)
        torrent_id = response.get("id") if isinstance(response, dict) else None
        if torrent_id:
            await provider.select_all_files(str(torrent_id))
        return response if isinstance(response, dict) else {}
