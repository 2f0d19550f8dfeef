"""Shared Gateway discipline for debrid provider clients.

Reads (``list_torrents``) degrade to cached data or ``[]``; writes
(``add_magnet``) always raise so the caller decides whether to retry.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from schrodrive.domain.entities.errors import (
    DebridNotConfiguredError,
    DebridRateLimitedError,
    DebridRequestError,
)
from schrodrive.domain.entities.torrent import torrent_title
from schrodrive.infrastructure.common.gateway import ProviderGateway

log = structlog.get_logger(__name__)


class DebridClient(ABC):
    """Base for Bearer-token debrid APIs (Real-Debrid, TorBox)."""

    name: str = ""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        gateway: ProviderGateway,
        base_url: str,
        token: str,
        timeout: float = 20.0,
    ) -> None:
        self._client = http_client
        self._gateway = gateway
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout

    # ------------------------------------------------------------------
    # Provider specifics
    # ------------------------------------------------------------------

    @abstractmethod
    def _list_request(self) -> tuple[str, dict[str, Any]]:
        """Return (path, query params) for the torrent listing."""

    @abstractmethod
    def _add_request(self, magnet: str, name: str | None) -> tuple[str, dict[str, str]]:
        """Return (path, form data) for submitting a magnet."""

    @abstractmethod
    def _unwrap_list(self, payload: Any) -> list[dict[str, Any]]: ...

    @abstractmethod
    def _unwrap_added(self, payload: Any) -> dict[str, Any]: ...

    @abstractmethod
    def is_dead(self, record: dict[str, Any]) -> bool: ...

    # ------------------------------------------------------------------
    # Port implementation
    # ------------------------------------------------------------------

    def is_configured(self) -> bool:
        return bool(self._token)

    @property
    def cache_key(self) -> str:
        return f"{self.name}_torrents"

    async def list_torrents(self) -> list[dict[str, Any]]:
        """List torrents; returns cached data or [] instead of raising."""
        if not self.is_configured():
            return []

        cached = self._gateway.get_cache(self.cache_key)
        if self._gateway.is_rate_limited(self.name):
            log.warning(
                "debrid_rate_limited_skip",
                provider=self.name,
                operation="list_torrents",
                wait_seconds=self._gateway.wait_seconds(self.name),
                served_from_cache=cached is not None,
            )
            return list(cached) if cached is not None else []

        path, params = self._list_request()
        try:
            payload = await self._request("GET", path, params=params)
        except (httpx.HTTPError, ValueError) as exc:
            self._classify(exc, operation="list_torrents")
            return list(cached) if cached is not None else []

        torrents = self._unwrap_list(payload)
        self._gateway.record_success(self.name)
        self._gateway.set_cache(self.cache_key, torrents)
        return list(torrents)

    async def add_magnet(self, magnet: str, name: str | None = None) -> dict[str, Any]:
        """Submit *magnet*. Never swallows errors.

        Raises:
            DebridNotConfiguredError: no token configured.
            DebridRateLimitedError: provider is cooling down (or just throttled us).
            DebridRequestError: any other failure.
        """
        if not self.is_configured():
            raise DebridNotConfiguredError(f"{self.name} is not configured")
        if self._gateway.is_rate_limited(self.name):
            raise DebridRateLimitedError(self.name, self._gateway.wait_seconds(self.name))

        path, data = self._add_request(magnet, name)
        log.info("debrid_add_magnet", provider=self.name, name=name, teaser=magnet[:80])
        started = time.perf_counter()
        try:
            payload = await self._request("POST", path, data=data)
            added = self._unwrap_added(payload)
        except (httpx.HTTPError, ValueError) as exc:
            if self._classify(exc, operation="add_magnet", name=name):
                raise DebridRateLimitedError(
                    self.name, self._gateway.wait_seconds(self.name)
                ) from exc
            raise DebridRequestError(self.name, str(exc) or type(exc).__name__) from exc
        self._gateway.record_success(self.name)

        log.info(
            "debrid_add_magnet_done",
            provider=self.name,
            torrent_id=added.get("id"),
            duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
        )
        return added

    async def select_all_files(self, torrent_id: str) -> None:
        """Providers that start downloads automatically need nothing here."""
        return None

    async def find_existing(self, title: str) -> bool:
        """Case-insensitive containment match against listed torrent names."""
        needle = (title or "").strip().lower()
        if not needle:
            return False
        for record in await self.list_torrents():
            name = torrent_title(record).lower()
            if name and (needle in name or name in needle):
                log.info(
                    "debrid_existing_torrent_found",
                    provider=self.name,
                    title=title,
                    existing=torrent_title(record),
                )
                return True
        return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
    ) -> Any:
        """Throttled request returning decoded JSON (None if empty).

        Callers record success once the payload has been accepted.
        """
        await self._gateway.throttle(self.name)
        response = await self._client.request(
            method,
            f"{self._base_url}{path}",
            params=params,
            data=data,
            headers=self._headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    def _classify(self, exc: Exception, *, operation: str, **context: Any) -> bool:
        """Log *exc*; record a rate limit if it is one. Returns True if so."""
        message = str(exc) or type(exc).__name__
        if self._gateway.is_rate_limit_error(exc):
            self._gateway.record_rate_limit(self.name, message)
            return True
        response = getattr(exc, "response", None)
        log.error(
            "debrid_request_failed",
            provider=self.name,
            operation=operation,
            error=message,
            error_type=type(exc).__name__,
            status_code=getattr(response, "status_code", None),
            **context,
        )
        return False
