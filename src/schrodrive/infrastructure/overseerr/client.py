"""Overseerr API client (approved media requests)."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from schrodrive.domain.entities.errors import ConfigurationError
from schrodrive.infrastructure.common.gateway import ProviderGateway

log = structlog.get_logger(__name__)

PROVIDER = "overseerr"


class OverseerrClient:
    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        gateway: ProviderGateway,
        base_url: str,
        api_key: str,
        take: int = 50,
        timeout: float = 30.0,
    ) -> None:
        self._client = http_client
        self._gateway = gateway
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._take = take
        self._timeout = timeout

    def is_configured(self) -> bool:
        return bool(self._base_url and self._api_key)

    async def fetch_approved_requests(self) -> list[dict[str, Any]]:
        """Most recently modified approved requests.

        Raises ConfigurationError when url/api key are missing and lets
        ``httpx.HTTPError`` propagate; the poller logs and retries next tick.
        Returns [] while Overseerr is rate limited.
        """
        if not self.is_configured():
            raise ConfigurationError("overseerr url and api_key are required")
        if self._gateway.is_rate_limited(PROVIDER):
            log.warning(
                "overseerr_rate_limited_skip",
                wait_seconds=self._gateway.wait_seconds(PROVIDER),
            )
            return []

        await self._gateway.throttle(PROVIDER)
        try:
            response = await self._client.get(
                f"{self._base_url}/request",
                params={"filter": "approved", "sort": "modified", "take": self._take, "skip": 0},
                headers={"X-Api-Key": self._api_key},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            if self._gateway.is_rate_limit_error(exc):
                self._gateway.record_rate_limit(PROVIDER, str(exc))
                return []
            raise
        self._gateway.record_success(PROVIDER)

        try:
            payload = response.json()
        except ValueError as exc:
            log.warning("overseerr_malformed_payload", error=str(exc))
            return []
        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            return []
        return [r for r in results if isinstance(r, dict)]
