"""Follow an indexer download URL's redirect chain to recover a magnet URI.

Indexers often hand out a tracker or proxy URL instead of a literal magnet.
The walker issues HEAD (or GET, if HEAD fails at the transport level) with
redirects disabled and inspects each hop:

- 3xx with a ``magnet:`` Location       -> that magnet
- 3xx with a Location ending ``.torrent`` -> None
- 3xx with any other Location           -> next hop
- non-redirect that is a .torrent       -> None
- anything else / hop budget exhausted  -> None
"""

from __future__ import annotations

from urllib.parse import urljoin, urlparse, urlsplit, urlunsplit

import httpx
import structlog

from schrodrive.infrastructure.common.gateway import ProviderGateway
from schrodrive.infrastructure.indexers.magnet import is_magnet, magnet_hash

log = structlog.get_logger(__name__)

DEFAULT_MAX_HOPS = 5
HARD_MAX_HOPS = 10


def clamp_hops(max_hops: int | None) -> int:
    return max(1, min(int(max_hops or DEFAULT_MAX_HOPS), HARD_MAX_HOPS))


def is_http_url(url: str | None) -> bool:
    return bool(url) and urlparse(url).scheme in ("http", "https")


def _is_torrent_url(url: str) -> bool:
    return urlparse(url).path.lower().endswith(".torrent")


def loggable_url(url: str) -> str:
    """Drop query and fragment; indexer download links carry API keys there."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class RedirectWalker:
    """Bounded redirect follower. Never raises; failures return None."""

    def __init__(self, http_client: httpx.AsyncClient, gateway: ProviderGateway) -> None:
        self._client = http_client
        self._gateway = gateway

    async def resolve(
        self,
        url: str,
        *,
        provider: str,
        max_hops: int | None = DEFAULT_MAX_HOPS,
        timeout: float = 30.0,
    ) -> str | None:
        """Walk from *url* until a magnet is found or the chain ends.

        Each hop is throttled under *provider* (the owning indexer).
        """
        budget = clamp_hops(max_hops)
        current = url

        for hop in range(1, budget + 1):
            if not is_http_url(current):
                return None

            await self._gateway.throttle(provider)
            response = await self._probe(current, timeout=timeout, provider=provider)
            if response is None:
                return None

            location = response.headers.get("location", "")
            content_type = response.headers.get("content-type", "").lower()

            if 300 <= response.status_code < 400 and location:
                if is_magnet(location):
                    log.info(
                        "redirect_resolved_magnet",
                        provider=provider,
                        hops=hop,
                        info_hash=magnet_hash(location),
                    )
                    return location
                current = urljoin(current, location)
                if _is_torrent_url(current):
                    log.info(
                        "redirect_resolved_torrent",
                        provider=provider,
                        hops=hop,
                        url=loggable_url(current),
                    )
                    return None
                continue

            if "bittorrent" in content_type or _is_torrent_url(current):
                log.info(
                    "redirect_torrent_content",
                    provider=provider,
                    hops=hop,
                    url=loggable_url(current),
                )
                return None

            log.debug(
                "redirect_chain_ended",
                provider=provider,
                hops=hop,
                status_code=response.status_code,
            )
            return None

        log.info(
            "redirect_hops_exhausted",
            provider=provider,
            max_hops=budget,
            url=loggable_url(current),
        )
        return None

    async def _probe(
        self, url: str, *, timeout: float, provider: str
    ) -> httpx.Response | None:
        try:
            return await self._client.head(url, follow_redirects=False, timeout=timeout)
        except httpx.HTTPError as head_exc:
            log.debug(
                "redirect_head_failed",
                provider=provider,
                url=loggable_url(url),
                error=str(head_exc),
            )

        try:
            return await self._client.get(url, follow_redirects=False, timeout=timeout)
        except httpx.HTTPError as exc:
            log.warning(
                "redirect_resolve_failed",
                provider=provider,
                url=loggable_url(url),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None
