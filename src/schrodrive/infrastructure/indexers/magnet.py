"""Magnet extraction and result ranking shared by both indexer backends."""

from __future__ import annotations

import re
from collections.abc import Sequence
from urllib.parse import quote

import structlog

from schrodrive.domain.entities.search import SearchResult

log = structlog.get_logger(__name__)

_HEX40_RE = re.compile(r"^[a-fA-F0-9]{40}$")
_BASE32_RE = re.compile(r"^[A-Z2-7]{32,39}$", re.IGNORECASE)
_BTIH_RE = re.compile(r"btih:([^&]+)", re.IGNORECASE)


def is_magnet(value: object) -> bool:
    return isinstance(value, str) and value.startswith("magnet:")


def magnet_hash(magnet: str) -> str | None:
    """Extract the btih hash from a magnet URI (for logging)."""
    match = _BTIH_RE.search(magnet)
    return match.group(1) if match else None


def build_magnet_from_hash(info_hash: str | None, title: str | None = None) -> str | None:
    """Build ``magnet:?xt=urn:btih:<HASH>[&dn=<title>]`` from a valid info hash.

    Accepts a 40-char hex SHA-1 or a 32-39 char base32 hash.  Returns None
    for anything else.
    """
    candidate = (info_hash or "").strip()
    if not candidate:
        return None
    if not (_HEX40_RE.match(candidate) or _BASE32_RE.match(candidate)):
        return None
    magnet = f"magnet:?xt=urn:btih:{candidate.upper()}"
    if title:
        magnet += f"&dn={quote(title, safe='')}"
    return magnet


def get_magnet(result: SearchResult | None) -> str | None:
    """Return a magnet URI for *result* without touching the network.

    Checks the explicit magnet field, the guid and the direct link in that
    order, then falls back to synthesizing one from the info hash.
    """
    if result is None:
        return None
    for candidate in (result.magnet_field, result.guid, result.direct_link):
        if is_magnet(candidate):
            return candidate
    built = build_magnet_from_hash(result.info_hash, result.title or None)
    if built:
        log.debug("magnet_built_from_info_hash", title=result.title)
    return built


def pick_best(results: Sequence[SearchResult]) -> SearchResult | None:
    """Pick the most seeded result, preferring those with a usable magnet.

    Ties on seeders are broken by larger size; remaining ties keep input
    order.
    """
    if not results:
        return None
    with_magnet = [r for r in results if get_magnet(r)]
    pool = with_magnet or list(results)
    chosen = sorted(pool, key=lambda r: (r.seeders, r.size), reverse=True)[0]
    log.debug(
        "indexer_pick_best",
        input_count=len(results),
        pool_count=len(pool),
        title=chosen.title,
        seeders=chosen.seeders,
        size=chosen.size,
    )
    return chosen
