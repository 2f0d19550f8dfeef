"""Dead-torrent reconciliation: re-acquire stalled/failed torrents elsewhere."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from schrodrive.domain.entities.errors import SchroDriveError
from schrodrive.domain.entities.torrent import torrent_title
from schrodrive.domain.ports.debrid import DebridProviderPort
from schrodrive.domain.ports.indexer import IndexerPort

log = structlog.get_logger(__name__)

# Preferred re-add target for a torrent that died on the key provider.
OPPOSITE_PROVIDER: dict[str, str] = {
    "realdebrid": "torbox",
    "torbox": "realdebrid",
}


@dataclass
class DeadScanReport:
    scanned: dict[str, dict[str, int]] = field(default_factory=dict)
    readded: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scanned": {name: dict(counts) for name, counts in self.scanned.items()},
            "readded": [dict(entry) for entry in self.readded],
        }


class DeadTorrentScanner:
    """Finds dead torrents on each provider and re-adds them to another one.

    A torrent is never re-added to the provider it died on.  Dead torrents
    are handled one at a time so per-provider throttling is respected, and a
    failure on one torrent never stops the scan.
    """

    def __init__(
        self,
        *,
        indexer: IndexerPort,
        providers: Mapping[str, DebridProviderPort],
        interval_seconds: float = 600.0,
        min_interval_seconds: float = 60.0,
    ) -> None:
        self._indexer = indexer
        self._providers = dict(providers)
        self._interval = max(min_interval_seconds, interval_seconds)

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def _configured(self) -> list[str]:
        return [name for name, p in self._providers.items() if p.is_configured()]

    def targets_for(self, origin: str) -> list[str]:
        """Re-add order for a torrent that died on *origin*."""
        configured = self._configured()
        ordered: list[str] = []
        opposite = OPPOSITE_PROVIDER.get(origin)
        if opposite in configured:
            ordered.append(opposite)
        ordered.extend(n for n in configured if n not in ordered and n != origin)
        return ordered

    async def scan_dead_once(self) -> DeadScanReport:
        report = DeadScanReport()

        for name in self._configured():
            provider = self._providers[name]
            torrents = await provider.list_torrents()
            dead = [t for t in torrents if provider.is_dead(t)]
            report.scanned[name] = {"total": len(torrents), "dead": len(dead)}
            log.info("dead_scan_provider", provider=name, total=len(torrents), dead=len(dead))

            for record in dead:
                try:
                    readded_to = await self._heal(record, origin=name)
                except Exception:
                    log.error(
                        "dead_scan_torrent_error",
                        provider=name,
                        title=torrent_title(record),
                        exc_info=True,
                    )
                    continue
                if readded_to:
                    report.readded.append(
                        {"provider": readded_to, "title": torrent_title(record)}
                    )

        log.info(
            "dead_scan_done",
            scanned=report.scanned,
            readded=len(report.readded),
        )
        return report

    async def _heal(self, record: dict[str, Any], *, origin: str) -> str | None:
        """Search, resolve and re-add one dead torrent. Returns the target used."""
        title = torrent_title(record)
        if not title:
            log.info("dead_scan_skip_untitled", provider=origin)
            return None

        results = await self._indexer.search(title)
        best = self._indexer.pick_best(results)
        magnet = self._indexer.get_magnet(best)
        if not magnet and best is not None:
            try:
                magnet = await self._indexer.get_magnet_or_resolve(best)
            except Exception:
                log.warning("dead_scan_resolve_failed", title=title, exc_info=True)
                magnet = None
        if not magnet:
            log.info("dead_scan_no_magnet", provider=origin, title=title, results=len(results))
            return None

        for target in self.targets_for(origin):
            provider = self._providers[target]
            try:
                added = await provider.add_magnet(magnet, best.title if best else title)
            except SchroDriveError as exc:
                log.warning(
                    "dead_scan_readd_failed",
                    origin=origin,
                    target=target,
                    title=title,
                    error=str(exc),
                )
                continue
            torrent_id = added.get("id") if isinstance(added, dict) else None
            if torrent_id:
                await provider.select_all_files(str(torrent_id))
            log.info("dead_scan_readded", origin=origin, target=target, title=title)
            return target

        log.warning("dead_scan_no_target", origin=origin, title=title)
        return None

    async def run_forever(self) -> None:
        """Scan immediately, then every ``interval_seconds``."""
        log.info("dead_scanner_started", interval_seconds=self._interval)
        try:
            while True:
                try:
                    await self.scan_dead_once()
                except Exception:
                    log.error("dead_scanner_tick_error", exc_info=True)
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            log.info("dead_scanner_cancelled")
            raise
