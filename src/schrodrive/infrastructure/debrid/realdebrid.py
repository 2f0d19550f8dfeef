"""Real-Debrid REST client (``/rest/1.0``)."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog

from schrodrive.domain.entities.torrent import progress_complete
from schrodrive.infrastructure.debrid.base import DebridClient

log = structlog.get_logger(__name__)


class RealDebridClient(DebridClient):
    name = "realdebrid"

    def _list_request(self) -> tuple[str, dict[str, Any]]:
        return "/torrents", {}

    def _add_request(self, magnet: str, name: str | None) -> tuple[str, dict[str, str]]:
        return "/torrents/addMagnet", {"magnet": magnet}

    def _unwrap_list(self, payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, list):
            return []
        return [t for t in payload if isinstance(t, dict)]

    def _unwrap_added(self, payload: Any) -> dict[str, Any]:
        if not isinstance(payload, dict):
            return {}
        added = dict(payload)
        if added.get("id") is not None:
            added["id"] = str(added["id"])
        return added

    def is_dead(self, record: dict[str, Any]) -> bool:
        """Dead when status mentions error/dead (e.g. ``magnet_error``), unless complete."""
        if progress_complete(record):
            return False
        status = str(record.get("status") or "").lower()
        return "error" in status or "dead" in status

    async def select_all_files(self, torrent_id: str) -> None:
        """Real-Debrid does not start a torrent until its files are selected."""
        if not torrent_id or not self.is_configured():
            return
        if self._gateway.is_rate_limited(self.name):
            log.warning(
                "debrid_rate_limited_skip",
                provider=self.name,
                operation="select_all_files",
                torrent_id=torrent_id,
            )
            return
        try:
            await self._request(
                "POST",
                f"/torrents/selectFiles/{quote(str(torrent_id), safe='')}",
                data={"files": "all"},
            )
        except (httpx.HTTPError, ValueError) as exc:
            self._classify(exc, operation="select_all_files", torrent_id=torrent_id)
            return
        self._gateway.record_success(self.name)
