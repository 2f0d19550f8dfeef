"""TorBox API client (``/v1/api/torrents``)."""

from __future__ import annotations

from typing import Any

from schrodrive.domain.entities.torrent import progress_complete
from schrodrive.infrastructure.debrid.base import DebridClient

_DEAD_MARKERS = ("failed", "stalled", "inactive")


class TorBoxError(ValueError):
    """TorBox answered 200 with ``success: false``."""


class TorBoxClient(DebridClient):
    """TorBox wraps every response as ``{"success": ..., "data": ...}``."""

    name = "torbox"

    def _list_request(self) -> tuple[str, dict[str, Any]]:
        return "/v1/api/torrents/mylist", {"limit": 100}

    def _add_request(self, magnet: str, name: str | None) -> tuple[str, dict[str, str]]:
        data = {"magnet": magnet}
        if name:
            data["name"] = name
        return "/v1/api/torrents/createtorrent", data

    def _unwrap_list(self, payload: Any) -> list[dict[str, Any]]:
        data = payload.get("data") if isinstance(payload, dict) else payload
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            return []
        return [t for t in data if isinstance(t, dict)]

    def _unwrap_added(self, payload: Any) -> dict[str, Any]:
        if not isinstance(payload, dict):
            return {}
        if payload.get("success") is False:
            raise TorBoxError(
                str(payload.get("detail") or payload.get("error") or "createtorrent failed")
            )
        data = payload.get("data")
        added = dict(data) if isinstance(data, dict) else {}
        torrent_id = added.get("torrent_id", added.get("id"))
        if torrent_id is not None:
            added["id"] = str(torrent_id)
        if payload.get("detail"):
            added.setdefault("detail", payload["detail"])
        return added

    def is_dead(self, record: dict[str, Any]) -> bool:
        if progress_complete(record):
            return False
        status = str(
            record.get("status") or record.get("download_state") or record.get("state") or ""
        ).lower()
        return any(marker in status for marker in _DEAD_MARKERS)
