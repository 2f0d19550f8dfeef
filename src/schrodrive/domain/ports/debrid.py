"""Port for hosted debrid download providers."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class DebridProviderPort(Protocol):
    """A debrid service that accepts magnets and reports torrent state.

    Records are provider-native dicts; only the provider knows how to
    read them (see :meth:`is_dead`).
    """

    @property
    def name(self) -> str:
        """Provider identifier (e.g. 'realdebrid', 'torbox')."""
        ...

    def is_configured(self) -> bool: ...

    async def list_torrents(self) -> list[dict[str, Any]]:
        """List in-flight torrents. Never raises; returns [] on failure."""
        ...

    async def add_magnet(self, magnet: str, name: str | None = None) -> dict[str, Any]:
        """Submit a magnet. Raises on rate limit or provider failure."""
        ...

    async def select_all_files(self, torrent_id: str) -> None: ...

    async def find_existing(self, title: str) -> bool:
        """Best-effort duplicate check by title. Never raises."""
        ...

    def is_dead(self, record: dict[str, Any]) -> bool: ...
