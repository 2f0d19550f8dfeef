"""Port for a source of approved media requests (Overseerr)."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MediaRequestSourcePort(Protocol):
    def is_configured(self) -> bool: ...

    async def fetch_approved_requests(self) -> list[dict[str, Any]]:
        """Latest approved requests. May raise; callers retry on the next poll."""
        ...
