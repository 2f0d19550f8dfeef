"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from schrodrive.infrastructure.config import AppConfig

if TYPE_CHECKING:
    import asyncio

    from schrodrive.interfaces.composition import Services


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    config: AppConfig

    http_client: httpx.AsyncClient
    services: Services

    # Poller / dead scanner loops started at startup
    background_tasks: list[asyncio.Task]
