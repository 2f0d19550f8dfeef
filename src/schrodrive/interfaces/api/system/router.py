"""Operational endpoints: status, manual search/add, on-demand dead scan."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, cast

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from schrodrive.domain.entities.errors import (
    DebridNotConfiguredError,
    DebridRateLimitedError,
    DebridRequestError,
    IndexerNotConfiguredError,
    IndexerRequestError,
    UnknownDebridProviderError,
)
from schrodrive.domain.entities.search import SearchOptions
from schrodrive.infrastructure.config.schema import split_csv
from schrodrive.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["system"])


class AddMagnetBody(BaseModel):
    magnet: str = Field(min_length=1)
    name: str | None = None
    provider: str | None = None


@router.get("/status")
async def status(request: Request) -> dict[str, Any]:
    state = cast(AppState, request.app.state)
    services = state.services
    return {
        "indexer": services.indexer.provider_name(),
        "debrid": services.acquire.configured_providers(),
        "overseerr": services.overseerr.is_configured(),
        "gateway": services.gateway.status(),
        "services": state.config.services.model_dump(),
    }


@router.get("/search")
async def search(
    request: Request,
    q: str = Query(min_length=1, description="Search query."),
    categories: str | None = Query(default=None, description="Comma-separated ids."),
) -> JSONResponse:
    state = cast(AppState, request.app.state)
    indexer = state.services.indexer
    if not indexer.is_configured():
        return JSONResponse(status_code=503, content={"error": "indexer_not_configured"})

    options = SearchOptions(categories=tuple(split_csv(categories)))
    try:
        results = await indexer.search(q, options)
    except IndexerNotConfiguredError:
        return JSONResponse(status_code=503, content={"error": "indexer_not_configured"})
    except IndexerRequestError as e:
        log.error("api_search_failed", query=q, error=str(e))
        raise HTTPException(status_code=502, detail=str(e)) from e

    best = indexer.pick_best(results)
    return JSONResponse(
        content={
            "provider": indexer.provider_name(),
            "count": len(results),
            "best": asdict(best) if best else None,
            "results": [asdict(r) for r in results],
        }
    )


@router.post("/add")
async def add(body: AddMagnetBody, request: Request) -> dict[str, Any]:
    state = cast(AppState, request.app.state)
    try:
        outcome = await state.services.acquire.add_magnet_direct(
            body.magnet, body.name, provider=body.provider
        )
    except UnknownDebridProviderError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except DebridNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except DebridRateLimitedError as e:
        raise HTTPException(
            status_code=429,
            detail=str(e),
            headers={"Retry-After": str(e.retry_in)},
        ) from e
    except DebridRequestError as e:
        log.error("api_add_failed", provider=e.provider, error=str(e))
        raise HTTPException(status_code=502, detail=str(e)) from e
    return outcome.to_dict()


@router.post("/scan-dead")
async def scan_dead(request: Request) -> dict[str, Any]:
    state = cast(AppState, request.app.state)
    report = await state.services.scanner.scan_dead_once()
    return report.to_dict()
