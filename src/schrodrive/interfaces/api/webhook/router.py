"""Overseerr webhook receiver."""

from __future__ import annotations

import hmac
from typing import cast

import structlog
from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse

from schrodrive.application.use_cases.acquire import AcquireMediaUseCase
from schrodrive.domain.entities.media_request import MediaSearch, build_query_from_payload
from schrodrive.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["webhook"])


async def _acquire_in_background(acquire: AcquireMediaUseCase, search: MediaSearch) -> None:
    try:
        outcome = await acquire.acquire(search.query, search.categories)
    except Exception as e:
        log.error(
            "webhook_acquire_failed",
            query=search.query,
            error=str(e),
            error_type=type(e).__name__,
        )
        return
    log.info(
        "webhook_acquire_done",
        query=search.query,
        provider=outcome.provider,
        added=outcome.added,
        skipped_reason=outcome.skipped_reason,
    )


@router.post("/overseerr")
async def overseerr_webhook(request: Request, background: BackgroundTasks) -> JSONResponse:
    """Accept an Overseerr notification and acquire it asynchronously.

    Responses:
        503: no indexer or no debrid provider configured
        401: ``Authorization`` header does not match ``overseerr.webhook_auth``
        400: body is not JSON or no query can be derived from it
        202: accepted; search and add run after the response is sent
    """
    state = cast(AppState, request.app.state)
    services = state.services

    if not services.indexer.is_configured() or not services.acquire.configured_providers():
        log.warning("webhook_rejected", reason="not_configured")
        return JSONResponse(status_code=503, content={"error": "not_configured"})

    expected = state.config.overseerr.webhook_auth
    if expected:
        provided = request.headers.get("authorization", "")
        if not hmac.compare_digest(provided.encode(), expected.encode()):
            log.warning("webhook_rejected", reason="unauthorized")
            return JSONResponse(status_code=401, content={"error": "unauthorized"})

    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "invalid_json"})

    search = build_query_from_payload(payload)
    if search is None:
        notification = payload.get("notification_type") if isinstance(payload, dict) else None
        log.info("webhook_no_query", notification_type=notification)
        return JSONResponse(status_code=400, content={"error": "no_query"})

    background.add_task(_acquire_in_background, services.acquire, search)
    log.info("webhook_accepted", query=search.query, categories=list(search.categories))
    return JSONResponse(
        status_code=202,
        content={"status": "accepted", "query": search.query},
    )
