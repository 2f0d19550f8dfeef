"""Poll Overseerr for approved requests and acquire each one once."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from schrodrive.application.use_cases.acquire import AcquireMediaUseCase
from schrodrive.domain.entities.media_request import (
    build_search_from_request,
    request_identifier,
)
from schrodrive.domain.entities.processed_set import ProcessedRequestSet
from schrodrive.domain.ports.media_requests import MediaRequestSourcePort

log = structlog.get_logger(__name__)


@dataclass
class PollReport:
    fetched: int = 0
    acquired: int = 0
    skipped: int = 0
    failed: int = 0


class RequestPoller:
    """Feeds approved requests into :class:`AcquireMediaUseCase`.

    A request is marked processed when it was added or when no magnet was
    found; failures stay unmarked so the next poll retries them.
    """

    def __init__(
        self,
        *,
        source: MediaRequestSourcePort,
        acquire: AcquireMediaUseCase,
        processed: ProcessedRequestSet | None = None,
        interval_seconds: float = 30.0,
        min_interval_seconds: float = 5.0,
    ) -> None:
        self._source = source
        self._acquire = acquire
        self._processed = processed if processed is not None else ProcessedRequestSet()
        self._interval = max(min_interval_seconds, interval_seconds)

    @property
    def processed(self) -> ProcessedRequestSet:
        return self._processed

    @property
    def interval_seconds(self) -> float:
        return self._interval

    async def poll_once(self) -> PollReport:
        report = PollReport()
        try:
            requests = await self._source.fetch_approved_requests()
        except Exception:
            log.error("poller_fetch_error", exc_info=True)
            return report
        report.fetched = len(requests)

        for request in requests:
            request_id = request_identifier(request)
            if request_id in self._processed:
                continue

            search = build_search_from_request(request)
            if search is None:
                continue

            try:
                outcome = await self._acquire.acquire(search.query, search.categories)
            except Exception as exc:
                report.failed += 1
                log.error(
                    "poller_processing_error",
                    request_id=request_id,
                    query=search.query,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                continue

            self._processed.add(request_id)
            if outcome.added:
                report.acquired += 1
            else:
                report.skipped += 1
            log.info(
                "poller_request_processed",
                request_id=request_id,
                query=search.query,
                added=outcome.added,
                skipped_reason=outcome.skipped_reason,
            )

        return report

    async def run_forever(self) -> None:
        """Poll immediately, then every ``interval_seconds``."""
        log.info("poller_started", interval_seconds=self._interval)
        try:
            while True:
                try:
                    await self.poll_once()
                except Exception:
                    log.error("poller_tick_error", exc_info=True)
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            log.info("poller_cancelled")
            raise
