from .acquire import AcquireMediaUseCase, AcquireOutcome
from .dead_scan import DeadScanReport, DeadTorrentScanner
from .request_poller import PollReport, RequestPoller

__all__ = [
    "AcquireMediaUseCase",
    "AcquireOutcome",
    "DeadScanReport",
    "DeadTorrentScanner",
    "PollReport",
    "RequestPoller",
]
