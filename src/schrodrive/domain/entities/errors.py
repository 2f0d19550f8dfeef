"""Domain error hierarchy shared by indexers, debrid providers and use cases."""

from __future__ import annotations


class SchroDriveError(Exception):
    """Base error for the acquisition pipeline."""


class ConfigurationError(SchroDriveError):
    """Missing credentials or URLs. Fatal to the operation, never retried."""


class IndexerNotConfiguredError(ConfigurationError):
    pass


class DebridNotConfiguredError(ConfigurationError):
    pass


class IndexerRequestError(SchroDriveError):
    """Indexer call failed (timeout, connection reset, HTTP error) with no cache."""


class DebridRequestError(SchroDriveError):
    """Debrid provider rejected or failed an add-magnet call."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class DebridRateLimitedError(DebridRequestError):
    """Provider is cooling down; the caller decides when to retry."""

    def __init__(self, provider: str, retry_in: int) -> None:
        super().__init__(provider, f"rate limited, retry in {retry_in}s")
        self.retry_in = retry_in


class UnknownDebridProviderError(ConfigurationError):
    """A provider name that this process does not know about."""
