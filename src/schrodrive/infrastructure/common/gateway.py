"""Per-provider request pacing, rate-limit backoff and short-lived result cache.

Every outbound call to an indexer, debrid provider or Overseerr goes
through one shared :class:`ProviderGateway`:

- **Throttle**: enforce a minimum spacing between requests to the same
  provider (``await gateway.throttle("torbox")``).
- **Backoff**: after a rate-limit error the provider is treated as
  unavailable for ``min(base * 2**(n-1), cap)`` seconds, where *n* is the
  number of consecutive rate-limit errors.  A success resets *n*.
- **Cache**: fixed-TTL key/value store used to serve the last good payload
  while a provider cools down or fails.

State is in-memory only and lives as long as the gateway instance.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

log = structlog.get_logger(__name__)

DEFAULT_THROTTLE_DELAYS: dict[str, float] = {
    "torbox": 5.0,  # undocumented but strict limits
    "realdebrid": 0.5,  # 250 req/min
    "jackett": 0.25,
    "prowlarr": 0.25,
    "overseerr": 0.5,
}

_RATE_LIMIT_PHRASES = ("rate limit", "too many requests", "throttl")
_RATE_LIMIT_MARKERS = (*_RATE_LIMIT_PHRASES, "429")


@dataclass
class RateLimitState:
    is_limited: bool = False
    limited_until: float = 0.0
    consecutive_errors: int = 0
    last_error: str | None = None
    last_request_at: float | None = None


@dataclass
class _CacheEntry:
    payload: Any
    cached_at: float
    ttl: float


def is_rate_limit_error(error: object) -> bool:
    """Return ``True`` if *error* looks like a provider throttling response.

    Errors carrying a response (``httpx.HTTPStatusError``) are decided by a
    429 status or a throttling phrase in the reason/body; the request URL
    is never inspected.  Anything else is matched on its text,
    case-insensitively.
    """
    response = getattr(error, "response", None)
    status_code = getattr(response, "status_code", None)
    if status_code is not None:
        if status_code == 429:
            return True
        text = _response_text(response).lower()
        return any(marker in text for marker in _RATE_LIMIT_PHRASES)
    if getattr(error, "status_code", None) == 429:
        return True
    message = str(error or "").lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


def _response_text(response: Any) -> str:
    try:
        body = response.text
    except httpx.ResponseNotRead:
        body = ""
    return f"{getattr(response, 'reason_phrase', '') or ''} {body or ''}"


class ProviderGateway:
    """Throttle, backoff and cache state for all external providers.

    Built once by the composition root and passed to every component that
    talks to a provider.  Safe for single-threaded asyncio; same-provider
    throttling is serialized by a per-provider lock so two tasks cannot
    both pass the elapsed-time check.

    Args:
        throttle_delays: Minimum seconds between requests per provider.
        default_delay: Spacing for providers missing from *throttle_delays*.
        backoff_base: First backoff window in seconds.
        backoff_max: Upper bound for the backoff window in seconds.
        cache_ttl: Default cache entry lifetime in seconds.
        clock: Monotonic time source (seconds), injectable for tests.
    """

    def __init__(
        self,
        *,
        throttle_delays: Mapping[str, float] | None = None,
        default_delay: float = 1.0,
        backoff_base: float = 60.0,
        backoff_max: float = 900.0,
        cache_ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._delays: dict[str, float] = dict(
            DEFAULT_THROTTLE_DELAYS if throttle_delays is None else throttle_delays
        )
        self._default_delay = default_delay
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._cache_ttl = cache_ttl
        self._clock = clock
        self._states: dict[str, RateLimitState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._cache: dict[str, _CacheEntry] = {}

    # ------------------------------------------------------------------
    # Throttle
    # ------------------------------------------------------------------

    def state(self, provider: str) -> RateLimitState:
        """Return (and lazily create) the state for *provider*."""
        state = self._states.get(provider)
        if state is None:
            state = RateLimitState()
            self._states[provider] = state
        return state

    def min_delay(self, provider: str) -> float:
        return self._delays.get(provider, self._default_delay)

    def set_throttle_delay(self, provider: str, seconds: float) -> None:
        self._delays[provider] = max(0.0, seconds)

    def throttle_wait(self, provider: str) -> float:
        """Seconds until *provider* may be called again (0 if now)."""
        state = self.state(provider)
        if state.last_request_at is None:
            return 0.0
        elapsed = self._clock() - state.last_request_at
        return max(0.0, self.min_delay(provider) - elapsed)

    async def throttle(self, provider: str) -> None:
        """Wait until *provider*'s minimum spacing has passed, then stamp it."""
        lock = self._locks.setdefault(provider, asyncio.Lock())
        async with lock:
            state = self.state(provider)
            wait = self.throttle_wait(provider)
            if wait > 0:
                log.debug("provider_throttled", provider=provider, wait_ms=round(wait * 1000))
                await asyncio.sleep(wait)
            now = self._clock()
            if state.last_request_at is None or now > state.last_request_at:
                state.last_request_at = now

    # ------------------------------------------------------------------
    # Backoff
    # ------------------------------------------------------------------

    def is_rate_limited(self, provider: str) -> bool:
        """Return ``True`` while *provider* is inside its backoff window.

        The limited flag is cleared lazily once the window has elapsed.
        """
        state = self.state(provider)
        if not state.is_limited:
            return False
        if self._clock() >= state.limited_until:
            state.is_limited = False
            log.info("provider_rate_limit_expired", provider=provider)
            return False
        return True

    def wait_seconds(self, provider: str) -> int:
        """Remaining backoff for *provider*, rounded up to whole seconds."""
        state = self.state(provider)
        if not state.is_limited:
            return 0
        return math.ceil(max(0.0, state.limited_until - self._clock()))

    def backoff_for(self, consecutive_errors: int) -> float:
        """Backoff window after *consecutive_errors* rate-limit errors."""
        exponent = max(0, consecutive_errors - 1)
        # Large exponents overflow float multiplication.
        if exponent > 64:
            return self._backoff_max
        return min(self._backoff_base * (2**exponent), self._backoff_max)

    def record_rate_limit(self, provider: str, message: str) -> None:
        """Record a rate-limit error and extend the backoff window."""
        state = self.state(provider)
        state.consecutive_errors += 1
        state.last_error = message
        state.is_limited = True
        backoff = self.backoff_for(state.consecutive_errors)
        state.limited_until = self._clock() + backoff
        log.warning(
            "provider_rate_limited",
            provider=provider,
            backoff_seconds=math.ceil(backoff),
            attempt=state.consecutive_errors,
            error=message,
        )

    def record_success(self, provider: str) -> None:
        """Reset backoff for *provider* after a successful request."""
        state = self.state(provider)
        if state.consecutive_errors > 0:
            log.info("provider_recovered", provider=provider)
        state.consecutive_errors = 0
        state.last_error = None
        state.is_limited = False

    def is_rate_limit_error(self, error: object) -> bool:
        return is_rate_limit_error(error)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def set_cache(self, key: str, value: Any, *, ttl: float | None = None) -> None:
        self._cache[key] = _CacheEntry(
            payload=value,
            cached_at=self._clock(),
            ttl=self._cache_ttl if ttl is None else ttl,
        )

    def get_cache(self, key: str) -> Any:
        """Return the cached payload, or ``None`` if missing or expired."""
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self._clock() - entry.cached_at > entry.ttl:
            del self._cache[key]
            return None
        return entry.payload

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def status(self) -> dict[str, dict[str, object]]:
        """Return a diagnostic snapshot of all known providers."""
        result: dict[str, dict[str, object]] = {}
        for name in sorted(self._states):
            state = self._states[name]
            result[name] = {
                "limited": self.is_rate_limited(name),
                "wait_seconds": self.wait_seconds(name),
                "errors": state.consecutive_errors,
                "last_error": state.last_error,
            }
        return result
