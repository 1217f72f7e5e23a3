"""Per-client fixed-window rate limiter. Metrics-integrated."""

import time
from typing import Optional, Protocol

from audit_trail.infrastructure.cache.redis_client import RedisClient
from audit_trail.observability.metrics import MetricsCollector

RATE_LIMIT_EXCEEDED = "rate_limit_exceeded_total"


class RateLimitBackend(Protocol):
    """Backend for rate limit state (e.g. Redis). Injected."""

    async def incr_window(self, key: str, window_seconds: int) -> int: ...


class RedisRateLimitBackend:
    """Fixed window in Redis: INCR the key, set its TTL on the first hit."""

    def __init__(self, redis_client: RedisClient) -> None:
        self._redis = redis_client

    async def incr_window(self, key: str, window_seconds: int) -> int:
        current = await self._redis.incr(key)
        if current == 1:
            await self._redis.expire(key, window_seconds)
        return current


class InMemoryRateLimitBackend:
    """In-memory sliding window: key -> list of timestamps. For tests or single-node."""

    def __init__(self) -> None:
        self._windows: dict[str, list[float]] = {}

    async def incr_window(self, key: str, window_seconds: int) -> int:
        now = time.monotonic()
        cutoff = now - window_seconds
        window = [t for t in self._windows.get(key, []) if t > cutoff]
        window.append(now)
        self._windows[key] = window
        return len(window)


class ClientRateLimiter:
    """
    Per-client rate limiter keyed by client IP address.
    Counts every request; requests beyond the limit within the window are refused.
    """

    def __init__(
        self,
        backend: RateLimitBackend,
        requests_per_window: int = 100,
        window_seconds: int = 60,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self._backend = backend
        self._limit = requests_per_window
        self._window = window_seconds
        self._metrics = metrics
        self._key_prefix = "rate:client:"

    @property
    def window_seconds(self) -> int:
        return self._window

    def _key(self, client_id: str) -> str:
        return f"{self._key_prefix}{client_id}"

    async def allow_request(self, client_id: str) -> bool:
        """Returns True if the client is under its limit for the current window."""
        count = await self._backend.incr_window(self._key(client_id), self._window)
        allowed = count <= self._limit
        if self._metrics and not allowed:
            self._metrics.increment(RATE_LIMIT_EXCEEDED)
        return allowed
