"""Scalability: rate limiting. No FastAPI."""

from audit_trail.scalability.rate_limiter import (
    ClientRateLimiter,
    InMemoryRateLimitBackend,
    RateLimitBackend,
    RedisRateLimitBackend,
)

__all__ = [
    "ClientRateLimiter",
    "InMemoryRateLimitBackend",
    "RateLimitBackend",
    "RedisRateLimitBackend",
]
