"""Middleware and request guards."""

from safevalley.middleware.rate_limit import (
    InMemoryRateLimiter,
    RedisRateLimiter,
    SubmissionRateLimiter,
    submission_rate_limiter,
)
from safevalley.middleware.request_logging import RequestLoggingMiddleware, setup_logging

__all__ = [
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "SubmissionRateLimiter",
    "submission_rate_limiter",
    "RequestLoggingMiddleware",
    "setup_logging",
]
