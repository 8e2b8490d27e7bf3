"""Sliding-window rate limiting for public report submissions."""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

import redis.asyncio as redis
from fastapi import Request
from redis.exceptions import RedisError

from safevalley.config import settings
from safevalley.core.auth import get_client_ip
from safevalley.core.exceptions import RateLimitException

logger = logging.getLogger("api.rate_limit")

# (is_allowed, remaining_requests, retry_after_seconds)
RateDecision = Tuple[bool, int, int]


class InMemoryRateLimiter:
    """
    In-memory rate limiter for development/fallback.
    Uses sliding window algorithm.

    Note: This is NOT suitable for production with multiple instances.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        cleanup_every: int = 1000,
    ):
        self._requests: Dict[str, List[float]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self._cleanup_every = cleanup_every
        self._calls = 0

    def _sweep(self, cutoff: float) -> None:
        for key in list(self._requests):
            self._requests[key] = [ts for ts in self._requests[key] if ts > cutoff]
            if not self._requests[key]:
                del self._requests[key]

    async def is_allowed(
        self,
        key: str,
        max_requests: int,
        window_seconds: int
    ) -> RateDecision:
        now = self._clock()
        window_start = now - window_seconds

        async with self._lock:
            # Clients that went quiet are dropped every few calls
            self._calls += 1
            if self._calls % self._cleanup_every == 0:
                self._sweep(window_start)

            timestamps = [ts for ts in self._requests.get(key, []) if ts > window_start]

            if len(timestamps) >= max_requests:
                # Time until the oldest request leaves the window
                retry_after = int(timestamps[0] + window_seconds - now) + 1
                self._requests[key] = timestamps
                return False, 0, max(1, retry_after)

            timestamps.append(now)
            self._requests[key] = timestamps
            return True, max_requests - len(timestamps), 0

    async def cleanup(self, window_seconds: int) -> None:
        """Remove expired entries to prevent memory growth."""
        cutoff = self._clock() - window_seconds
        async with self._lock:
            self._sweep(cutoff)


class RedisRateLimiter:
    """
    Redis-based rate limiter for multi-instance deployments.
    Uses a sliding window over a sorted set per client.
    """

    def __init__(self, redis_url: str, client=None):
        self._redis_url = redis_url
        self._redis = client

    def _get_redis(self):
        if self._redis is None:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True
            )
        return self._redis

    async def is_allowed(
        self,
        key: str,
        max_requests: int,
        window_seconds: int
    ) -> RateDecision:
        """
        Raises:
            RedisError, OSError: Redis is unreachable
        """
        client = self._get_redis()
        now = time.time()
        rate_key = f"rate_limit:submit:{key}"

        pipe = client.pipeline()
        pipe.zremrangebyscore(rate_key, 0, now - window_seconds)
        pipe.zcard(rate_key)
        pipe.zadd(rate_key, {str(now): now})
        pipe.expire(rate_key, window_seconds + 1)
        results = await pipe.execute()
        current_count = results[1]

        if current_count >= max_requests:
            # The rejected attempt must not extend the window
            await client.zrem(rate_key, str(now))
            oldest = await client.zrange(rate_key, 0, 0, withscores=True)
            if oldest:
                retry_after = int(oldest[0][1] + window_seconds - now) + 1
            else:
                retry_after = window_seconds
            return False, 0, max(1, retry_after)

        return True, max_requests - current_count - 1, 0

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()


class SubmissionRateLimiter:
    """
    FastAPI dependency limiting report submissions per client IP.

    Prefers Redis and falls back to the in-memory window whenever Redis
    cannot be reached.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        redis_limiter: Optional[RedisRateLimiter] = None,
        memory_limiter: Optional[InMemoryRateLimiter] = None,
        enabled: bool = True,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._redis_limiter = redis_limiter
        self._memory_limiter = memory_limiter or InMemoryRateLimiter()

    async def check(self, key: str) -> RateDecision:
        if self._redis_limiter is not None:
            try:
                return await self._redis_limiter.is_allowed(
                    key, self.max_requests, self.window_seconds
                )
            except (RedisError, OSError) as e:
                logger.warning(f"Redis rate limiter unavailable, using in-memory window: {e}")
        return await self._memory_limiter.is_allowed(
            key, self.max_requests, self.window_seconds
        )

    async def __call__(self, request: Request) -> None:
        if not self.enabled:
            return

        client_ip = get_client_ip(request)
        is_allowed, remaining, retry_after = await self.check(f"ip:{client_ip}")
        if not is_allowed:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.warning(
                f"[{request_id}] Submission rate limit exceeded for {client_ip}"
            )
            raise RateLimitException(retry_after=retry_after)


submission_rate_limiter = SubmissionRateLimiter(
    settings.rate_limit_requests,
    settings.rate_limit_window_seconds,
    redis_limiter=RedisRateLimiter(settings.redis_url) if settings.redis_url else None,
    enabled=settings.rate_limit_enabled,
)
