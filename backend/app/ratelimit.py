"""Rate limiting utilities."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import redis.asyncio as redis

from backend.app.config import Settings
from backend.app.db.inmemory import InMemoryRateLimiter
from backend.app.db.repositories import RateLimiter, RetryAfter

logger = logging.getLogger(__name__)


class RateLimitTier(str, Enum):
    """Named request budgets."""

    auth = "auth"
    api = "api"
    general = "general"
    report = "report"


def make_rate_limit_key(caller: str, bucket: str) -> str:
    """Create rate limit key from caller identity and bucket.

    Args:
        caller: ``{tenant}:{user}`` for signed-in callers, ``ip:{addr}`` otherwise
        bucket: Action or route name (e.g., "create_assignment")

    Returns:
        Rate limit key
    """
    return f"{caller}:{bucket}"


class RedisRateLimiter:
    """Redis-based rate limiter using INCR + EXPIRE pattern."""

    def __init__(
        self,
        redis_client: redis.Redis,
        max_requests: int,
        window_seconds: int = 60,
        prefix: str = "ratelimit",
    ) -> None:
        """Initialize rate limiter.

        Args:
            redis_client: Async Redis client
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
            prefix: Key namespace, one per tier
        """
        self._redis = redis_client
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._prefix = prefix

    @property
    def limit(self) -> int:
        return self._max_requests

    async def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Uses Redis INCR + EXPIRE for atomic counting.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        # Use a window-aligned key
        window_start = int(now.timestamp() / self._window_seconds) * self._window_seconds
        redis_key = f"{self._prefix}:{key}:{window_start}"

        count = await self._redis.incr(redis_key)

        # Set expiry on first request
        if count == 1:
            await self._redis.expire(redis_key, self._window_seconds)

        if count > self._max_requests:
            ttl = await self._redis.ttl(redis_key)
            return RetryAfter(seconds=max(1, ttl))

        return None


@dataclass
class RateLimiters:
    """One limiter per tier."""

    auth: RateLimiter
    api: RateLimiter
    general: RateLimiter
    report: RateLimiter

    def for_tier(self, tier: RateLimitTier) -> RateLimiter:
        return getattr(self, tier.value)  # type: ignore[no-any-return]


def build_rate_limiters(settings: Settings) -> RateLimiters:
    """Build tier limiters: Redis-backed when REDIS_URL is set, in-process otherwise."""
    window = settings.rate_limit_window_seconds
    budgets = {
        RateLimitTier.auth: settings.auth_requests_per_window,
        RateLimitTier.api: settings.api_requests_per_window,
        RateLimitTier.general: settings.general_requests_per_window,
        RateLimitTier.report: settings.report_requests_per_window,
    }

    if settings.redis_url:
        client = redis.from_url(settings.redis_url, decode_responses=True)
        limiters: dict[RateLimitTier, RateLimiter] = {
            tier: RedisRateLimiter(client, max_requests, window, prefix=f"ratelimit:{tier.value}")
            for tier, max_requests in budgets.items()
        }
    else:
        logger.warning("REDIS_URL not set, using in-memory rate limiting")
        limiters = {
            tier: InMemoryRateLimiter(max_requests, window)
            for tier, max_requests in budgets.items()
        }

    return RateLimiters(
        auth=limiters[RateLimitTier.auth],
        api=limiters[RateLimitTier.api],
        general=limiters[RateLimitTier.general],
        report=limiters[RateLimitTier.report],
    )
