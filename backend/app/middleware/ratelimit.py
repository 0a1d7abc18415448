"""Rate limiting middleware for unauthenticated auth paths."""

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from backend.app.db.repositories import RateLimiter
from backend.app.ratelimit import make_rate_limit_key
from backend.app.utils.metrics import metrics

RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


class RateLimitMiddleware:
    """Throttle auth paths per client IP.

    Maps request paths to buckets and enforces rate limits before the route
    handler runs, since these requests have no session to key on.
    """

    def __init__(self, limiter: RateLimiter, bucket_map: dict[str, str]) -> None:
        """Initialize rate limit middleware.

        Args:
            limiter: Rate limiter implementation
            bucket_map: Mapping from path patterns to bucket names
        """
        self._limiter = limiter
        self._bucket_map = bucket_map

    async def check_rate_limit(
        self, path: str, client_ip: str, now: datetime | None = None
    ) -> tuple[bool, int]:
        """Check if request is allowed under rate limit.

        Args:
            path: Request path
            client_ip: Caller address
            now: Current time (for testing)

        Returns:
            Tuple of (allowed, retry_after_seconds)
        """
        if now is None:
            now = datetime.now(timezone.utc)

        bucket = self._get_bucket(path)

        if bucket is None:
            # No rate limit for this path
            return (True, 0)

        key = make_rate_limit_key(f"ip:{client_ip}", bucket)
        retry_after = await self._limiter.check_quota(key, now)

        if retry_after is None:
            return (True, 0)

        metrics.inc_rate_limited(bucket)
        return (False, retry_after.seconds)

    def _get_bucket(self, path: str) -> str | None:
        """Get bucket name for path.

        Args:
            path: Request path

        Returns:
            Bucket name or None if no rate limit
        """
        for pattern, bucket in self._bucket_map.items():
            if path.startswith(pattern):
                return bucket

        return None

    async def __call__(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """HTTP middleware entry point (``app.middleware("http")``)."""
        if request.method != "POST":
            return await call_next(request)

        client_ip = client_address(request)
        allowed, retry_after = await self.check_rate_limit(request.url.path, client_ip)

        if not allowed:
            return JSONResponse(
                status_code=429,
                content={"error": RATE_LIMIT_MESSAGE},
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(self._limiter.limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

        return await call_next(request)


def client_address(request: Request) -> str:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client is not None:
        return request.client.host
    return "unknown"


def create_default_bucket_map() -> dict[str, str]:
    """Create default bucket mapping.

    Returns:
        Dictionary mapping path prefixes to bucket names
    """
    # Kept apart from action names so the path and action counters never share a key
    return {
        "/auth/login": "auth_login",
        "/actions/login": "auth_login",
    }
