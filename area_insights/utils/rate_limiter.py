"""
Per-client request limits over a sliding one-minute window.
"""

import time
import uuid
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from fastapi import HTTPException, Request, status

from area_insights.config import settings
from area_insights.services.redis_client import redis_client

WINDOW_SECONDS = 60
RATE_LIMIT_PREFIX = "rate_limit:"

LimitResult = Tuple[bool, Dict[str, int]]


def _limit_info(limit: int, remaining: int, reset: float, retry_after: float = 0) -> Dict[str, int]:
    return {
        "limit": limit,
        "remaining": max(0, remaining),
        "reset": int(reset),
        "retry_after": max(0, int(retry_after)),
    }


class RateLimiter:
    """Sliding-window log kept in a Redis sorted set, one member per request."""

    def __init__(self, requests_per_minute: Optional[int] = None):
        self.requests_per_minute = requests_per_minute or settings.rate_limit_per_minute
        self.window_size = WINDOW_SECONDS

    async def is_allowed(self, key: str) -> LimitResult:
        now = int(time.time())

        await redis_client.zremrangebyscore(key, 0, now - self.window_size)
        current_requests = await redis_client.zcard(key)

        if current_requests >= self.requests_per_minute:
            oldest = await redis_client.zrange_withscores(key, 0, 0)
            reset = int(oldest[0][1]) + self.window_size if oldest else now + self.window_size
            return False, _limit_info(self.requests_per_minute, 0, reset, reset - now)

        await redis_client.zadd(key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
        await redis_client.expire(key, self.window_size + 1)

        remaining = self.requests_per_minute - current_requests - 1
        return True, _limit_info(self.requests_per_minute, remaining, now + self.window_size)


class InMemoryRateLimiter:
    """Process-local limiter used while Redis is not connected."""

    def __init__(self, requests_per_minute: Optional[int] = None):
        self.requests_per_minute = requests_per_minute or settings.rate_limit_per_minute
        self.window_size = WINDOW_SECONDS
        self.requests: Dict[str, List[float]] = defaultdict(list)
        self._last_cleanup = time.time()

    def _cleanup_old_requests(self, now: float):
        if now - self._last_cleanup < self.window_size:
            return

        cutoff = now - self.window_size
        for key in list(self.requests):
            self.requests[key] = [t for t in self.requests[key] if t > cutoff]
            if not self.requests[key]:
                del self.requests[key]
        self._last_cleanup = now

    async def is_allowed(self, key: str) -> LimitResult:
        now = time.time()
        self._cleanup_old_requests(now)

        window = [t for t in self.requests[key] if t > now - self.window_size]
        self.requests[key] = window

        if len(window) >= self.requests_per_minute:
            reset = min(window) + self.window_size
            return False, _limit_info(self.requests_per_minute, 0, reset, reset - now)

        window.append(now)
        remaining = self.requests_per_minute - len(window)
        return True, _limit_info(self.requests_per_minute, remaining, now + self.window_size)


default_rate_limiter = RateLimiter()
fallback_rate_limiter = InMemoryRateLimiter()


def get_client_identifier(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return f"ip:{forwarded_for.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


async def check_rate_limit(request: Request, requests_per_minute: Optional[int] = None) -> Dict[str, int]:
    """Raise 429 when the client is over its limit; otherwise return the limit info."""
    key = RATE_LIMIT_PREFIX + get_client_identifier(request)
    rate_limiter = RateLimiter(requests_per_minute) if requests_per_minute else default_rate_limiter

    try:
        limiter = rate_limiter if redis_client.redis else fallback_rate_limiter
        is_allowed, info = await limiter.is_allowed(key)
    except Exception:
        # Limiter storage down: let the request through
        is_allowed = True
        limit = rate_limiter.requests_per_minute
        info = _limit_info(limit, limit, time.time() + WINDOW_SECONDS)

    if not is_allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "success": False,
                "error": "Rate limit exceeded",
                "code": "RATE_LIMIT_EXCEEDED",
                "limit": info["limit"],
                "retry_after": info["retry_after"]
            },
            headers={
                "X-RateLimit-Limit": str(info["limit"]),
                "X-RateLimit-Remaining": str(info["remaining"]),
                "X-RateLimit-Reset": str(info["reset"]),
                "Retry-After": str(info["retry_after"])
            }
        )

    return info
