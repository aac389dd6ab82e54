import logging
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from area_insights.config import settings
from area_insights.utils.rate_limiter import check_rate_limit

logger = logging.getLogger(__name__)

UNLIMITED_PATHS = frozenset({"/health", "/", "/docs", "/redoc", "/openapi.json", "/api/v1/monitoring/metrics"})

SECURITY_HEADERS = {
    b"x-content-type-options": b"nosniff",
    b"x-frame-options": b"DENY",
    b"referrer-policy": b"strict-origin-when-cross-origin",
}
HSTS_HEADER = (b"strict-transport-security", b"max-age=31536000; includeSubDomains")


class RateLimitMiddleware:
    """Rejects over-limit clients with 429 and reports the remaining budget on other responses."""

    def __init__(self, app, requests_per_minute: int = None):
        self.app = app
        self.requests_per_minute = requests_per_minute or settings.rate_limit_per_minute

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope["path"] in UNLIMITED_PATHS:
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        try:
            rate_limit_info = await check_rate_limit(request, self.requests_per_minute)
        except HTTPException as e:
            response = JSONResponse(status_code=e.status_code, content=e.detail, headers=e.headers or {})
            await response(scope, receive, send)
            return

        limit_headers = [
            (b"x-ratelimit-limit", str(rate_limit_info["limit"]).encode()),
            (b"x-ratelimit-remaining", str(rate_limit_info["remaining"]).encode()),
        ]

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                message["headers"] = list(message.get("headers", [])) + limit_headers
            await send(message)

        await self.app(scope, receive, send_wrapper)


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app
        self.headers = dict(SECURITY_HEADERS)
        if settings.environment == "production":
            self.headers.update([HSTS_HEADER])

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                headers = dict(message.get("headers", []))
                headers.update(self.headers)
                message["headers"] = list(headers.items())
            await send(message)

        await self.app(scope, receive, send_wrapper)
