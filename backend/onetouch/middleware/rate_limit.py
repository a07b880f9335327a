"""Per-caller request limits backed by Redis sorted sets.

Callers with a valid bearer token are counted per account, everyone else
per client IP (first X-Forwarded-For hop when present). Bulk endpoints
get tighter limits. If Redis is down, requests are let through.
"""

import logging
import time
from typing import Callable, Optional

import redis.asyncio as redis
from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from onetouch.auth.jwt import decode_token
from onetouch.config import settings
from onetouch.middleware.exceptions import create_error_response
from onetouch.utils.cache import get_redis

logger = logging.getLogger(__name__)

BULK_LIMITS = {
    "/api/items/import": (10, 60),
    "/api/reports/backfill-partners": (5, 60),
}


class RateLimitMiddleware(BaseHTTPMiddleware):

    def __init__(
        self,
        app,
        default_limit: int = 100,
        authenticated_limit: int = 500,
        default_window: int = 60,
        exempt_paths: Optional[list[str]] = None,
        custom_limits: Optional[dict[str, tuple[int, int]]] = None,
    ):
        super().__init__(app)
        self.default_limit = default_limit
        self.authenticated_limit = authenticated_limit
        self.default_window = default_window
        self.exempt_paths = exempt_paths or ["/health", "/docs", "/openapi.json"]
        # path prefix → (limit, window seconds)
        self.custom_limits = custom_limits if custom_limits is not None else BULK_LIMITS

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not settings.rate_limit_enabled or path.startswith(tuple(self.exempt_paths)):
            return await call_next(request)

        caller, authenticated = self._caller_key(request)
        limit, window = self._limit_for(path, authenticated)
        allowed, remaining, reset_at = await self._consume(caller, limit, window)

        if not allowed:
            retry_after = max(1, int(reset_at - time.time()))
            logger.info(f"Rate limit hit for {caller} on {path}")
            # Raising here would skip the app's exception handlers
            return create_error_response(
                status.HTTP_429_TOO_MANY_REQUESTS,
                f"Rate limit exceeded. Try again in {retry_after} seconds.",
                "RATE_LIMITED",
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(int(reset_at)),
                    "Retry-After": str(retry_after),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(int(reset_at))
        return response

    def _limit_for(self, path: str, authenticated: bool) -> tuple[int, int]:
        for prefix, limit_window in self.custom_limits.items():
            if path.startswith(prefix):
                return limit_window
        limit = self.authenticated_limit if authenticated else self.default_limit
        return limit, self.default_window

    def _caller_key(self, request: Request) -> tuple[str, bool]:
        scheme, _, token = request.headers.get("authorization", "").partition(" ")
        if scheme.lower() == "bearer" and token:
            account_id = decode_token(token).get("sub")
            if account_id:
                return f"account:{account_id}", True

        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return f"ip:{forwarded.split(',')[0].strip()}", False
        return f"ip:{request.client.host if request.client else 'unknown'}", False

    async def _consume(self, caller: str, limit: int, window: int) -> tuple[bool, int, float]:
        """Record one request; returns (allowed, remaining, reset timestamp)."""
        now = time.time()
        key = f"ratelimit:{caller}"
        try:
            client = await get_redis()
            await client.zremrangebyscore(key, 0, now - window)
            count = await client.zcard(key)
            if count >= limit:
                oldest = await client.zrange(key, 0, 0, withscores=True)
                return False, 0, (oldest[0][1] if oldest else now) + window

            await client.zadd(key, {str(now): now})
            await client.expire(key, window)
            return True, limit - count - 1, now + window
        except redis.RedisError as e:
            logger.error(f"Rate limit check failed for {caller}, allowing request: {e}")
            return True, limit, now + window
