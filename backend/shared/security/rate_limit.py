"""
Rate limiting utilities.

- ``limiter``: slowapi limiter keyed by client IP, applied with
  ``@limiter.limit(...)`` on public endpoints.
- ``KeyedRateLimiter``: fixed-window limiter keyed by an arbitrary string
  (e.g. ``order:{tenant_slug}:{table_qr}``), built on the async strategies of
  ``limits`` so checks never block the event loop.
"""

import time

from fastapi import Request
from fastapi.responses import JSONResponse
from limits import RateLimitItemPerSecond
from limits.aio.strategies import FixedWindowRateLimiter
from limits.storage import storage_from_string
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.constants import ErrorMessages
from shared.config.logging import audit_rate_limit_event, security_audit_logger
from shared.config.settings import settings
from shared.utils.exceptions import RateLimitError

# Create limiter instance using client IP as key
limiter = Limiter(key_func=get_remote_address, storage_uri=settings.ip_rate_limit_storage_uri)


class KeyedRateLimiter:
    """
    Fixed-window counter keyed by an arbitrary string.

    Usage:
        order_limiter = KeyedRateLimiter(limit=5, window_seconds=60, namespace="order")
        await order_limiter.check(f"{slug}:{qr_code}", context="create_order")
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        namespace: str,
        storage_uri: str | None = None,
        message: str | None = None,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.namespace = namespace
        self.message = message
        self._item = RateLimitItemPerSecond(limit, window_seconds)
        self._storage = storage_from_string(storage_uri or settings.rate_limit_storage_uri)
        self._strategy = FixedWindowRateLimiter(self._storage)

    async def hit(self, key: str) -> tuple[bool, int, int]:
        """
        Count one hit against ``key``.

        Returns:
            (allowed, remaining, reset_at) where reset_at is a UNIX timestamp.
        """
        allowed = await self._strategy.hit(self._item, self.namespace, key)
        stats = await self._strategy.get_window_stats(self._item, self.namespace, key)
        return allowed, stats.remaining, int(stats.reset_time)

    async def check(self, key: str, context: str) -> None:
        """
        Count one hit and raise if the window is exhausted.

        Raises:
            RateLimitError: 429 with Retry-After set to the seconds left in the window.
        """
        allowed, _, reset_at = await self.hit(key)
        if allowed:
            return

        retry_after = max(1, int(reset_at - time.time()))
        audit_rate_limit_event(
            context=context,
            key=f"{self.namespace}:{key}",
            limit=self.limit,
            window=self.window_seconds,
        )
        raise RateLimitError(retry_after, detail=self.message, rate_limit_key=f"{self.namespace}:{key}")

    async def reset(self) -> None:
        """Drop all counters (used between tests and by operators)."""
        await self._storage.reset()


def build_order_rate_limiter() -> KeyedRateLimiter:
    """Limiter for order submissions per (tenant, table) pair."""
    return KeyedRateLimiter(
        limit=settings.order_rate_limit,
        window_seconds=settings.order_rate_window,
        namespace="order",
        message=ErrorMessages.TOO_MANY_ORDERS,
    )


order_rate_limiter = build_order_rate_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Handler for slowapi limit errors, rendered like the other API errors.
    """
    security_audit_logger.warning(
        "RATE_LIMIT_AUDIT: ip",
        path=request.url.path,
        ip_address=get_remote_address(request),
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded. Try again later.",
            "code": RateLimitError.code,
        },
        headers={"Retry-After": "60"},
    )
