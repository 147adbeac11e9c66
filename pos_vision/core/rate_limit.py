"""Inbound rate limiting dependency for FastAPI routes.

Protects the AI endpoints from a single client monopolising the outbound
provider throttle. Requests are counted per API key, falling back to client
IP when auth is disabled.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from pos_vision.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from pos_vision.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from pos_vision.core.auth import fingerprint
from pos_vision.core.config import settings

logger = logging.getLogger(__name__)


_limiter: AbstractRateLimiter | None = None
_limiter_config: tuple[int, int] | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide limiter, rebuilding it if its settings changed."""

    global _limiter, _limiter_config

    config = (
        settings.app.rate_limit_requests,
        settings.app.rate_limit_window_seconds,
    )
    if _limiter is None or _limiter_config != config:
        _limiter = InMemorySlidingWindowRateLimiter(
            limit=config[0],
            window_seconds=config[1],
        )
        _limiter_config = config
    return _limiter


def build_rate_limit_key(request: Request, x_api_key: str | None) -> str:
    """Namespaced limiter key: ``api_key:<key>`` or ``ip:<host>``."""

    if x_api_key:
        return f"api_key:{x_api_key}"
    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }
    if result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


async def enforce_rate_limit(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """Consume one unit of the caller's budget.

    Raises:
        HTTPException: 429 Too Many Requests when the budget is exhausted.
    """

    if not settings.app.rate_limit_enabled:
        return

    key = build_rate_limit_key(request, x_api_key)
    result = get_rate_limiter().consume(key)
    log_fields = {
        "key_type": "api_key" if x_api_key else "ip",
        "key_fingerprint": fingerprint(key),
        "limit": result.limit,
        "remaining": result.remaining,
        "window_s": settings.app.rate_limit_window_seconds,
    }

    if result.allowed:
        logger.debug("rate_limit.allowed", extra=log_fields)
        return

    logger.warning(
        "rate_limit.exceeded",
        extra={**log_fields, "retry_after_s": result.retry_after_seconds},
    )
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=rate_limit_headers(result) if settings.app.rate_limit_include_headers else None,
    )
