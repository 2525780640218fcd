"""Rate limiting configuration for the marketplace API.

Uses slowapi with a Redis backend so limits hold across service instances.
"""

from functools import lru_cache
from typing import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from libs.common.config import get_settings
from libs.common.errors import error_body


def _get_client_ip(request: Request) -> str:
    """
    Get client IP from request, handling proxies.

    Checks X-Forwarded-For header first (for proxied requests),
    then falls back to direct connection IP.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def _get_principal_or_ip(request: Request) -> str:
    """
    Rate limit by principal if authenticated, otherwise by IP.
    """
    principal = getattr(request.state, "principal", None)
    if principal is not None:
        return f"{principal.role}:{principal.id}"
    return f"ip:{_get_client_ip(request)}"


@lru_cache
def get_limiter() -> Limiter:
    """
    Create and return a cached Limiter instance.
    """
    settings = get_settings()
    storage_uri = "memory://" if settings.ENVIRONMENT == "test" else settings.REDIS_URL

    return Limiter(
        key_func=_get_principal_or_ip,
        default_limits=["100/minute"],
        storage_uri=storage_uri,
        strategy="fixed-window",
        enabled=settings.RATE_LIMIT_ENABLED,
    )


limiter = get_limiter()


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Return the standard error body with a Retry-After header.
    """
    retry_after = exc.detail.split("per")[0].strip() if exc.detail else "1 minute"

    return JSONResponse(
        status_code=429,
        content=error_body(f"Rate limit exceeded. Try again in {retry_after}."),
        headers={"Retry-After": str(getattr(exc, "retry_after", 60))},
    )


def payment_limit(func: Callable) -> Callable:
    """Apply strict rate limit for payment endpoints (5/minute)."""
    return limiter.limit("5/minute")(func)

