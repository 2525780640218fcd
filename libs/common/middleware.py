"""Observability middleware for the marketplace API.

Every request gets a request id (taken from ``X-Request-ID`` or generated),
bound into the logging context and echoed on the response. Start and finish
are logged with timing; the finish line also names the authenticated caller
when the auth dependency resolved one.

Usage:
    from libs.common.middleware import add_observability_middleware

    app = FastAPI()
    add_observability_middleware(app)
"""
import time
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from libs.common.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Polled by load balancers; not worth a log line per hit
QUIET_PATHS = frozenset({"/health"})


def _caller(request: Request) -> Optional[str]:
    principal = getattr(request.state, "principal", None)
    if principal is None:
        return None
    return f"{principal.role.value}:{principal.id}"


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds the request id into the log context and logs each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=request.headers.get(REQUEST_ID_HEADER),
            path=request.url.path,
            method=request.method,
        )
        quiet = request.url.path in QUIET_PATHS
        start_time = time.perf_counter()

        if not quiet:
            logger.info(
                "Request started",
                extra={"extra_fields": {"query": request.url.query or None}},
            )

        try:
            try:
                response = await call_next(request)
            except Exception as e:
                logger.exception(
                    "Request failed with unhandled exception",
                    extra={
                        "extra_fields": {
                            "error": str(e),
                            "caller": _caller(request),
                            "duration_ms": _elapsed_ms(start_time),
                        }
                    },
                )
                raise

            if not quiet:
                log = logger.warning if response.status_code >= 400 else logger.info
                log(
                    "Request completed",
                    extra={
                        "extra_fields": {
                            "status_code": response.status_code,
                            "caller": _caller(request),
                            "duration_ms": _elapsed_ms(start_time),
                        }
                    },
                )

            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_request_context()


def add_observability_middleware(app: FastAPI) -> None:
    """Configure logging and install the request context middleware."""
    configure_logging()
    app.add_middleware(RequestContextMiddleware)
