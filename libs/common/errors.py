"""Error taxonomy and the single boundary handler for API responses.

Every error body has the shape ``{"status": "error", "data": null, "message": ...}``
with the HTTP status code mirroring the error kind.

Usage:
    from libs.common.errors import NotFoundError, add_exception_handlers

    raise NotFoundError("Order not found")
"""

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from libs.common.logging import get_logger

logger = get_logger(__name__)


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class InvalidRequestError(ValidationError):
    """Well-formed input that violates a business rule (e.g. mixed sellers)."""


class UnauthorizedError(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Session expired! Please log in again."


class ForbiddenError(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Unauthorized access."


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidStateError(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource is in an invalid state"


class InsufficientStockError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Insufficient stock"


class PaymentNotCompletedError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Payment has not been completed"


class PaymentProviderError(ApiError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Payment provider error"


class InternalError(ApiError):
    pass


def error_body(message: str) -> dict:
    return {"status": "error", "data": None, "message": message}


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content=error_body(message)
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal Server Error"),
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register the boundary handlers on a FastAPI app."""
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
