"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestIDMiddleware — injects X-Request-ID into every request/response
    2. ErrorHandlerMiddleware — catches domain exceptions -> error envelope
    3. CORSMiddleware — handles browser-based clients

Error envelope:
    {"code": <http status>, "errorMsg": <stable tag>, "message": <human text>, "data": {...}}
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from exchange_marketplace.domain.exceptions import (
    ConflictError,
    ContractGatewayError,
    MarketplaceError,
    ResourceNotFoundError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)


def error_response(status_code: int, error_msg: str, message: str, data: object = None) -> JSONResponse:
    """Render the error envelope."""
    content: dict = {"code": status_code, "errorMsg": error_msg, "message": message}
    if data is not None:
        content["data"] = data
    return JSONResponse(status_code=status_code, content=content)


def status_for(exc: MarketplaceError) -> int:
    if isinstance(exc, ResourceNotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    if isinstance(exc, ContractGatewayError):
        return 424
    return 400


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Use client-provided ID or generate one
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        # Bind to structlog context for all log entries in this request
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        participant = request.headers.get("X-Participant-ID")
        if participant:
            structlog.contextvars.bind_contextvars(participant=participant)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 2. Error Handler Middleware
# ---------------------------------------------------------------------------
class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch domain exceptions and return the JSON error envelope."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except MarketplaceError as exc:
            status_code = status_for(exc)
            log = logger.error if status_code == 424 else logger.warning
            log(
                "domain.error",
                error_type=type(exc).__name__,
                error_msg=exc.error_msg,
                error=exc.message,
                status=status_code,
                path=request.url.path,
            )
            return error_response(status_code, exc.error_msg, exc.message, exc.data)
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return error_response(500, "internal error", "An unexpected error occurred")


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI) -> None:
    """Register all middleware on the FastAPI application.

    Order matters — middleware is applied bottom-up, so the last added
    middleware runs first.
    """
    # CORS (runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Tighten in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handling (runs second)
    app.add_middleware(ErrorHandlerMiddleware)

    # Request ID (runs last = outermost)
    app.add_middleware(RequestIDMiddleware)


# ---------------------------------------------------------------------------
# Framework-level errors in the same envelope
# ---------------------------------------------------------------------------
_HTTP_ERROR_TAGS = {401: "unauthenticated", 404: "Resource not found", 405: "method not allowed"}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(
        exc.status_code,
        _HTTP_ERROR_TAGS.get(exc.status_code, "http error"),
        str(exc.detail),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        422,
        "validation error",
        "Request validation failed",
        jsonable_encoder(exc.errors()),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
