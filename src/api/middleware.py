"""HTTP middleware for the DocChat API.

CORS setup for the browser client, one structlog line per request, and
translation of ``DocChatError`` subclasses into ``{error, type}`` JSON
bodies with the status code each error declares.  Request validation
failures (missing form field, malformed JSON) get the same body shape
with status 400.

# ─── MIDDLEWARE EXECUTION ORDER ───────────────────────────────────────
#
# Starlette middleware is a stack (last added, first executed):
#
#   In main.py:
#     app.add_middleware(ErrorHandlingMiddleware)   # added 1st → inner
#     app.add_middleware(RequestLoggingMiddleware)  # added 2nd → outer
#
#   Request flow:
#     Client → RequestLogging → ErrorHandling → route handler
#
# So RequestLoggingMiddleware sees the *final* status code, including
# the one ErrorHandlingMiddleware chose for an application error.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import DocChatError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Allow the configured origins (``CORS_ORIGINS``) to call the API.

    With no origins given every origin is allowed, which suits local
    development only.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject credentialed requests against a wildcard origin.
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one ``http_request`` event per request, after the response is known."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert exceptions into structured ``{error, type}`` JSON responses.

    ``DocChatError`` subclasses map to their declared ``status_code``
    (400 validation, 404 not found, 422 extraction, 502/503 provider,
    500 storage/configuration).  Anything else becomes a 500 with a
    generic message.  Stack traces are logged server-side only.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except DocChatError as exc:
            log = _logger.warning if exc.status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                stage=exc.stage,
                path=str(request.url.path),
            )
            body = ErrorResponse(error=exc.message, type=type(exc).__name__)
            return JSONResponse(status_code=exc.status_code, content=body.model_dump())
        except Exception as exc:
            _logger.exception(
                "unhandled_error",
                error_type=type(exc).__name__,
                path=str(request.url.path),
            )
            body = ErrorResponse(error="Internal server error", type=type(exc).__name__)
            return JSONResponse(status_code=500, content=body.model_dump())


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Request body is not valid JSON"
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    if first.get("type") == "missing":
        return f"Missing required field: {field}" if field else "Request body is required"
    message = str(first.get("msg", "Invalid request"))
    return f"Invalid value for {field}: {message}" if field else message


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Render FastAPI's request validation failures as a 400 ``{error, type}`` body."""
    message = _describe_validation_error(exc)
    _logger.warning(
        "request_validation_failed",
        message=message,
        path=str(request.url.path),
    )
    body = ErrorResponse(error=message, type="ValidationError")
    return JSONResponse(status_code=400, content=body.model_dump())


def configure_exception_handlers(app: FastAPI) -> None:
    """Register handlers for errors FastAPI raises before a route runs."""
    app.add_exception_handler(RequestValidationError, request_validation_handler)
