"""Error Translator — turns any error into exactly one uniform JSON response.

Invariants:
    - ApiError / HTTPException → NormalizedError {message, status, timestamp, path} with its status
    - RequestValidationError (pydantic) → 400 with field-level errors
    - Status 500 with an explicit status → full serialized error logged before responding
    - Anything else → stack trace logged, body exactly {"message": "Internal Server Error"}
    - The error boundary middleware never re-raises

Design Decisions:
    - Handlers for classified errors are registered on the FastAPI app (ExceptionMiddleware);
      unclassified errors are caught by ErrorBoundaryMiddleware, the outermost user middleware,
      because Starlette re-raises whatever reaches ServerErrorMiddleware
    - render_error() is shared with the contract middleware so every error body comes from here
"""

import json
import logging
from http import HTTPStatus

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from userservice.core.errors import (
    ApiError, ErrorCategory, FieldViolation, RequestValidationFailed,
    stringify_value,
)

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR_BODY = {"message": "Internal Server Error"}


def render_error(exc: Exception, path: str) -> JSONResponse:
    """Build the response for any error. Logs server-side failures."""
    if isinstance(exc, ApiError):
        if exc.http_status == status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(
                json.dumps(exc.to_log_record(path), default=str),
                extra={"error_code": exc.code, "path": path, "status": exc.http_status},
            )
        elif exc.http_status >= 500:
            logger.error(
                f"ApiError: {exc.message}",
                extra={"error_code": exc.code, "path": path, "status": exc.http_status},
            )
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(path),
        )

    if isinstance(exc, StarletteHTTPException):
        return render_error(_from_http_exception(exc), path)

    logger.error(
        json.dumps({
            "eventName": "server.error",
            "message": str(exc),
            "path": path,
        }),
        exc_info=exc,
        extra={"event_name": "server.error", "path": path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=INTERNAL_SERVER_ERROR_BODY,
    )


def _from_http_exception(exc: StarletteHTTPException) -> ApiError:
    """Wrap a framework HTTPException so it renders like every other ApiError."""
    if isinstance(exc.detail, str):
        message = exc.detail
    else:
        message = HTTPStatus(exc.status_code).phrase
    return ApiError(
        message, f"HTTP_{exc.status_code}", _category_for(exc.status_code),
        http_status=exc.status_code,
    )


def _category_for(status_code: int) -> ErrorCategory:
    if status_code == 404:
        return ErrorCategory.RESOURCE_NOT_FOUND
    if status_code < 500:
        return ErrorCategory.VALIDATION
    return ErrorCategory.INTERNAL


def register_error_handlers(app: FastAPI) -> None:
    """Register all classified-error handlers on the FastAPI app."""
    _register_api_error_handler(app)
    _register_http_exception_handler(app)
    _register_validation_error_handler(app)


def _register_api_error_handler(app: FastAPI) -> None:

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return render_error(exc, request.url.path)


def _register_http_exception_handler(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException,
    ):
        return render_error(exc, request.url.path)


def _register_validation_error_handler(app: FastAPI) -> None:
    """Pydantic validation errors raised by controller signatures."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        return render_error(
            _build_validation_error(exc), request.url.path,
        )


def _build_validation_error(exc: RequestValidationError) -> RequestValidationFailed:
    return RequestValidationFailed([
        FieldViolation(
            field=".".join(str(loc) for loc in e["loc"]),
            message=e["msg"],
            value=stringify_value(e.get("input")),
        )
        for e in exc.errors()
    ])


class ErrorBoundaryMiddleware:
    """Last-resort catch-all: unclassified errors become a generic 500, never re-raised."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                logger.error(
                    f"Unhandled exception after response started on {scope['path']}: {exc}",
                    exc_info=exc,
                    extra={"event_name": "server.error", "path": scope["path"]},
                )
                return
            response = render_error(exc, scope["path"])
            await response(scope, receive, send)
