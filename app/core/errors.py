"""
Application errors and the FastAPI handlers that render them.

Every failure ends up as ``{"error": {"message": ..., "path": ...}}`` so the
pages and API clients can show one short notice without knowing the cause.
"""
from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationFailed(AppError):
    """Input rejected before anything was written."""

    status_code = status.HTTP_400_BAD_REQUEST


class PermissionDenied(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class StoreError(AppError):
    """The store rejected a read or write. The message is safe to show."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def _envelope(request: Request, message: str, details: Any = None) -> dict:
    body = {"message": message, "path": request.url.path}
    if details is not None:
        body["details"] = details
    return {"error": body}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log("app_error", error=type(exc).__name__, message=exc.message, path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content=_envelope(request, exc.message, exc.details))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning("http_error", status_code=exc.status_code, detail=exc.detail, path=request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(request, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def _serialize_validation_errors(errors: list) -> list:
    serialized = []
    for error in errors:
        item = {}
        for key, value in error.items():
            if key == "ctx" and isinstance(value, dict):
                item[key] = {k: str(v) if isinstance(v, Exception) else v for k, v in value.items()}
            elif isinstance(value, Exception):
                item[key] = str(value)
            else:
                item[key] = value
        serialized.append(item)
    return serialized


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = _serialize_validation_errors(exc.errors())
    logger.warning("request_invalid", path=request.url.path, errors=errors)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_envelope(request, "Validation error", errors),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, exception_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope(request, "Internal server error"),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
