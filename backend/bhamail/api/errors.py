"""Mapping from application errors to HTTP responses.

Services raise ``AppError`` subclasses and never see status codes; this
module owns the translation. Lookups walk the exception's MRO, so the most
specific class listed in ``ERROR_STATUS_CODES`` wins.

Response bodies:
    4xx: {"error": <message>}
    5xx: {"error": "Internal server error"} (details are only logged)
    request validation: 400 {"error": "Validation failed", "details": [...]}
"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bhamail.core.exceptions import (
    AppError,
    AuthError,
    BadRequestError,
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    InvalidTokenError,
    NotFoundError,
    ServerError,
    StorageUnavailableError,
    ValidationError,
)
from bhamail.core.logging import get_logger
from bhamail.schemas.base import ErrorResponse

logger = get_logger(__name__)

GENERIC_SERVER_ERROR = "Internal server error"

# OpenAPI documentation of the error body, shared by every router
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}

ERROR_STATUS_CODES: dict[type[AppError], int] = {
    BadRequestError: status.HTTP_400_BAD_REQUEST,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthError: status.HTTP_401_UNAUTHORIZED,
    InvalidTokenError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    ServerError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    StorageUnavailableError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(exc: AppError) -> int:
    """Return the HTTP status for ``exc``; unmapped errors are 500."""
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    status_code = status_code_for(exc)

    if status_code >= 500:
        logger.error(
            "Request failed with server error",
            extra={
                "context": {
                    "action": "handle_request",
                    "path": request.url.path,
                    "error_type": type(exc).__name__,
                    "error": exc.message,
                    "status": "failed",
                }
            },
        )
        return JSONResponse(status_code=status_code, content={"error": GENERIC_SERVER_ERROR})

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code, content={"error": exc.message}, headers=headers
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report which fields failed without echoing the submitted values."""
    details = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        details.append(
            {"field": ".".join(location) or "body", "message": error.get("msg", "Invalid value")}
        )

    logger.info(
        "Request validation failed",
        extra={
            "context": {
                "action": "validate_request",
                "path": request.url.path,
                "fields": [d["field"] for d in details],
                "status": "rejected",
            }
        },
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation failed", "details": details},
    )


async def http_error_handler(
    request: Request,  # noqa: ARG001 - Required by FastAPI handler interface
    exc: StarletteHTTPException,
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={
            "context": {
                "action": "handle_request",
                "path": request.url.path,
                "error_type": type(exc).__name__,
                "status": "failed",
            }
        },
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": GENERIC_SERVER_ERROR},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


__all__ = [
    "ERROR_RESPONSES",
    "ERROR_STATUS_CODES",
    "register_exception_handlers",
    "status_code_for",
]
