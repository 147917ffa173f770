"""
Exception Handlers.

Every failure leaves the API in the ErrorResponse envelope:

    ApplicationError        status from STATUS_BY_EXCEPTION, own code and details
    RequestValidationError  422 VAL_REQUEST_INVALID with one entry per field
    HTTPException           framework errors (unknown route, missing bearer)
    Exception               500 SYS_INTERNAL_ERROR

With features.api_detailed_errors on, the 500 body also names the
exception. Startup refuses that flag in production.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from accounting.backend.core.config import get_app_config
from accounting.backend.core.exceptions import (
    ApplicationError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DatabaseError,
    ExternalServiceError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from accounting.backend.core.logging import get_logger
from accounting.backend.schemas.base import ErrorDetail, ErrorResponse, ResponseMetadata

logger = get_logger(__name__)

STATUS_BY_EXCEPTION: dict[type[ApplicationError], int] = {
    ValidationError: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    RateLimitError: 429,
    ExternalServiceError: 502,
    DatabaseError: 503,
}

CODE_BY_HTTP_STATUS: dict[int, str] = {
    401: "AUTH_UNAUTHORIZED",
    403: "AUTHZ_FORBIDDEN",
    404: "RES_NOT_FOUND",
    405: "REQ_METHOD_NOT_ALLOWED",
}


def status_for(exc: ApplicationError) -> int:
    """Nearest mapped class in the MRO wins; unmapped errors are 500."""
    return next(
        (STATUS_BY_EXCEPTION[cls] for cls in type(exc).__mro__ if cls in STATUS_BY_EXCEPTION),
        500,
    )


def _get_request_id(request: Request) -> str | None:
    request_id = getattr(request.state, "request_id", None)
    return request_id or request.headers.get("x-request-id")


def _envelope(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorDetail(code=code, message=message, details=details or None),
        metadata=ResponseMetadata(request_id=_get_request_id(request)),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


def _request_context(request: Request) -> dict[str, str]:
    return {"path": request.url.path, "method": request.method}


def _field_path(location: tuple | list) -> str:
    return ".".join(str(part) for part in location)


async def application_error_handler(request: Request, exc: ApplicationError) -> JSONResponse:
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Server error" if status_code >= 500 else "Client error",
        extra={"code": exc.code, "message": exc.message, "status": status_code, **_request_context(request)},
    )
    # RFC 6750: 401 responses advertise the expected scheme
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return _envelope(request, status_code, exc.code, exc.message, exc.details, headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": _field_path(error.get("loc", ())),
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Request validation failed",
        extra={"error_count": len(errors), "fields": [e["field"] for e in errors], **_request_context(request)},
    )
    return _envelope(
        request, 422, "VAL_REQUEST_INVALID", "Request validation failed", {"validation_errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    return _envelope(
        request,
        exc.status_code,
        CODE_BY_HTTP_STATUS.get(exc.status_code, f"HTTP_{exc.status_code}"),
        detail if isinstance(detail, str) else "Request failed",
        detail if isinstance(detail, dict) else None,
        exc.headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled exception",
        extra={"exception_type": type(exc).__name__, **_request_context(request)},
    )
    details = None
    if get_app_config().features.api_detailed_errors:
        details = {"exception_type": type(exc).__name__, "exception_message": str(exc)}
    return _envelope(request, 500, "SYS_INTERNAL_ERROR", "An unexpected error occurred", details)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApplicationError, application_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    logger.debug("Exception handlers registered")
