"""
HTTP Middleware.

RequestContextMiddleware gives every request an id, a frontend label and a
timing header, and binds them to structlog for the duration of the
request. SecurityHeadersMiddleware adds the headers from security.yaml.
"""

import re
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from accounting.backend.core.config_schema import SecurityHeadersSchema
from accounting.backend.core.logging import get_logger

logger = get_logger(__name__)

KNOWN_FRONTENDS = frozenset({"web", "cli", "api", "internal"})

# Caller-supplied ids end up in logs and response headers
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _request_id_from(request: Request) -> str:
    supplied = request.headers.get("X-Request-ID", "")
    if _REQUEST_ID_PATTERN.match(supplied):
        return supplied
    return str(uuid.uuid4())


def _frontend_from(request: Request) -> str:
    frontend = request.headers.get("X-Frontend-ID", "").strip().lower()
    return frontend if frontend in KNOWN_FRONTENDS else "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Request id (X-Request-ID, generated when absent or malformed), frontend
    (X-Frontend-ID) and X-Response-Time. Endpoints read the first two from
    request.state.
    """

    def __init__(self, app, log_requests: bool = False) -> None:
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id_from(request)
        frontend = _frontend_from(request)
        request.state.request_id = request_id
        request.state.frontend = frontend

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            frontend=frontend,
            method=request.method,
            path=request.url.path,
            source="web" if frontend == "web" else "api",
        )
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "Request failed with exception",
                extra={"duration_ms": self._elapsed_ms(started), "error_type": type(exc).__name__},
            )
            raise
        else:
            duration_ms = self._elapsed_ms(started)
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms}ms"
            (logger.info if self.log_requests else logger.debug)(
                "Request completed",
                extra={"status_code": response.status_code, "duration_ms": duration_ms},
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Headers from security.yaml; an endpoint's own value for a header wins."""

    def __init__(self, app, headers: SecurityHeadersSchema) -> None:
        super().__init__(app)
        self.headers = {
            "X-Content-Type-Options": headers.x_content_type_options,
            "X-Frame-Options": headers.x_frame_options,
            "Referrer-Policy": headers.referrer_policy,
        }
        if headers.hsts_enabled:
            self.headers["Strict-Transport-Security"] = f"max-age={headers.hsts_max_age}; includeSubDomains"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
