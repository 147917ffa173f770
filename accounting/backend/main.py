"""
FastAPI Application Entry Point.

    uvicorn accounting.backend.main:app

The app is built lazily (see get_app) so importing this module does not
read config/.env.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from accounting.backend.api import health
from accounting.backend.api.v1 import build_router
from accounting.backend.core.concurrency import shutdown_pools
from accounting.backend.core.config import AppConfig, get_app_config
from accounting.backend.core.database import dispose_engine, session_scope
from accounting.backend.core.exception_handlers import register_exception_handlers
from accounting.backend.core.logging import get_logger, setup_logging
from accounting.backend.core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from accounting.backend.gateway.security.startup_checks import run_startup_checks
from accounting.backend.services.module_discovery import get_module_discovery

logger = get_logger(__name__)

OPENAPI_TAGS = [
    {"name": "auth", "description": "Registration, login and token refresh"},
    {"name": "admin", "description": "Users and companies across tenants (ADMIN)"},
    {"name": "company", "description": "Employees of the caller's company (COMPANY_OWNER)"},
    {"name": "modules", "description": "Module registry, company access and employee grants"},
    {"name": "clients", "description": "Client records, custom fields, icons and changelog"},
    {"name": "leads", "description": "Sales leads and conversion to clients"},
    {"name": "offers", "description": "Numbered offers and their status workflow"},
    {"name": "time-tracking", "description": "Time entries, timers, approval and timesheets"},
    {"name": "tasks", "description": "Tasks, subtasks, kanban and labels"},
    {"name": "notifications", "description": "In-app notification feed"},
    {"name": "email", "description": "SMTP/IMAP mailbox per company or user"},
    {"name": "ai", "description": "AI provider configuration and conversations"},
    {"name": "health", "description": "Liveness and readiness checks"},
]

_app: FastAPI | None = None


async def sync_modules_on_startup() -> None:
    async with session_scope() as session:
        result = await get_module_discovery().sync_with_database(session)
    logger.info("Module manifests synced", extra={"created": result.created, "updated": result.updated})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    app_config = get_app_config()
    setup_logging()
    run_startup_checks()

    if app_config.modules.discovery.sync_on_startup:
        await sync_modules_on_startup()

    features = app_config.features
    logger.info(
        "Application starting",
        extra={
            "app_name": app_config.application.name,
            "env": app_config.application.environment,
            "ai_agent": features.ai_agent_enabled,
            "email_client": features.email_client_enabled,
            "notifications": features.notifications_enabled,
        },
    )
    yield

    logger.info("Application shutting down")
    await shutdown_pools()
    await dispose_engine()


def _add_middleware(app: FastAPI, app_config: AppConfig) -> None:
    # Starlette runs the last added middleware first: CORS, then request context, then headers
    if app_config.features.security_headers_enabled:
        app.add_middleware(SecurityHeadersMiddleware, headers=app_config.security.headers)
    app.add_middleware(RequestContextMiddleware, log_requests=app_config.features.api_request_logging)

    origins = app_config.application.cors.origins
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID", "X-Response-Time"],
        )


def create_app() -> FastAPI:
    app_config = get_app_config()
    application = app_config.application
    docs_enabled = application.docs_enabled or application.debug

    app = FastAPI(
        title=application.name,
        description=application.description,
        version=application.version,
        openapi_tags=OPENAPI_TAGS,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        lifespan=lifespan,
    )
    _add_middleware(app, app_config)
    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(build_router(), prefix=application.api_prefix)
    return app


def get_app() -> FastAPI:
    """Build the application on first call and reuse it afterwards."""
    global _app
    if _app is None:
        _app = create_app()
    return _app


def __getattr__(name: str) -> FastAPI:
    # Module-level `app` for uvicorn, resolved lazily
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
