"""
API Version 1 Router.

Aggregates all v1 endpoint routers. Optional integrations are only
mounted when their feature flag is on.
"""

from fastapi import APIRouter

from accounting.backend.api.v1.endpoints import (
    admin,
    ai,
    auth,
    clients,
    company,
    email,
    leads,
    modules,
    notifications,
    offers,
    tasks,
    time_tracking,
)
from accounting.backend.core.config import get_app_config


def build_router() -> APIRouter:
    """Assemble the v1 router from the current feature flags."""
    features = get_app_config().features
    router = APIRouter()

    router.include_router(auth.router, prefix="/auth", tags=["auth"])
    router.include_router(admin.router, prefix="/admin", tags=["admin"])
    router.include_router(company.router, prefix="/company", tags=["company"])
    router.include_router(modules.router, prefix="/modules", tags=["modules"])
    router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])

    # Feature modules
    router.include_router(clients.router, prefix="/clients", tags=["clients"])
    router.include_router(leads.router, prefix="/leads", tags=["leads"])
    router.include_router(offers.router, prefix="/offers", tags=["offers"])
    router.include_router(time_tracking.router, prefix="/time-tracking", tags=["time-tracking"])
    router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])

    if features.email_client_enabled:
        router.include_router(email.router, prefix="/email", tags=["email"])
    if features.ai_agent_enabled:
        router.include_router(ai.router, prefix="/ai", tags=["ai"])

    return router
