"""
FastAPI Dependencies.

Shared dependencies for request handling: database session, request id,
the authenticated user and the role/module guards.
"""

import uuid
from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.database import get_db_session
from accounting.backend.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ModuleAccessDeniedError,
)
from accounting.backend.core.logging import bind_user_context, get_logger
from accounting.backend.core.security import decode_token
from accounting.backend.models.enums import UserRole
from accounting.backend.models.user import User
from accounting.backend.repositories.user import UserRepository
from accounting.backend.services.rbac import RBACService

logger = get_logger(__name__)

# Type alias for database session dependency
DbSession = Annotated[AsyncSession, Depends(get_db_session)]

bearer_scheme = HTTPBearer(auto_error=False)


async def get_request_id(
    request: Request,
    x_request_id: str | None = Header(None),
) -> str:
    """
    Request ID for response metadata.

    Prefers the id assigned by RequestContextMiddleware so the envelope and
    the X-Request-ID header agree.
    """
    state_id = getattr(request.state, "request_id", None)
    return state_id or x_request_id or str(uuid.uuid4())


RequestId = Annotated[str, Depends(get_request_id)]


async def get_current_user(
    db: DbSession,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> User:
    """
    Resolve the bearer token to an active user.

    Raises:
        AuthenticationError: Missing/invalid token, unknown or inactive user
    """
    if credentials is None:
        raise AuthenticationError("Authentication required")

    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid or expired token")

    user = await UserRepository(db).get_by_id_or_none(user_id)
    if user is None:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User account is inactive")

    bind_user_context(user.id, user.role.value, user.company_id)
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: UserRole) -> Callable[..., Awaitable[User]]:
    """
    Dependency factory restricting an endpoint to the given roles.

    Usage:
        @router.get("/users", dependencies=[Depends(require_roles(UserRole.ADMIN))])
    """
    allowed = frozenset(roles)

    async def checker(user: CurrentUser) -> User:
        if user.role not in allowed:
            logger.warning(
                "Role denied",
                extra={"user_id": user.id, "role": user.role.value, "allowed": sorted(r.value for r in allowed)},
            )
            raise AuthorizationError("Insufficient role for this operation")
        return user

    return checker


def require_module(slug: str, permission: str | None = "read") -> Callable[..., Awaitable[User]]:
    """
    Dependency factory gating a feature router behind RBAC.

    Raises:
        ModuleAccessDeniedError: If the user cannot open the module or lacks
            the permission
    """

    async def checker(user: CurrentUser, db: DbSession) -> User:
        rbac = RBACService(db)
        if not await rbac.has_module_access(user, slug):
            raise ModuleAccessDeniedError(slug)
        if permission and not await rbac.has_permission(user, slug, permission):
            raise ModuleAccessDeniedError(slug, permission)
        return user

    return checker


AdminUser = Annotated[User, Depends(require_roles(UserRole.ADMIN))]
OwnerUser = Annotated[User, Depends(require_roles(UserRole.COMPANY_OWNER))]
ManagerUser = Annotated[User, Depends(require_roles(UserRole.ADMIN, UserRole.COMPANY_OWNER))]
