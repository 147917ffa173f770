"""
Custom Exceptions.

Services raise these; exception_handlers.STATUS_BY_EXCEPTION turns them
into HTTP statuses. A subclass gets the status of its nearest mapped
ancestor, so InvalidStatusTransitionError is a 400 and
ModuleAccessDeniedError a 403.

Each class carries its machine-readable `code` and a default message:

    raise NotFoundError("Client not found")
    raise ConflictError("Slug already taken", details={"slug": slug})
"""

from typing import Any


class ApplicationError(Exception):
    code = "SYS_INTERNAL_ERROR"
    default_message = "Internal error"

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(ApplicationError):
    code = "RES_NOT_FOUND"
    default_message = "Resource not found"

    def __init__(self, message: str | None = None, details: dict | None = None) -> None:
        super().__init__(message, details=details)


class ValidationError(ApplicationError):
    """A business rule rejected otherwise well-formed input."""

    code = "VAL_VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, details: dict | None = None) -> None:
        super().__init__(message, details=details)


class InvalidStatusTransitionError(ValidationError):
    code = "VAL_INVALID_STATUS_TRANSITION"

    def __init__(self, entity: str, current: str, target: str) -> None:
        super().__init__(
            f"Cannot change {entity} status from {current} to {target}",
            details={"current_status": current, "target_status": target},
        )


class AuthenticationError(ApplicationError):
    code = "AUTH_UNAUTHORIZED"
    default_message = "Authentication required"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message)


class AuthorizationError(ApplicationError):
    """Authenticated, but the role, company or module grant does not allow it."""

    code = "AUTHZ_FORBIDDEN"
    default_message = "Permission denied"

    def __init__(self, message: str | None = None, details: dict | None = None) -> None:
        super().__init__(message, details=details)


class ModuleAccessDeniedError(AuthorizationError):
    code = "AUTHZ_MODULE_DENIED"

    def __init__(self, module_slug: str, permission: str | None = None) -> None:
        if permission:
            message = f"Missing permission '{permission}' on module '{module_slug}'"
        else:
            message = f"Access to module '{module_slug}' denied"
        super().__init__(message, details={"module": module_slug, "permission": permission})


class ConflictError(ApplicationError):
    code = "RES_CONFLICT"
    default_message = "Resource conflict"

    def __init__(self, message: str | None = None, details: dict | None = None) -> None:
        super().__init__(message, details=details)


class ExternalServiceError(ApplicationError):
    """SMTP, IMAP or an AI provider failed; `service` names which."""

    code = "SYS_EXTERNAL_SERVICE_ERROR"
    default_message = "External service error"

    def __init__(self, message: str | None = None, service: str | None = None) -> None:
        super().__init__(message, details={"service": service} if service else None)


class RateLimitError(ApplicationError):
    code = "RATE_LIMITED"
    default_message = "Rate limit exceeded"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message)


class DatabaseError(ApplicationError):
    code = "SYS_DATABASE_ERROR"
    default_message = "Database error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message)
