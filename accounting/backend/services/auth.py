"""
Auth Service.

Registration, login, token refresh and password changes.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ValidationError,
)
from accounting.backend.core.security import (
    TOKEN_TYPE_REFRESH,
    create_access_token,
    create_refresh_token,
    decode_token,
    dummy_password_hash,
    enforce_password_policy,
    hash_password,
    verify_password,
)
from accounting.backend.core.utils import normalize_email
from accounting.backend.models.enums import UserRole
from accounting.backend.models.user import User
from accounting.backend.repositories.user import CompanyRepository, UserRepository
from accounting.backend.schemas.auth import ChangePasswordRequest, RegisterRequest
from accounting.backend.services.base import BaseService
from accounting.backend.services.tenant import TenantService

INVALID_CREDENTIALS = "Invalid credentials"


def token_payload(user: User) -> dict[str, str | None]:
    return {
        "sub": user.id,
        "email": user.email,
        "role": user.role.value,
        "company_id": user.company_id,
    }


class AuthService(BaseService):
    """Authenticates users and issues access/refresh token pairs."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = UserRepository(session)
        self.companies = CompanyRepository(session)
        self.tenant = TenantService(session)

    @staticmethod
    def issue_tokens(user: User) -> dict[str, str]:
        payload = token_payload(user)
        return {
            "access_token": create_access_token(payload),
            "refresh_token": create_refresh_token(payload),
        }

    async def resolve_company_id(self, role: UserRole, company_id: str | None) -> str:
        """
        Company a new user of the given role is attached to.

        Raises:
            ValidationError: If an owner/employee has no company_id
            NotFoundError: If the company (or the system company) is missing
        """
        if role == UserRole.ADMIN:
            return (await self.tenant.get_system_company()).id
        if not company_id:
            raise ValidationError(
                "company_id is required for this role",
                details={"role": role.value},
            )
        company = await self.companies.get_by_id(company_id)
        return company.id

    async def register(self, data: RegisterRequest) -> tuple[User, dict[str, str]]:
        """
        Register a new account.

        Returns:
            The created user and its token pair

        Raises:
            ConflictError: If the email is already registered
        """
        enforce_password_policy(data.password)
        email = normalize_email(data.email)
        if await self.repo.email_taken(email):
            raise ConflictError("User with this email already exists", details={"email": email})

        company_id = await self.resolve_company_id(data.role, data.company_id)

        user = await self._execute_db_operation(
            "register user",
            self.repo.create(
                email=email,
                password=hash_password(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                role=data.role,
                company_id=company_id,
            ),
        )
        self._log_operation("User registered", user_id=user.id, role=user.role.value)
        return user, self.issue_tokens(user)

    async def login(self, email: str, password: str) -> tuple[User, dict[str, str]]:
        """
        Raises:
            AuthenticationError: Unknown email, wrong password or inactive account
        """
        user = await self.repo.get_by_email(normalize_email(email))
        if user is None:
            verify_password(password, dummy_password_hash())
            self._log_debug("Login failed: unknown email")
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not verify_password(password, user.password):
            self._log_operation("Login failed: wrong password", user_id=user.id)
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not user.is_active:
            raise AuthenticationError("User account is inactive")

        self._log_operation("User logged in", user_id=user.id)
        return user, self.issue_tokens(user)

    async def refresh(self, refresh_token: str) -> dict[str, str]:
        payload = decode_token(refresh_token, token_type=TOKEN_TYPE_REFRESH)
        user = await self.repo.get_by_id_or_none(payload.get("sub", ""))
        if user is None or not user.is_active:
            raise AuthenticationError("Invalid refresh token")
        return self.issue_tokens(user)

    async def change_password(self, user: User, data: ChangePasswordRequest) -> None:
        """
        Raises:
            ValidationError: Wrong current password, or the new one is the same
                or too short
        """
        if not verify_password(data.current_password, user.password):
            raise ValidationError("Current password is incorrect")
        if data.current_password == data.new_password:
            raise ValidationError("New password must differ from the current password")
        enforce_password_policy(data.new_password)

        await self.repo.update_instance(user, password=hash_password(data.new_password))
        self._log_operation("Password changed", user_id=user.id)
