"""
Admin Service.

User and company management for ADMIN users.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import ConflictError, NotFoundError, ValidationError
from accounting.backend.core.security import enforce_password_policy, hash_password
from accounting.backend.core.utils import normalize_email
from accounting.backend.models.enums import UserRole
from accounting.backend.models.user import Company, User
from accounting.backend.repositories.user import CompanyRepository, UserRepository
from accounting.backend.schemas.admin import CompanyCreate, CompanyUpdate, UserCreate, UserUpdate
from accounting.backend.services.auth import AuthService
from accounting.backend.services.base import BaseService
from accounting.backend.services.tenant import TenantService


class AdminService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.users = UserRepository(session)
        self.companies = CompanyRepository(session)
        self.tenant = TenantService(session)
        self._auth = AuthService(session)

    # Users

    async def list_users(
        self,
        role: UserRole | None = None,
        company_id: str | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[User], int]:
        return await self.users.list_filtered(role, company_id, search, limit, offset)

    async def get_user(self, user_id: str) -> User:
        return await self.users.get_by_id(user_id)

    async def create_user(self, data: UserCreate) -> User:
        """
        Create a user of any role.

        Raises:
            ConflictError: If the email is already registered
            ValidationError: If the password is too short, or an owner/employee has no company_id
            NotFoundError: If the company does not exist
        """
        enforce_password_policy(data.password)
        email = normalize_email(data.email)
        if await self.users.email_taken(email):
            raise ConflictError("User with this email already exists", details={"email": email})

        company_id = await self._auth.resolve_company_id(data.role, data.company_id)
        user = await self._execute_db_operation(
            "create user",
            self.users.create(
                email=email,
                password=hash_password(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                role=data.role,
                company_id=company_id,
            ),
        )
        self._log_operation("User created", user_id=user.id, role=user.role.value)
        return user

    async def update_user(self, user_id: str, data: UserUpdate) -> User:
        user = await self.users.get_by_id(user_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("email") is not None:
            changes["email"] = normalize_email(changes["email"])
            if await self.users.email_taken(changes["email"], exclude_id=user.id):
                raise ConflictError("User with this email already exists")
        if changes.get("password"):
            enforce_password_policy(changes["password"])
            changes["password"] = hash_password(changes["password"])

        role = changes.get("role") or user.role
        if role == UserRole.ADMIN:
            changes["company_id"] = (await self.tenant.get_system_company()).id
        elif changes.get("company_id"):
            await self.companies.get_by_id(changes["company_id"])

        changes = {key: value for key, value in changes.items() if value is not None or key == "company_id"}
        if not changes:
            return user

        self._log_operation("Updating user", user_id=user.id, fields=sorted(changes))
        return await self._execute_db_operation(
            "update user", self.users.update_instance(user, **changes),
        )

    async def set_user_active(self, user_id: str, is_active: bool) -> User:
        user = await self.users.get_by_id(user_id)
        self._log_operation("User activation changed", user_id=user.id, is_active=is_active)
        return await self.users.update_instance(user, is_active=is_active)

    async def delete_user(self, user_id: str) -> None:
        await self.set_user_active(user_id, False)

    # Companies

    async def list_companies(self) -> list[Company]:
        return await self.companies.list_active(include_system=False)

    async def get_company(self, company_id: str) -> Company:
        return await self.companies.get_by_id(company_id)

    async def create_company(self, data: CompanyCreate) -> Company:
        """
        Create a company and attach its owner to it.

        Raises:
            NotFoundError: If the owner does not exist
            ValidationError: If the owner is not a COMPANY_OWNER
        """
        owner = await self.users.get_by_id_or_none(data.owner_id)
        if owner is None:
            raise NotFoundError("Owner not found", details={"id": data.owner_id})
        if owner.role != UserRole.COMPANY_OWNER:
            raise ValidationError("Owner must have the COMPANY_OWNER role")

        company = await self._execute_db_operation(
            "create company",
            self.companies.create(
                name=data.name,
                nip=data.nip,
                description=data.description,
                owner_id=owner.id,
            ),
        )
        await self.users.update_instance(owner, company_id=company.id)
        self._log_operation("Company created", company_id=company.id, owner_id=owner.id)
        return company

    async def update_company(self, company_id: str, data: CompanyUpdate) -> Company:
        company = await self.companies.get_by_id(company_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return company
        return await self._execute_db_operation(
            "update company", self.companies.update_instance(company, **changes),
        )

    async def delete_company(self, company_id: str) -> None:
        """
        Raises:
            ValidationError: If the system company is targeted
        """
        company = await self.companies.get_by_id(company_id)
        if company.is_system_company:
            raise ValidationError("The system company cannot be deleted")
        await self.companies.update_instance(company, is_active=False)
        self._log_operation("Company deactivated", company_id=company.id)

    async def get_company_employees(self, company_id: str) -> list[User]:
        await self.companies.get_by_id(company_id)
        return await self.users.list_company_users(company_id, role=UserRole.EMPLOYEE)
