"""
Seed Service.

Creates the records a fresh database needs before anyone can log in: the
system company that ADMIN users belong to and the first administrator.
Running it again is a no-op for records that already exist.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.security import hash_password
from accounting.backend.core.utils import normalize_email
from accounting.backend.models.enums import UserRole
from accounting.backend.models.user import Company, User
from accounting.backend.repositories.user import CompanyRepository, UserRepository
from accounting.backend.services.base import BaseService

SYSTEM_COMPANY_NAME = "System Administration"


class SeedService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.companies = CompanyRepository(session)
        self.users = UserRepository(session)

    async def ensure_system_company(self) -> Company:
        company = await self.companies.get_system_company()
        if company is not None:
            return company
        company = await self._execute_db_operation(
            "create system company",
            self.companies.create(name=SYSTEM_COMPANY_NAME, is_system_company=True),
        )
        self._log_operation("System company created", company_id=company.id)
        return company

    async def ensure_admin(
        self,
        email: str,
        password: str,
        first_name: str = "System",
        last_name: str = "Admin",
    ) -> tuple[User, bool]:
        """Return the admin with this e-mail and whether it was just created."""
        company = await self.ensure_system_company()
        existing = await self.users.get_by_email(normalize_email(email))
        if existing is not None:
            return existing, False

        admin = await self._execute_db_operation(
            "create admin",
            self.users.create(
                email=normalize_email(email),
                password=hash_password(password),
                first_name=first_name,
                last_name=last_name,
                role=UserRole.ADMIN,
                company_id=company.id,
            ),
        )
        self._log_operation("Admin user created", user_id=admin.id)
        return admin, True
