"""
Tenant Service.

Resolves the company every feature query is scoped to.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import AuthorizationError, NotFoundError
from accounting.backend.models.enums import UserRole
from accounting.backend.models.user import Company, User
from accounting.backend.repositories.user import CompanyRepository
from accounting.backend.services.base import BaseService


class TenantService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.companies = CompanyRepository(session)

    async def get_system_company(self) -> Company:
        """
        Raises:
            NotFoundError: If the system company has not been seeded
        """
        company = await self.companies.get_system_company()
        if company is None:
            raise NotFoundError("System company not found")
        return company

    async def get_effective_company_id(self, user: User) -> str:
        """
        Company id used to scope the user's data.

        ADMIN users act on behalf of the system company; everybody else
        acts within their own company.

        Raises:
            NotFoundError: If an admin asks and no system company exists
            AuthorizationError: If a non-admin user has no company
        """
        if user.role == UserRole.ADMIN:
            return (await self.get_system_company()).id
        if not user.company_id:
            raise AuthorizationError("User is not assigned to a company")
        return user.company_id
