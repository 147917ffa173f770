"""
Company Service.

A COMPANY_OWNER's view of their own company and its employees.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import ConflictError, NotFoundError
from accounting.backend.core.security import enforce_password_policy, hash_password
from accounting.backend.core.utils import normalize_email
from accounting.backend.models.enums import UserRole
from accounting.backend.models.user import Company, User
from accounting.backend.repositories.user import CompanyRepository, UserRepository
from accounting.backend.schemas.company import EmployeeCreate, EmployeeUpdate
from accounting.backend.services.base import BaseService


class CompanyService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.companies = CompanyRepository(session)
        self.users = UserRepository(session)

    def _company_id(self, owner: User) -> str:
        if not owner.company_id:
            raise NotFoundError("User is not assigned to a company")
        return owner.company_id

    async def get_company(self, owner: User) -> Company:
        return await self.companies.get_by_id(self._company_id(owner))

    async def list_employees(self, owner: User) -> list[User]:
        return await self.users.list_company_users(
            self._company_id(owner), role=UserRole.EMPLOYEE,
        )

    async def get_employee(self, owner: User, employee_id: str) -> User:
        """
        Raises:
            NotFoundError: If the employee is not in the owner's company
        """
        employee = await self.users.get_company_user(
            employee_id, self._company_id(owner), role=UserRole.EMPLOYEE,
        )
        if employee is None:
            raise NotFoundError("Employee not found", details={"id": employee_id})
        return employee

    async def create_employee(self, owner: User, data: EmployeeCreate) -> User:
        enforce_password_policy(data.password)
        email = normalize_email(data.email)
        if await self.users.email_taken(email):
            raise ConflictError("User with this email already exists", details={"email": email})

        employee = await self._execute_db_operation(
            "create employee",
            self.users.create(
                email=email,
                password=hash_password(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                role=UserRole.EMPLOYEE,
                company_id=self._company_id(owner),
            ),
        )
        self._log_operation("Employee created", employee_id=employee.id, company_id=employee.company_id)
        return employee

    async def update_employee(self, owner: User, employee_id: str, data: EmployeeUpdate) -> User:
        employee = await self.get_employee(owner, employee_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
            if await self.users.email_taken(changes["email"], exclude_id=employee.id):
                raise ConflictError("User with this email already exists")
        if not changes:
            return employee

        return await self._execute_db_operation(
            "update employee", self.users.update_instance(employee, **changes),
        )

    async def delete_employee(self, owner: User, employee_id: str) -> None:
        employee = await self.get_employee(owner, employee_id)
        await self.users.update_instance(employee, is_active=False)
        self._log_operation("Employee deactivated", employee_id=employee.id)
