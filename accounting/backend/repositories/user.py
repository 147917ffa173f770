"""
User and Company Repositories.
"""

from sqlalchemy import func, or_, select

from accounting.backend.core.utils import escape_like
from accounting.backend.models.enums import UserRole
from accounting.backend.models.user import Company, User
from accounting.backend.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    model = User
    entity_name = "User"

    async def get_by_email(self, email: str) -> User | None:
        """Case-insensitive lookup."""
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def email_taken(self, email: str, exclude_id: str | None = None) -> bool:
        stmt = select(User.id).where(func.lower(User.email) == email.strip().lower())
        if exclude_id:
            stmt = stmt.where(User.id != exclude_id)
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def list_filtered(
        self,
        role: UserRole | None = None,
        company_id: str | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[User], int]:
        stmt = select(User)
        if role:
            stmt = stmt.where(User.role == role)
        if company_id:
            stmt = stmt.where(User.company_id == company_id)
        if search:
            pattern = f"%{escape_like(search)}%"
            stmt = stmt.where(
                or_(
                    User.email.ilike(pattern, escape="\\"),
                    User.first_name.ilike(pattern, escape="\\"),
                    User.last_name.ilike(pattern, escape="\\"),
                )
            )
        stmt = stmt.order_by(User.created_at.desc())
        return await self._paginate(stmt, limit, offset)

    async def list_company_users(
        self,
        company_id: str,
        role: UserRole | None = None,
        active_only: bool = True,
    ) -> list[User]:
        stmt = select(User).where(User.company_id == company_id)
        if role:
            stmt = stmt.where(User.role == role)
        if active_only:
            stmt = stmt.where(User.is_active.is_(True))
        result = await self.session.execute(stmt.order_by(User.last_name, User.first_name))
        return list(result.scalars().all())

    async def get_company_user(
        self,
        user_id: str,
        company_id: str,
        role: UserRole | None = None,
    ) -> User | None:
        stmt = select(User).where(User.id == user_id, User.company_id == company_id)
        if role:
            stmt = stmt.where(User.role == role)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_company_employee_ids(self, company_id: str) -> list[str]:
        result = await self.session.execute(
            select(User.id).where(
                User.company_id == company_id,
                User.role == UserRole.EMPLOYEE,
            )
        )
        return list(result.scalars().all())

    async def emails_by_ids(self, ids: list[str]) -> dict[str, str]:
        """Active users only."""
        if not ids:
            return {}
        result = await self.session.execute(
            select(User.id, User.email).where(User.id.in_(ids), User.is_active.is_(True))
        )
        return dict(result.tuples().all())


class CompanyRepository(BaseRepository[Company]):
    model = Company
    entity_name = "Company"

    async def get_system_company(self) -> Company | None:
        result = await self.session.execute(
            select(Company).where(Company.is_system_company.is_(True))
        )
        return result.scalars().first()

    async def list_active(self, include_system: bool = False) -> list[Company]:
        stmt = select(Company).where(Company.is_active.is_(True))
        if not include_system:
            stmt = stmt.where(Company.is_system_company.is_(False))
        result = await self.session.execute(stmt.order_by(Company.name))
        return list(result.scalars().all())
