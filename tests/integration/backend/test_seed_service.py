"""
Integration Tests for the Seed Service.

Runs against the per-test SQLite database.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.security import verify_password
from accounting.backend.models.enums import UserRole
from accounting.backend.models.user import Company, User
from accounting.backend.services.seed import SYSTEM_COMPANY_NAME, SeedService


class TestSeedService:
    async def test_creates_system_company_once(self, db_session: AsyncSession):
        service = SeedService(db_session)

        first = await service.ensure_system_company()
        second = await service.ensure_system_company()

        assert first.id == second.id
        assert first.name == SYSTEM_COMPANY_NAME
        assert first.is_system_company is True
        count = await db_session.scalar(select(func.count()).select_from(Company))
        assert count == 1

    async def test_creates_admin_in_system_company(self, db_session: AsyncSession):
        service = SeedService(db_session)

        admin, created = await service.ensure_admin("Admin@Biuro.pl", "Start123!")

        assert created is True
        assert admin.email == "admin@biuro.pl"
        assert admin.role == UserRole.ADMIN
        assert verify_password("Start123!", admin.password)
        system = await service.ensure_system_company()
        assert admin.company_id == system.id

    async def test_existing_admin_is_kept(self, db_session: AsyncSession):
        service = SeedService(db_session)
        original, _ = await service.ensure_admin("admin@biuro.pl", "Start123!")

        again, created = await service.ensure_admin("admin@biuro.pl", "Other456!")

        assert created is False
        assert again.id == original.id
        assert verify_password("Start123!", again.password)
        count = await db_session.scalar(select(func.count()).select_from(User))
        assert count == 1
