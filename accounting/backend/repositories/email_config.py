"""
Email Configuration Repository.
"""

from sqlalchemy import select

from accounting.backend.models.email_config import EmailConfiguration
from accounting.backend.repositories.base import BaseRepository


class EmailConfigurationRepository(BaseRepository[EmailConfiguration]):
    model = EmailConfiguration
    entity_name = "Email configuration"

    async def get_for_user(self, user_id: str) -> EmailConfiguration | None:
        result = await self.session.execute(
            select(EmailConfiguration).where(EmailConfiguration.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_for_company(self, company_id: str) -> EmailConfiguration | None:
        result = await self.session.execute(
            select(EmailConfiguration).where(EmailConfiguration.company_id == company_id)
        )
        return result.scalar_one_or_none()
