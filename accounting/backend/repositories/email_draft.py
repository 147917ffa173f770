"""
Email Draft Repository.
"""

from sqlalchemy import select

from accounting.backend.models.email_draft import EmailDraft
from accounting.backend.repositories.base import BaseRepository


class EmailDraftRepository(BaseRepository[EmailDraft]):
    model = EmailDraft
    entity_name = "Draft"

    async def list_for_company(self, company_id: str, user_id: str | None = None) -> list[EmailDraft]:
        """Newest edit first. `user_id` narrows the list to one author."""
        stmt = select(EmailDraft).where(EmailDraft.company_id == company_id)
        if user_id:
            stmt = stmt.where(EmailDraft.user_id == user_id)
        result = await self.session.execute(stmt.order_by(EmailDraft.updated_at.desc()))
        return list(result.scalars().all())
