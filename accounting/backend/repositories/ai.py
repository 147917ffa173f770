"""
AI Agent Repositories.
"""

from sqlalchemy import select

from accounting.backend.models.ai import AIConfiguration, AIConversation, AIMessage
from accounting.backend.repositories.base import BaseRepository


class AIConfigurationRepository(BaseRepository[AIConfiguration]):
    model = AIConfiguration
    entity_name = "AI configuration"

    async def get_for_company(self, company_id: str) -> AIConfiguration | None:
        result = await self.session.execute(
            select(AIConfiguration).where(AIConfiguration.company_id == company_id)
        )
        return result.scalar_one_or_none()


class AIConversationRepository(BaseRepository[AIConversation]):
    model = AIConversation
    entity_name = "Conversation"

    async def list_for_user(
        self,
        user_id: str,
        company_id: str,
        limit: int,
        offset: int,
    ) -> tuple[list[AIConversation], int]:
        stmt = (
            select(AIConversation)
            .where(
                AIConversation.created_by_id == user_id,
                AIConversation.company_id == company_id,
            )
            .order_by(AIConversation.updated_at.desc())
        )
        return await self._paginate(stmt, limit, offset)


class AIMessageRepository(BaseRepository[AIMessage]):
    model = AIMessage

    async def list_for_conversation(self, conversation_id: str) -> list[AIMessage]:
        result = await self.session.execute(
            select(AIMessage)
            .where(AIMessage.conversation_id == conversation_id)
            .order_by(AIMessage.created_at, AIMessage.id)
        )
        return list(result.scalars().all())
