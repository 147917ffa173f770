"""
AI Agent Service.

One provider configuration shared by the whole platform (kept under the
system company) and per-user chat conversations that call it.
"""

from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from accounting.backend.core.exceptions import (
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from accounting.backend.core.security import decrypt_secret, encrypt_secret
from accounting.backend.gateway.adapters.base import ChatMessage, ChatProvider
from accounting.backend.gateway.adapters.openai_compatible import OpenAICompatibleProvider
from accounting.backend.models.ai import AIConfiguration, AIConversation, AIMessage
from accounting.backend.models.enums import MessageRole, UserRole
from accounting.backend.models.user import User
from accounting.backend.repositories.ai import (
    AIConfigurationRepository,
    AIConversationRepository,
    AIMessageRepository,
)
from accounting.backend.schemas.ai import (
    AIConfigurationCreate,
    AIConfigurationResponse,
    AIConfigurationUpdate,
)
from accounting.backend.services.base import BaseService
from accounting.backend.services.tenant import TenantService

ProviderFactory = Callable[[str, str], ChatProvider]

DEFAULT_CONVERSATION_TITLE = "New Conversation"
DEFAULT_SYSTEM_PROMPT = (
    "You are an assistant for an accounting office. Answer concisely and "
    "say so when a question needs a qualified accountant."
)


def configuration_response(config: AIConfiguration) -> AIConfigurationResponse:
    return AIConfigurationResponse(
        id=config.id,
        provider=config.provider,
        model=config.model,
        system_prompt=config.system_prompt,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        has_api_key=bool(config.api_key),
        created_at=config.created_at,
        updated_at=config.updated_at,
    )


class AIConfigurationService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = AIConfigurationRepository(session)
        self.tenant = TenantService(session)

    @staticmethod
    def _require_admin(user: User) -> None:
        if user.role != UserRole.ADMIN:
            raise AuthorizationError("Only administrators can change the AI configuration")

    async def get_configuration_or_none(self) -> AIConfiguration | None:
        system_company = await self.tenant.get_system_company()
        return await self.repo.get_for_company(system_company.id)

    async def get_configuration(self) -> AIConfiguration:
        config = await self.get_configuration_or_none()
        if config is None:
            raise NotFoundError("AI configuration not found")
        return config

    async def create_configuration(self, user: User, data: AIConfigurationCreate) -> AIConfiguration:
        self._require_admin(user)
        if await self.get_configuration_or_none() is not None:
            raise ConflictError("AI configuration already exists")

        values = data.model_dump()
        if values["api_key"]:
            values["api_key"] = encrypt_secret(values["api_key"])
        system_company = await self.tenant.get_system_company()
        config = await self._execute_db_operation(
            "create ai configuration",
            self.repo.create(**values, company_id=system_company.id, created_by_id=user.id),
        )
        self._log_operation("AI configuration created", provider=config.provider.value, model=config.model)
        return config

    async def update_configuration(self, user: User, data: AIConfigurationUpdate) -> AIConfiguration:
        self._require_admin(user)
        config = await self.get_configuration()
        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key == "system_prompt"
        }
        if changes.get("api_key"):
            changes["api_key"] = encrypt_secret(changes["api_key"])
        if not changes:
            return config

        self._log_operation("Updating AI configuration", fields=sorted(changes))
        return await self.repo.update_instance(config, **changes, updated_by_id=user.id)


class AIConversationService(BaseService):
    def __init__(
        self,
        session: AsyncSession,
        provider_factory: ProviderFactory = OpenAICompatibleProvider,
    ) -> None:
        super().__init__(session)
        self.repo = AIConversationRepository(session)
        self.messages = AIMessageRepository(session)
        self.configuration = AIConfigurationService(session)
        self.tenant = TenantService(session)
        self._provider_factory = provider_factory

    async def find_all(
        self,
        user: User,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[AIConversation], int]:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self.repo.list_for_user(user.id, company_id, limit, offset)

    async def find_one(self, user: User, conversation_id: str) -> AIConversation:
        """
        Raises:
            NotFoundError: If the conversation is not in the user's company
            AuthorizationError: If the user did not start the conversation
        """
        company_id = await self.tenant.get_effective_company_id(user)
        conversation = await self.repo.get_in_company(conversation_id, company_id)
        if conversation.created_by_id != user.id:
            raise AuthorizationError("Access to this conversation is not allowed")
        return conversation

    async def get_messages(self, user: User, conversation_id: str) -> list[AIMessage]:
        conversation = await self.find_one(user, conversation_id)
        return await self.messages.list_for_conversation(conversation.id)

    async def create(self, user: User, title: str | None = None) -> AIConversation:
        company_id = await self.tenant.get_effective_company_id(user)
        return await self._execute_db_operation(
            "create conversation",
            self.repo.create(
                company_id=company_id,
                created_by_id=user.id,
                title=title or DEFAULT_CONVERSATION_TITLE,
            ),
        )

    async def remove(self, user: User, conversation_id: str) -> None:
        conversation = await self.find_one(user, conversation_id)
        await self.repo.delete_instance(conversation)
        self._log_operation("Conversation deleted", conversation_id=conversation.id)

    async def _provider_for(self, config: AIConfiguration | None) -> ChatProvider:
        if config is None or not config.api_key:
            raise ValidationError("AI agent is not configured")
        try:
            api_key = decrypt_secret(config.api_key)
        except ValueError:
            raise ValidationError("Stored AI API key is invalid, please save it again")
        return self._provider_factory(config.provider.value, api_key)

    async def send_message(
        self,
        user: User,
        conversation_id: str,
        content: str,
    ) -> tuple[AIMessage, AIMessage, AIConversation]:
        """
        Store the user's message, ask the provider and store its answer.

        Raises:
            ValidationError: If no usable AI configuration exists
            ExternalServiceError: If the provider call fails; the user
                message is kept
        """
        conversation = await self.find_one(user, conversation_id)
        config = await self.configuration.get_configuration_or_none()
        provider = await self._provider_for(config)

        history = await self.messages.list_for_conversation(conversation.id)
        prompt = [ChatMessage(role=MessageRole.SYSTEM.value, content=config.system_prompt or DEFAULT_SYSTEM_PROMPT)]
        prompt += [
            ChatMessage(role=message.role.value, content=message.content)
            for message in history
            if message.role != MessageRole.SYSTEM
        ]
        prompt.append(ChatMessage(role=MessageRole.USER.value, content=content))

        user_message = await self.messages.create(
            conversation_id=conversation.id,
            role=MessageRole.USER,
            content=content,
            user_id=user.id,
        )
        conversation.message_count += 1
        await self.session.flush()

        try:
            completion = await provider.complete(
                prompt, config.model, config.temperature, config.max_tokens,
            )
        except ExternalServiceError:
            # the request session rolls back on errors, so persist the question first
            await self.session.commit()
            raise

        assistant_message = await self.messages.create(
            conversation_id=conversation.id,
            role=MessageRole.ASSISTANT,
            content=completion.content,
            input_tokens=completion.input_tokens,
            output_tokens=completion.output_tokens,
            total_tokens=completion.total_tokens,
        )
        conversation = await self.repo.update_instance(
            conversation,
            message_count=conversation.message_count + 1,
            total_tokens=conversation.total_tokens + completion.total_tokens,
        )
        self._log_operation(
            "AI message answered",
            conversation_id=conversation.id,
            model=completion.model,
            tokens=completion.total_tokens,
        )
        return user_message, assistant_message, conversation
