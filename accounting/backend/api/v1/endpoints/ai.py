"""
AI Agent API Endpoints.

The global assistant configuration and per-user conversations. Gated by
the `ai-agent` module.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from accounting.backend.core.dependencies import AdminUser, DbSession, RequestId, require_module
from accounting.backend.core.pagination import (
    PaginationParams,
    create_paginated_response,
    get_pagination_params,
)
from accounting.backend.models.user import User
from accounting.backend.schemas.ai import (
    AIConfigurationCreate,
    AIConfigurationResponse,
    AIConfigurationUpdate,
    ConversationCreate,
    ConversationDetail,
    ConversationResponse,
    MessageResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from accounting.backend.schemas.base import ApiResponse
from accounting.backend.services.ai import AIConfigurationService, AIConversationService, configuration_response

router = APIRouter()

MODULE = "ai-agent"
AIReader = Annotated[User, Depends(require_module(MODULE, "read"))]
AIWriter = Annotated[User, Depends(require_module(MODULE, "write"))]
AIDeleter = Annotated[User, Depends(require_module(MODULE, "delete"))]


# Configuration


@router.get(
    "/configuration",
    response_model=ApiResponse[AIConfigurationResponse | None],
    summary="AI configuration",
    description="The API key is never returned; `has_api_key` tells whether one is stored.",
)
async def get_configuration(user: AIReader, db: DbSession) -> ApiResponse[AIConfigurationResponse | None]:
    config = await AIConfigurationService(db).get_configuration_or_none()
    return ApiResponse(data=configuration_response(config) if config else None)


@router.post(
    "/configuration",
    response_model=ApiResponse[AIConfigurationResponse],
    status_code=201,
    summary="Create the AI configuration",
)
async def create_configuration(
    data: AIConfigurationCreate,
    admin: AdminUser,
    db: DbSession,
) -> ApiResponse[AIConfigurationResponse]:
    config = await AIConfigurationService(db).create_configuration(admin, data)
    return ApiResponse(data=configuration_response(config))


@router.patch(
    "/configuration",
    response_model=ApiResponse[AIConfigurationResponse],
    summary="Update the AI configuration",
)
async def update_configuration(
    data: AIConfigurationUpdate,
    admin: AdminUser,
    db: DbSession,
) -> ApiResponse[AIConfigurationResponse]:
    config = await AIConfigurationService(db).update_configuration(admin, data)
    return ApiResponse(data=configuration_response(config))


# Conversations


@router.get("/conversations", summary="List own conversations (paginated)")
async def list_conversations(
    user: AIReader,
    db: DbSession,
    request_id: RequestId,
    pagination: PaginationParams = Depends(get_pagination_params),
) -> dict[str, Any]:
    conversations, total = await AIConversationService(db).find_all(user, pagination.limit, pagination.offset)
    return create_paginated_response(
        items=conversations,
        item_schema=ConversationResponse,
        total=total,
        limit=pagination.limit,
        offset=pagination.offset,
        request_id=request_id,
    )


@router.post(
    "/conversations",
    response_model=ApiResponse[ConversationResponse],
    status_code=201,
    summary="Start a conversation",
)
async def create_conversation(
    data: ConversationCreate,
    user: AIWriter,
    db: DbSession,
) -> ApiResponse[ConversationResponse]:
    conversation = await AIConversationService(db).create(user, data.title)
    return ApiResponse(data=ConversationResponse.model_validate(conversation))


@router.get(
    "/conversations/{conversation_id}",
    response_model=ApiResponse[ConversationDetail],
    summary="Get a conversation with its messages",
)
async def get_conversation(
    conversation_id: str,
    user: AIReader,
    db: DbSession,
) -> ApiResponse[ConversationDetail]:
    service = AIConversationService(db)
    conversation = await service.find_one(user, conversation_id)
    messages = await service.get_messages(user, conversation_id)
    detail = ConversationDetail(
        **ConversationResponse.model_validate(conversation).model_dump(),
        messages=[MessageResponse.model_validate(m) for m in messages],
    )
    return ApiResponse(data=detail)


@router.delete("/conversations/{conversation_id}", status_code=204, summary="Delete a conversation")
async def delete_conversation(conversation_id: str, user: AIDeleter, db: DbSession) -> None:
    await AIConversationService(db).remove(user, conversation_id)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=ApiResponse[SendMessageResponse],
    summary="Send a message",
    description="Stores the message, asks the configured provider and stores the answer.",
)
async def send_message(
    conversation_id: str,
    data: SendMessageRequest,
    user: AIWriter,
    db: DbSession,
) -> ApiResponse[SendMessageResponse]:
    user_message, assistant_message, conversation = await AIConversationService(db).send_message(
        user, conversation_id, data.content,
    )
    return ApiResponse(
        data=SendMessageResponse(
            user_message=MessageResponse.model_validate(user_message),
            assistant_message=MessageResponse.model_validate(assistant_message),
            conversation=ConversationResponse.model_validate(conversation),
        )
    )
