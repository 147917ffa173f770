"""
AI Agent Schemas.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from accounting.backend.models.enums import AIProvider, MessageRole


class AIConfigurationCreate(BaseModel):
    provider: AIProvider = AIProvider.OPENAI
    model: str = Field(..., min_length=1, max_length=100, examples=["gpt-4o-mini"])
    api_key: str | None = Field(default=None, min_length=1, max_length=500)
    system_prompt: str | None = Field(default=None, max_length=20000)
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=4000, ge=1, le=128000)


class AIConfigurationUpdate(BaseModel):
    provider: AIProvider | None = None
    model: str | None = Field(default=None, min_length=1, max_length=100)
    api_key: str | None = Field(default=None, min_length=1, max_length=500)
    system_prompt: str | None = Field(default=None, max_length=20000)
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = Field(default=None, ge=1, le=128000)


class AIConfigurationResponse(BaseModel):
    """The API key itself is never returned, only whether one is stored."""

    id: str
    provider: AIProvider
    model: str
    system_prompt: str | None
    temperature: float
    max_tokens: int
    has_api_key: bool
    created_at: datetime
    updated_at: datetime


class ConversationCreate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    role: MessageRole
    content: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    user_id: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationResponse(BaseModel):
    id: str
    title: str
    total_tokens: int
    message_count: int
    created_by_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationDetail(ConversationResponse):
    messages: list[MessageResponse] = Field(default_factory=list)


class SendMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)


class SendMessageResponse(BaseModel):
    user_message: MessageResponse
    assistant_message: MessageResponse
    conversation: ConversationResponse
