"""
Outbound Adapter Interfaces.

Contracts for the external services the platform talks to. Services
depend on these interfaces; concrete adapters live next to this module.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class ChatMessage:
    """One message of a chat completion request."""

    role: str
    content: str


@dataclass
class ChatCompletion:
    """Normalized provider answer."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class OutgoingEmail:
    to: list[str]
    subject: str
    body: str
    sender: str
    sender_name: str | None = None
    cc: list[str] = field(default_factory=list)


@dataclass
class InboxMessage:
    """Header summary of one mailbox message."""

    uid: str
    sender: str
    subject: str
    date: str | None = None


class ChatProvider(ABC):
    """An LLM backend speaking a chat completion protocol."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (e.g., 'openai', 'openrouter')."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[ChatMessage],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> ChatCompletion:
        """
        Request a completion for the conversation.

        Raises:
            ExternalServiceError: If the provider call fails
        """
        ...


class MailTransport(ABC):
    """Sends mail and reads mailbox headers for one account."""

    @abstractmethod
    async def send(self, message: OutgoingEmail) -> None:
        ...

    @abstractmethod
    async def fetch_headers(self, limit: int) -> list[InboxMessage]:
        ...
