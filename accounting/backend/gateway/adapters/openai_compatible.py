"""
OpenAI-compatible Chat Provider.

Talks to any `/chat/completions` endpoint with the OpenAI wire format.
OpenAI and OpenRouter differ only in base URL and a couple of headers.

Resilience stack per call:
    Circuit Breaker → Retry (transport errors, 429, 5xx) → Semaphore("llm") → HTTP
"""

from typing import Any

import aiobreaker
import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from accounting.backend.core.concurrency import get_semaphore
from accounting.backend.core.config import get_app_config
from accounting.backend.core.exceptions import ExternalServiceError
from accounting.backend.core.logging import get_logger
from accounting.backend.core.resilience import get_circuit_breaker, log_retry
from accounting.backend.gateway.adapters.base import ChatCompletion, ChatMessage, ChatProvider

logger = get_logger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class RetryableProviderError(Exception):
    """Provider answered with a status worth retrying."""


class OpenAICompatibleProvider(ChatProvider):
    """
    Chat provider for OpenAI and OpenRouter.

    An httpx client may be injected (tests use httpx.MockTransport);
    otherwise one client is created per call.
    """

    def __init__(
        self,
        provider: str,
        api_key: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        ai_config = get_app_config().integrations.ai
        self._provider = provider
        self._api_key = api_key
        self._client = client
        self._timeout = ai_config.request_timeout
        self._retry = ai_config.retry
        if provider == "openrouter":
            self._base_url = ai_config.openrouter_base_url
        else:
            self._base_url = ai_config.openai_base_url

    @property
    def provider_name(self) -> str:
        return self._provider

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if self._provider == "openrouter":
            headers["X-Title"] = get_app_config().application.name
        return headers

    async def complete(
        self,
        messages: list[ChatMessage],
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> ChatCompletion:
        payload = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        breaker = get_circuit_breaker(f"ai_{self._provider}")
        try:
            data = await breaker.call_async(self._post_with_retry, payload)
        except aiobreaker.CircuitBreakerError:
            raise ExternalServiceError("AI provider temporarily unavailable", service=self._provider)
        except (httpx.HTTPError, RetryableProviderError) as exc:
            logger.error(
                "AI provider request failed",
                extra={"provider": self._provider, "model": model, "error": str(exc)},
            )
            raise ExternalServiceError("AI provider request failed", service=self._provider)

        return self._parse(data, model)

    async def _post_with_retry(self, payload: dict[str, Any]) -> dict[str, Any]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry.max_attempts),
            wait=wait_exponential(
                multiplier=self._retry.backoff_multiplier,
                max=self._retry.backoff_max,
            ),
            retry=retry_if_exception_type((httpx.TransportError, RetryableProviderError)),
            before_sleep=log_retry,
            reraise=True,
        ):
            with attempt:
                async with get_semaphore("llm"):
                    return await self._post(payload)
        raise RetryableProviderError("Retry loop exhausted")

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url.rstrip('/')}/chat/completions"
        if self._client is not None:
            response = await self._client.post(url, json=payload, headers=self._headers())
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=payload, headers=self._headers())

        if response.status_code in RETRYABLE_STATUS:
            raise RetryableProviderError(f"Provider returned {response.status_code}")
        response.raise_for_status()
        return response.json()

    def _parse(self, data: dict[str, Any], model: str) -> ChatCompletion:
        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            raise ExternalServiceError("AI provider returned an unexpected response", service=self._provider)

        usage = data.get("usage") or {}
        return ChatCompletion(
            content=content,
            model=data.get("model", model),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
        )
