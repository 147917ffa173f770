"""
Unit Tests for the OpenAI-compatible Chat Provider.

HTTP is served by httpx.MockTransport, so the full request path
(breaker, retry, semaphore, parsing) runs without network access.
"""

import json
from types import SimpleNamespace

import httpx
import pytest

from accounting.backend.core.exceptions import ExternalServiceError
from accounting.backend.core.resilience import reset_circuit_breakers
from accounting.backend.gateway.adapters.base import ChatMessage
from accounting.backend.gateway.adapters.openai_compatible import OpenAICompatibleProvider

NO_WAIT_RETRY = SimpleNamespace(max_attempts=2, backoff_multiplier=0, backoff_max=0)


@pytest.fixture(autouse=True)
def _fresh_breakers():
    reset_circuit_breakers()
    yield
    reset_circuit_breakers()


def provider_with(handler, provider: str = "openai") -> OpenAICompatibleProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    instance = OpenAICompatibleProvider(provider, "sk-test", client=client)
    instance._retry = NO_WAIT_RETRY
    return instance


def completion_body(content: str = "Hello") -> dict:
    return {
        "model": "gpt-4o-mini",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 3},
    }


MESSAGES = [ChatMessage(role="system", content="Be brief"), ChatMessage(role="user", content="Hi")]


class TestComplete:
    async def test_parses_answer_and_usage(self):
        # Arrange
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion_body("Dzień dobry"))

        provider = provider_with(handler)

        # Act
        result = await provider.complete(MESSAGES, "gpt-4o-mini", 0.2, 256)

        # Assert
        assert result.content == "Dzień dobry"
        assert result.total_tokens == 15
        assert seen["url"] == "https://api.openai.com/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["messages"][1] == {"role": "user", "content": "Hi"}
        assert seen["body"]["max_tokens"] == 256

    async def test_openrouter_uses_its_base_url(self):
        urls = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200, json=completion_body())

        await provider_with(handler, "openrouter").complete(MESSAGES, "meta/llama", 0.5, 100)

        assert urls == ["https://openrouter.ai/api/v1/chat/completions"]

    async def test_retries_server_errors(self):
        responses = iter([httpx.Response(503), httpx.Response(200, json=completion_body("ok"))])

        result = await provider_with(lambda request: next(responses)).complete(MESSAGES, "m", 0.1, 10)

        assert result.content == "ok"

    async def test_persistent_failure_is_external_service_error(self):
        provider = provider_with(lambda request: httpx.Response(500))

        with pytest.raises(ExternalServiceError) as exc_info:
            await provider.complete(MESSAGES, "m", 0.1, 10)

        assert exc_info.value.details == {"service": "openai"}

    async def test_client_error_is_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(401, json={"error": "bad key"})

        with pytest.raises(ExternalServiceError):
            await provider_with(handler).complete(MESSAGES, "m", 0.1, 10)

        assert len(calls) == 1

    async def test_unexpected_body_is_external_service_error(self):
        provider = provider_with(lambda request: httpx.Response(200, json={"choices": []}))

        with pytest.raises(ExternalServiceError):
            await provider.complete(MESSAGES, "m", 0.1, 10)
