"""
Unit Tests for HTTP Middleware.

Each middleware wraps a minimal FastAPI app served through httpx's ASGI
transport.
"""

import pytest
import structlog
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from accounting.backend.core.config_schema import SecurityHeadersSchema
from accounting.backend.core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware


def build_app() -> FastAPI:
    app = FastAPI()

    @app.get("/context")
    async def context(request: Request) -> dict:
        return {
            "request_id": request.state.request_id,
            "frontend": request.state.frontend,
            "log_context": structlog.contextvars.get_contextvars(),
        }

    @app.get("/plain")
    async def plain() -> dict:
        return {"ok": True}

    @app.get("/boom")
    async def boom() -> dict:
        raise RuntimeError("boom")

    return app


@pytest.fixture
async def context_client():
    app = build_app()
    app.add_middleware(RequestContextMiddleware, log_requests=True)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


class TestRequestContextMiddleware:
    async def test_generates_request_id(self, context_client):
        response = await context_client.get("/context")

        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 36
        assert response.json()["request_id"] == request_id

    async def test_propagates_request_id(self, context_client):
        response = await context_client.get("/context", headers={"X-Request-ID": "req-abc"})

        assert response.headers["X-Request-ID"] == "req-abc"
        assert response.json()["log_context"]["request_id"] == "req-abc"

    async def test_adds_response_time_header(self, context_client):
        response = await context_client.get("/context")

        assert response.headers["X-Response-Time"].endswith("ms")

    @pytest.mark.parametrize(
        ("header", "frontend", "source"),
        [("web", "web", "web"), ("CLI", "cli", "api"), ("mobile-app", "unknown", "api")],
    )
    async def test_frontend_and_source(self, context_client, header, frontend, source):
        response = await context_client.get("/context", headers={"X-Frontend-ID": header})

        body = response.json()
        assert body["frontend"] == frontend
        assert body["log_context"]["source"] == source

    async def test_context_is_cleared_after_request(self, context_client):
        await context_client.get("/context", headers={"X-Request-ID": "req-1"})

        assert "request_id" not in structlog.contextvars.get_contextvars()

    async def test_malformed_request_id_is_replaced(self, context_client):
        response = await context_client.get("/context", headers={"X-Request-ID": "bad id\twith spaces"})

        assert response.headers["X-Request-ID"] != "bad id\twith spaces"
        assert len(response.headers["X-Request-ID"]) == 36

    async def test_reraises_endpoint_errors(self, context_client):
        with pytest.raises(RuntimeError):
            await context_client.get("/boom")


class TestSecurityHeadersMiddleware:
    async def _get(self, hsts_enabled: bool):
        headers = SecurityHeadersSchema(
            x_content_type_options="nosniff",
            x_frame_options="DENY",
            referrer_policy="no-referrer",
            hsts_enabled=hsts_enabled,
            hsts_max_age=600,
        )
        app = build_app()
        app.add_middleware(SecurityHeadersMiddleware, headers=headers)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            return await client.get("/plain")

    async def test_static_headers(self):
        response = await self._get(hsts_enabled=False)

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Referrer-Policy"] == "no-referrer"
        assert "Strict-Transport-Security" not in response.headers

    async def test_hsts_when_enabled(self):
        response = await self._get(hsts_enabled=True)

        assert response.headers["Strict-Transport-Security"] == "max-age=600; includeSubDomains"
