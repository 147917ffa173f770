"""
Unit Tests for Health Check Endpoints.

Tests the health check functionality including:
- Liveness check (/health)
- Readiness check (/health/ready)
- Detailed health check (/health/detailed)
- Database and Redis connectivity checks
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from accounting.backend.api import health

HEALTHY = {"status": "healthy", "latency_ms": 1}


class TestHealthCheck:
    async def test_health_returns_healthy(self):
        assert await health.health_check() == {"status": "healthy"}


class TestCheckDatabase:
    async def test_healthy_when_query_succeeds(self):
        # Arrange
        session = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)

        with patch.object(health, "get_session_factory", return_value=factory):
            # Act
            result = await health.check_database()

        # Assert
        assert result["status"] == "healthy"
        assert "latency_ms" in result
        session.execute.assert_awaited_once()

    async def test_unhealthy_when_connection_fails(self):
        factory = MagicMock(side_effect=ConnectionError("refused"))

        with patch.object(health, "get_session_factory", return_value=factory):
            result = await health.check_database()

        assert result == {"status": "unhealthy", "error": "refused"}


class TestCheckRedis:
    async def test_healthy_when_ping_succeeds(self, mock_redis):
        with patch.object(health.redis, "from_url", return_value=mock_redis):
            result = await health.check_redis()

        assert result["status"] == "healthy"
        mock_redis.aclose.assert_awaited_once()

    async def test_unavailable_when_ping_fails(self, mock_redis):
        mock_redis.ping = AsyncMock(side_effect=ConnectionError("no redis"))

        with patch.object(health.redis, "from_url", return_value=mock_redis):
            result = await health.check_redis()

        assert result == {"status": "unavailable", "error": "no redis"}
        mock_redis.aclose.assert_awaited_once()


class TestReadinessCheck:
    async def test_ready_without_redis(self):
        with patch.object(health, "check_database", AsyncMock(return_value=HEALTHY)), \
                patch.object(health, "check_redis", AsyncMock(return_value={"status": "unavailable"})):
            result = await health.readiness_check()

        assert result["status"] == "healthy"
        assert result["checks"]["redis"]["status"] == "unavailable"

    async def test_not_ready_without_database(self):
        with patch.object(health, "check_database", AsyncMock(return_value={"status": "unhealthy"})), \
                patch.object(health, "check_redis", AsyncMock(return_value=HEALTHY)):
            with pytest.raises(HTTPException) as exc_info:
                await health.readiness_check()

        assert exc_info.value.status_code == 503
        assert exc_info.value.detail["checks"]["database"]["status"] == "unhealthy"

    async def test_crashing_check_is_reported_not_raised(self):
        with patch.object(health, "check_database", AsyncMock(side_effect=RuntimeError("boom"))), \
                patch.object(health, "check_redis", AsyncMock(return_value=HEALTHY)):
            checks = await health._run_checks(timeout=1)

        assert checks["database"]["status"] == "error"


class TestDetailedHealthCheck:
    async def test_includes_modules_and_pools(self):
        discovery = MagicMock()
        discovery.get_discovery_stats.return_value.model_dump.return_value = {
            "discovered_count": 2,
            "modules_list": ["clients", "tasks"],
        }

        with patch.object(health, "check_database", AsyncMock(return_value=HEALTHY)), \
                patch.object(health, "check_redis", AsyncMock(return_value=HEALTHY)), \
                patch.object(health, "get_module_discovery", return_value=discovery):
            result = await health.detailed_health_check()

        assert result["status"] == "healthy"
        assert result["modules"]["modules_list"] == ["clients", "tasks"]
        assert "thread_pool" in result["pools"]
        assert result["application"]["name"]
