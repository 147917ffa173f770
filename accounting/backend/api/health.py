"""
Health Check Endpoints.

    GET /health           liveness, no dependencies touched
    GET /health/ready     503 unless the database answers; Redis is informational
    GET /health/detailed  checks plus application info, discovered modules and pools

Probes never raise: each one reports {"status": ..., "latency_ms" | "error"}.
"""

import asyncio
import time
from typing import Any

import redis.asyncio as redis
from fastapi import APIRouter, HTTPException
from sqlalchemy import text

from accounting.backend.core.concurrency import get_pool_status
from accounting.backend.core.config import get_app_config, get_redis_url
from accounting.backend.core.database import get_session_factory
from accounting.backend.core.logging import get_logger
from accounting.backend.core.utils import utc_now
from accounting.backend.services.module_discovery import get_module_discovery

router = APIRouter()
logger = get_logger(__name__)

NOT_RUN: dict[str, Any] = {"status": "error", "error": "check did not run"}


def _healthy(started: float) -> dict[str, Any]:
    return {"status": "healthy", "latency_ms": int((time.perf_counter() - started) * 1000)}


async def check_database() -> dict[str, Any]:
    started = time.perf_counter()
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return {"status": "unhealthy", "error": str(e)}
    return _healthy(started)


async def check_redis() -> dict[str, Any]:
    """Redis is optional here, so a failed ping reports `unavailable`."""
    started = time.perf_counter()
    client = redis.from_url(get_redis_url())
    try:
        await client.ping()
    except Exception as e:
        logger.warning("Redis health check failed", extra={"error": str(e)})
        return {"status": "unavailable", "error": str(e)}
    finally:
        await client.aclose()
    return _healthy(started)


async def _run_checks(timeout: float | None = None) -> dict[str, dict[str, Any]]:
    """
    Run both checks concurrently. A check that crashes or does not finish
    within `timeout` is reported as NOT_RUN.
    """
    checks = {"database": NOT_RUN, "redis": NOT_RUN}
    try:
        async with asyncio.timeout(timeout):
            async with asyncio.TaskGroup() as tg:
                tasks = {"database": tg.create_task(check_database()), "redis": tg.create_task(check_redis())}
            checks = {name: task.result() for name, task in tasks.items()}
    except* TimeoutError:
        logger.warning("Health checks timed out", extra={"timeout": timeout})
    except* Exception as eg:
        for exc in eg.exceptions:
            logger.warning("Health check task failed", extra={"error": str(exc)})
    return checks


def _overall(checks: dict[str, dict[str, Any]]) -> str:
    return "healthy" if checks["database"].get("status") == "healthy" else "unhealthy"


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check() -> dict[str, Any]:
    timeout = get_app_config().observability.health_checks.ready_timeout_seconds
    checks = await _run_checks(timeout)
    body = {"status": _overall(checks), "checks": checks, "timestamp": utc_now().isoformat()}

    if body["status"] != "healthy":
        logger.warning("Readiness check failed", extra={"checks": checks})
        raise HTTPException(status_code=503, detail=body)
    return body


@router.get("/health/detailed")
async def detailed_health_check() -> dict[str, Any]:
    checks = await _run_checks()
    application = get_app_config().application

    return {
        "status": _overall(checks),
        "application": {
            "name": application.name,
            "env": application.environment,
            "debug": application.debug,
            "version": application.version,
        },
        "checks": checks,
        "modules": get_module_discovery().get_discovery_stats().model_dump(),
        "pools": get_pool_status(),
        "timestamp": utc_now().isoformat(),
    }
