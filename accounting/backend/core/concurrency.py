"""
Concurrency Infrastructure.

One thread pool for blocking I/O (smtplib, imaplib, manifest files) and
named semaphores that cap concurrent calls to an external dependency.
Both are created on first use from config/settings/concurrency.yaml and
released by shutdown_pools() when the application stops.

    sent = await run_blocking(smtp.send_message, message)

    async with get_semaphore("llm"):
        response = await client.post(url, json=payload)
"""

import asyncio
import contextvars
import functools
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, TypeVar

from accounting.backend.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_SEMAPHORE_CAPACITY = 20


@dataclass
class _Limiter:
    semaphore: asyncio.Semaphore
    capacity: int


_io_pool: "TracedThreadPoolExecutor | None" = None
_limiters: dict[str, _Limiter] = {}


class TracedThreadPoolExecutor(ThreadPoolExecutor):
    """Runs each job inside a copy of the submitter's context, so structlog keeps request_id and user_id."""

    def submit(self, fn, /, *args, **kwargs):
        return super().submit(contextvars.copy_context().run, fn, *args, **kwargs)


def _concurrency_config():
    from accounting.backend.core.config import get_app_config

    return get_app_config().concurrency


def get_io_pool() -> TracedThreadPoolExecutor:
    global _io_pool
    if _io_pool is None:
        max_workers = _concurrency_config().thread_pool.max_workers
        _io_pool = TracedThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="io")
        logger.info("Thread pool created", extra={"max_workers": max_workers})
    return _io_pool


async def run_blocking(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(get_io_pool(), functools.partial(fn, *args, **kwargs))


def get_semaphore(name: str) -> asyncio.Semaphore:
    """
    Shared semaphore for `name`, sized by `semaphores.<name>` in
    concurrency.yaml or DEFAULT_SEMAPHORE_CAPACITY when not listed.
    """
    limiter = _limiters.get(name)
    if limiter is None:
        capacity = getattr(_concurrency_config().semaphores, name, DEFAULT_SEMAPHORE_CAPACITY)
        limiter = _limiters[name] = _Limiter(asyncio.Semaphore(capacity), capacity)
        logger.debug("Semaphore created", extra={"name": name, "capacity": capacity})
    return limiter.semaphore


def get_pool_status() -> dict[str, Any]:
    """Pool size and semaphore headroom for /health/detailed."""
    pool = None
    if _io_pool is not None:
        pool = {"max_workers": _io_pool._max_workers, "threads": len(_io_pool._threads)}
    return {
        "thread_pool": pool,
        "semaphores": {
            name: {"capacity": limiter.capacity, "available": limiter.semaphore._value}
            for name, limiter in _limiters.items()
        },
    }


async def shutdown_pools() -> None:
    """
    Wait up to `shutdown.drain_seconds` for queued I/O jobs, then cancel
    whatever has not started.
    """
    global _io_pool

    pool, _io_pool = _io_pool, None
    if pool is not None:
        drain = _concurrency_config().shutdown.drain_seconds
        try:
            await asyncio.wait_for(asyncio.to_thread(pool.shutdown, wait=True), timeout=drain)
        except TimeoutError:
            pool.shutdown(wait=False, cancel_futures=True)
            logger.warning("Thread pool drain timed out, pending work cancelled", extra={"drain_seconds": drain})
        else:
            logger.info("Thread pool shut down")

    _limiters.clear()
