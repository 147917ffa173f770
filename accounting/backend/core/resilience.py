"""
Resilience Infrastructure.

Outbound calls to AI providers are wrapped outside-in as

    circuit breaker (aiobreaker) -> retry (tenacity) -> HTTP call

Both layers log structured events carrying a `resilience_event` key:

    jq 'select(.resilience_event != null)' logs/system.jsonl
"""

from datetime import timedelta
from typing import Any

import aiobreaker

from accounting.backend.core.logging import get_logger

logger = get_logger(__name__)

_breakers: dict[str, aiobreaker.CircuitBreaker] = {}

# Checked in order: "half_open" also contains "open"
_STATE_EVENTS = (
    ("half", "circuit_breaker_half_open", "info"),
    ("open", "circuit_breaker_opened", "error"),
    ("", "circuit_breaker_closed", "info"),
)


def _state_event(state: Any) -> tuple[str, str]:
    name = str(getattr(state, "state", state)).lower()
    return next((event, level) for marker, event, level in _STATE_EVENTS if marker in name)


class ResilienceLogger(aiobreaker.CircuitBreakerListener):
    """Logs state transitions and recorded failures of one named breaker."""

    def __init__(self, dependency: str) -> None:
        self.dependency = dependency

    def _extra(self, cb: aiobreaker.CircuitBreaker, event: str, **fields: Any) -> dict[str, Any]:
        return {"resilience_event": event, "dependency": self.dependency, "failure_count": cb.fail_counter, **fields}

    def state_change(self, cb: aiobreaker.CircuitBreaker, old_state: Any, new_state: Any) -> None:
        event, level = _state_event(new_state)
        getattr(logger, level)(f"Circuit breaker {self.dependency} changed state", extra=self._extra(cb, event))

    def failure(self, cb: aiobreaker.CircuitBreaker, exception: Exception) -> None:
        logger.warning(
            f"Circuit breaker {self.dependency}: failure recorded",
            extra=self._extra(cb, "circuit_breaker_failure", error=str(exception)),
        )


def log_retry(retry_state: Any) -> None:
    """before_sleep callback for tenacity."""
    outcome = retry_state.outcome
    fn_name = getattr(retry_state.fn, "__name__", "unknown")
    logger.warning(
        f"Retrying {fn_name} (attempt {retry_state.attempt_number})",
        extra={
            "resilience_event": "retry_attempt",
            "dependency": fn_name,
            "attempt": retry_state.attempt_number,
            "error": str(outcome.exception()) if outcome and outcome.failed else None,
        },
    )


def create_circuit_breaker(dependency: str, fail_max: int = 5, timeout_duration: int = 30) -> aiobreaker.CircuitBreaker:
    return aiobreaker.CircuitBreaker(
        fail_max=fail_max,
        timeout_duration=timedelta(seconds=timeout_duration),
        listeners=[ResilienceLogger(dependency)],
    )


def get_circuit_breaker(dependency: str) -> aiobreaker.CircuitBreaker:
    """
    Shared breaker for `dependency` (e.g. "ai_openai"), created on first use
    with the thresholds from integrations.ai.circuit_breaker.
    """
    breaker = _breakers.get(dependency)
    if breaker is None:
        from accounting.backend.core.config import get_app_config

        settings = get_app_config().integrations.ai.circuit_breaker
        breaker = _breakers[dependency] = create_circuit_breaker(
            dependency, fail_max=settings.fail_max, timeout_duration=settings.timeout_duration
        )
    return breaker


def reset_circuit_breakers() -> None:
    _breakers.clear()
