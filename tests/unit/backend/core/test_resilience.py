"""Unit tests for accounting.backend.core.resilience."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from accounting.backend.core.resilience import (
    ResilienceLogger,
    create_circuit_breaker,
    get_circuit_breaker,
    log_retry,
    reset_circuit_breakers,
)


class TestResilienceLogger:
    @pytest.mark.parametrize(
        ("new_state", "level", "event"),
        [
            ("open", "error", "circuit_breaker_opened"),
            ("half-open", "info", "circuit_breaker_half_open"),
            ("closed", "info", "circuit_breaker_closed"),
        ],
    )
    def test_state_change_levels(self, new_state, level, event):
        listener = ResilienceLogger("ai_openai")
        breaker = MagicMock(fail_counter=5)

        with patch("accounting.backend.core.resilience.logger") as mock_logger:
            listener.state_change(breaker, "closed", new_state)

        log = getattr(mock_logger, level)
        log.assert_called_once()
        assert log.call_args.kwargs["extra"]["resilience_event"] == event
        assert log.call_args.kwargs["extra"]["dependency"] == "ai_openai"

    def test_failure_is_a_warning(self):
        listener = ResilienceLogger("ai_openrouter")
        breaker = MagicMock(fail_counter=2)

        with patch("accounting.backend.core.resilience.logger") as mock_logger:
            listener.failure(breaker, ConnectionError("timeout"))

        extra = mock_logger.warning.call_args.kwargs["extra"]
        assert extra["resilience_event"] == "circuit_breaker_failure"
        assert extra["failure_count"] == 2
        assert extra["error"] == "timeout"


class TestLogRetry:
    def test_emits_structured_event(self):
        state = MagicMock()
        state.attempt_number = 2
        state.fn.__name__ = "_post_with_retry"
        state.outcome.failed = True
        state.outcome.exception.return_value = ConnectionError("fail")

        with patch("accounting.backend.core.resilience.logger") as mock_logger:
            log_retry(state)

        args, kwargs = mock_logger.warning.call_args
        assert "_post_with_retry" in args[0]
        assert kwargs["extra"]["attempt"] == 2
        assert kwargs["extra"]["error"] == "fail"

    def test_handles_no_outcome(self):
        state = MagicMock()
        state.attempt_number = 1
        state.outcome = None

        with patch("accounting.backend.core.resilience.logger") as mock_logger:
            log_retry(state)

        assert mock_logger.warning.call_args.kwargs["extra"]["error"] is None


class TestCircuitBreakers:
    @pytest.fixture(autouse=True)
    def _fresh_registry(self):
        reset_circuit_breakers()
        yield
        reset_circuit_breakers()

    def test_create_with_listener(self):
        breaker = create_circuit_breaker("redis", fail_max=3, timeout_duration=15)

        assert breaker.fail_max == 3
        assert breaker.timeout_duration == timedelta(seconds=15)
        assert isinstance(breaker.listeners[0], ResilienceLogger)

    def test_registry_shares_one_breaker_per_dependency(self):
        first = get_circuit_breaker("ai_openai")

        assert get_circuit_breaker("ai_openai") is first
        assert get_circuit_breaker("ai_openrouter") is not first

    def test_registry_sizes_from_config(self):
        breaker = get_circuit_breaker("ai_openai")

        assert breaker.fail_max == 5
        assert breaker.timeout_duration == timedelta(seconds=60)
