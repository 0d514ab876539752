"""Tests for the delivery error taxonomy."""

import pytest

from hookrelay.core.errors import (
    CircuitOpenError,
    ConfigError,
    DeliveryTimeoutError,
    DispatchError,
    ErrorCategory,
    ErrorContext,
    PermanentDeliveryError,
    RetriesExhaustedError,
    TransientDeliveryError,
)


class TestErrorContext:
    """Tests for ErrorContext."""

    def test_to_dict_skips_empty_fields(self):
        """Only populated fields are included."""
        ctx = ErrorContext(destination="discord:1", status_code=503)
        assert ctx.to_dict() == {"destination": "discord:1", "status_code": 503}

    def test_metadata_is_flattened(self):
        """Metadata keys appear at the top level."""
        ctx = ErrorContext(operation="send", metadata={"elapsed": 1.5})
        assert ctx.to_dict() == {"operation": "send", "elapsed": 1.5}


class TestDispatchError:
    """Tests for the base error."""

    def test_defaults(self):
        """Base errors are internal and not retryable."""
        error = DispatchError("boom")
        assert error.message == "boom"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.retry_after is None

    def test_cause_is_chained(self):
        """The cause becomes __cause__."""
        cause = ValueError("root")
        error = DispatchError("wrapped", cause=cause)
        assert error.__cause__ is cause

    def test_with_context_sets_known_fields_and_metadata(self):
        """Known keys set attributes; unknown keys land in metadata."""
        error = DispatchError("x").with_context(destination="a", url="https://a", extra="y")
        assert error.context.destination == "a"
        assert error.context.url == "https://a"
        assert error.context.metadata == {"extra": "y"}

    def test_with_context_returns_self(self):
        """Fluent API returns the same instance."""
        error = DispatchError("x")
        assert error.with_context(attempt=2) is error

    def test_to_dict(self):
        """Serialized form carries type, category and context."""
        error = TransientDeliveryError("HTTP 503", status_code=503, retry_after=2.0)
        data = error.to_dict()
        assert data["error_type"] == "TransientDeliveryError"
        assert data["category"] == "NETWORK"
        assert data["retryable"] is True
        assert data["retry_after"] == 2.0
        assert data["context"] == {"status_code": 503}

    def test_repr(self):
        """repr names the class and category."""
        assert repr(ConfigError("bad")) == "ConfigError('bad', category=CONFIG)"


class TestDeliveryErrors:
    """Tests for transient and permanent delivery errors."""

    def test_transient_is_retryable(self):
        """Transient failures are retryable by default."""
        error = TransientDeliveryError("HTTP 502", status_code=502)
        assert error.retryable is True
        assert error.status_code == 502
        assert error.context.status_code == 502

    def test_permanent_is_not_retryable(self):
        """Permanent failures are never retryable."""
        error = PermanentDeliveryError("HTTP 404", status_code=404)
        assert error.retryable is False
        assert error.category == ErrorCategory.REJECTED

    def test_timeout_is_transient(self):
        """A timed-out attempt is a transient delivery error."""
        error = DeliveryTimeoutError(2.5, operation="discord")
        assert isinstance(error, TransientDeliveryError)
        assert error.retryable is True
        assert error.timeout == 2.5
        assert "discord" in str(error)
        assert error.context.operation == "discord"

    def test_retryable_override(self):
        """The default retryable flag can be overridden."""
        assert TransientDeliveryError("x", retryable=False).retryable is False


class TestTerminalErrors:
    """Tests for exhaustion and circuit errors."""

    def test_retries_exhausted_wraps_last_error(self):
        """RetriesExhaustedError keeps the last error and attempt count."""
        last = TransientDeliveryError("HTTP 503")
        error = RetriesExhaustedError(last, 4)
        assert error.last_error is last
        assert error.attempts == 4
        assert error.__cause__ is last
        assert error.retryable is False
        assert error.context.attempt == 4
        assert "4 attempts" in str(error)

    def test_circuit_open_error(self):
        """CircuitOpenError is a fast, non-retryable rejection."""
        error = CircuitOpenError(retry_after=12.0)
        assert error.category == ErrorCategory.CIRCUIT
        assert error.retryable is False
        assert error.retry_after == 12.0
        assert str(error) == "Circuit breaker is open"

    @pytest.mark.parametrize(
        "cls",
        [TransientDeliveryError, PermanentDeliveryError, CircuitOpenError, ConfigError],
    )
    def test_all_errors_are_dispatch_errors(self, cls):
        """Every error derives from DispatchError."""
        assert issubclass(cls, DispatchError)
