"""Tests for per-attempt timeouts."""

import asyncio

import pytest

from hookrelay.core.errors import DeliveryTimeoutError, TransientDeliveryError
from hookrelay.execution.timeout import run_with_timeout_async


class TestRunWithTimeoutAsync:
    """Tests for run_with_timeout_async."""

    @pytest.mark.asyncio
    async def test_returns_result_in_time(self):
        """A fast awaitable returns normally."""

        async def fast():
            return 42

        assert await run_with_timeout_async(fast(), 1.0) == 42

    @pytest.mark.asyncio
    async def test_timeout_raises_delivery_timeout(self):
        """An expired attempt raises a transient DeliveryTimeoutError."""
        with pytest.raises(DeliveryTimeoutError) as exc_info:
            await run_with_timeout_async(asyncio.sleep(5), 0.01, operation="discord:1")

        error = exc_info.value
        assert isinstance(error, TransientDeliveryError)
        assert error.timeout == 0.01
        assert error.context.operation == "discord:1"
        assert "elapsed" in error.context.metadata
        assert isinstance(error.__cause__, TimeoutError)

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        """Errors from the awaitable are not wrapped."""

        async def broken():
            raise ConnectionError("refused")

        with pytest.raises(ConnectionError):
            await run_with_timeout_async(broken(), 1.0)

    @pytest.mark.asyncio
    async def test_rejects_non_positive_timeout(self):
        """Zero or negative timeouts are a programming error."""
        coro = asyncio.sleep(0)
        with pytest.raises(ValueError):
            await run_with_timeout_async(coro, 0)
        coro.close()
