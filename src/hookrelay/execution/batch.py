"""Batch aggregation for destinations that prefer fewer, larger messages.

``BatchAggregator`` buffers items and hands them to an async sink as one
list when either threshold is hit:

- **size**: the buffer reaches ``batch_size``
- **time**: ``batch_timeout`` seconds passed since the first unflushed item

Only one timer is armed per batch window. A flush swaps the buffer out in a
single synchronous step and cancels the timer, so every item reaches the
sink exactly once even when the size and time triggers race.

Size- and time-triggered flushes are launched through a
:class:`~hookrelay.execution.fire_and_forget.FireAndForgetRunner`; ``add``
never awaits the sink and sink errors never reach the caller of ``add``.

Example::

    batcher = BatchAggregator(send_many, batch_size=10, batch_timeout=5.0, runner=runner)
    batcher.add(event)
    ...
    await batcher.dispose()  # final flush
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from hookrelay.core.config import BatchConfig
from hookrelay.core.logging import get_logger
from hookrelay.execution.fire_and_forget import FireAndForgetRunner

T = TypeVar("T")

logger = get_logger(__name__)


class BatchAggregator(Generic[T]):
    """Size/time triggered buffer in front of an async sink.

    Args:
        sink: Async callable receiving one flushed batch
        batch_size: Flush as soon as this many items are buffered
        batch_timeout: Flush this many seconds after the first buffered item
        runner: Runner used to launch flushes (a private one if omitted)
        name: Label for logs and runner metrics
        key: Rate-limit key passed to the runner for size and time flushes.
            The final flush from ``close``/``dispose`` is never rate limited.
    """

    def __init__(
        self,
        sink: Callable[[list[T]], Awaitable[Any]],
        *,
        batch_size: int = 10,
        batch_timeout: float = 5.0,
        runner: FireAndForgetRunner | None = None,
        name: str = "batch",
        key: str | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if batch_timeout <= 0:
            raise ValueError(f"batch_timeout must be positive, got {batch_timeout}")

        self._sink = sink
        self._batch_size = batch_size
        self._batch_timeout = batch_timeout
        self._runner = runner or FireAndForgetRunner()
        self._name = name
        self._key = key

        self._buffer: list[T] = []
        self._timer: asyncio.TimerHandle | None = None
        self._disposed = False

    @classmethod
    def from_config(
        cls,
        sink: Callable[[list[T]], Awaitable[Any]],
        config: BatchConfig,
        **kwargs: Any,
    ) -> BatchAggregator[T]:
        return cls(
            sink,
            batch_size=config.batch_size,
            batch_timeout=config.batch_timeout,
            **kwargs,
        )

    @property
    def pending(self) -> int:
        """Items buffered and not yet flushed."""
        return len(self._buffer)

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def has_timer(self) -> bool:
        return self._timer is not None

    def add(self, item: T) -> bool:
        """Buffer ``item``; returns False if the aggregator is disposed."""
        if self._disposed:
            logger.warning("batch.add_after_dispose", batch=self._name)
            return False

        self._buffer.append(item)

        if len(self._buffer) >= self._batch_size:
            self._launch_flush("size")
        elif self._timer is None:
            self._arm_timer()
        return True

    def _arm_timer(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Stays buffered until the next size flush, flush() or dispose()
            logger.warning("batch.no_running_loop", batch=self._name, pending=len(self._buffer))
            return
        self._timer = loop.call_later(self._batch_timeout, self._on_timeout)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timeout(self) -> None:
        self._timer = None
        self._launch_flush("timeout")

    def _take(self) -> list[T]:
        """Swap the buffer out and disarm the timer in one step."""
        self._cancel_timer()
        batch, self._buffer = self._buffer, []
        return batch

    def _launch_flush(self, reason: str) -> asyncio.Task[str] | None:
        batch = self._take()
        if not batch:
            return None

        logger.debug("batch.flushing", batch=self._name, size=len(batch), reason=reason)
        return self._runner.launch(
            lambda: self._sink(batch),
            name=f"{self._name}.flush",
            key=None if reason == "dispose" else self._key,
        )

    async def flush(self) -> None:
        """Flush whatever is buffered now and wait for the sink to finish.

        Sink errors are contained by the runner, as for automatic flushes.
        """
        task = self._launch_flush("manual")
        if task is not None:
            await task

    def close(self) -> asyncio.Task[str] | None:
        """Stop accepting items and launch the final flush without awaiting it."""
        if self._disposed:
            return None
        self._disposed = True
        self._cancel_timer()
        if not self._buffer:
            return None
        logger.info("batch.final_flush", batch=self._name, size=len(self._buffer))
        return self._launch_flush("dispose")

    async def dispose(self) -> None:
        """Stop accepting items and perform one final flush, awaiting it."""
        task = self.close()
        if task is not None:
            await task
