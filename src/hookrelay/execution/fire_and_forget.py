"""Fire-and-forget task launching with error containment.

``FireAndForgetRunner.launch`` starts an async operation on the running
event loop and returns immediately. Whatever happens inside the operation
stays inside it: exceptions are caught at the root of the task, logged with
the launch name, counted, and handed to an optional ``on_error`` sink. The
caller of ``launch`` never sees an exception and never waits.

The runner holds a strong reference to every task until it finishes, so
tasks cannot be garbage-collected mid-flight, and ``drain``/``shutdown``
have something to wait on.

Example::

    runner = FireAndForgetRunner(on_error=lambda err, name: alerts.append(name))
    runner.launch(lambda: notifier.send(payload), name="discord:alerts")
    ...
    await runner.shutdown(timeout=10.0)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import asdict, dataclass
from typing import Any

from hookrelay.core.errors import DispatchError
from hookrelay.core.logging import get_logger
from hookrelay.core.timestamps import Clock, monotonic
from hookrelay.execution.rate_limit import KeyedRateLimiter
from hookrelay.observability.metrics import DispatchMetrics

logger = get_logger(__name__)

Operation = Callable[[], Awaitable[Any]]
ErrorSink = Callable[[BaseException, str], None]

_SUCCEEDED = "succeeded"
_FAILED = "failed"


@dataclass
class LaunchStats:
    """Counters for one launch name."""

    launched: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0
    dropped: int = 0
    total_duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class FireAndForgetRunner:
    """Launches async operations without awaiting them.

    Args:
        on_error: Called with ``(error, name)`` for every failed operation
        limiter: Optional per-key rate limit; over-limit launches are dropped
        metrics: Optional metrics sink
        clock: Monotonic time source used for durations
    """

    def __init__(
        self,
        *,
        on_error: ErrorSink | None = None,
        limiter: KeyedRateLimiter | None = None,
        metrics: DispatchMetrics | None = None,
        clock: Clock = monotonic,
    ) -> None:
        self._on_error = on_error
        self._limiter = limiter
        self._metrics = metrics
        self._clock = clock
        self._tasks: set[asyncio.Task[str]] = set()
        self._stats: dict[str, LaunchStats] = {}
        self._closed = False

    @property
    def in_flight(self) -> int:
        """Number of tasks that have not finished yet."""
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        return self._closed

    def _stats_for(self, name: str) -> LaunchStats:
        stats = self._stats.get(name)
        if stats is None:
            stats = self._stats[name] = LaunchStats()
        return stats

    def _drop(self, name: str, reason: str, **fields: Any) -> None:
        self._stats_for(name).dropped += 1
        if self._metrics:
            self._metrics.record_task_dropped(name)
        logger.warning("fire_and_forget.dropped", name=name, reason=reason, **fields)

    def launch(
        self,
        operation: Operation,
        name: str | None = None,
        key: str | None = None,
    ) -> asyncio.Task[str] | None:
        """Start ``operation`` in the background.

        Args:
            operation: Zero-argument callable returning an awaitable. It is
                called inside the task, so synchronous errors are contained too.
            name: Label for logs and metrics
            key: Rate-limit key; ignored when the runner has no limiter

        Returns:
            The task, or None if the launch was dropped
        """
        task_name = name or "unnamed"

        if self._closed:
            self._drop(task_name, "closed")
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._drop(task_name, "no_running_loop")
            return None

        if self._limiter is not None and key is not None and not self._limiter.acquire(key):
            self._drop(
                task_name,
                "rate_limited",
                key=key,
                retry_in=round(self._limiter.get_wait_time(key), 3),
            )
            return None

        self._stats_for(task_name).launched += 1
        if self._metrics:
            self._metrics.record_task_started(task_name)

        started = self._clock()
        task = loop.create_task(self._run(operation, task_name), name=f"hookrelay:{task_name}")
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._finished(t, task_name, started))
        return task

    def launch_all(
        self,
        operations: Iterable[Operation],
        name: str | None = None,
        key: str | None = None,
    ) -> list[asyncio.Task[str]]:
        """Launch several operations, named ``{name}_{index}``."""
        prefix = name or "unnamed"
        tasks = []
        for index, operation in enumerate(operations):
            task = self.launch(operation, name=f"{prefix}_{index}", key=key)
            if task is not None:
                tasks.append(task)
        return tasks

    async def _run(self, operation: Operation, name: str) -> str:
        try:
            await operation()
        except DispatchError as e:
            # Typed delivery failures carry their own context; no traceback
            logger.warning("fire_and_forget.failed", name=name, **e.to_dict())
            self._report(e, name)
            return _FAILED
        except Exception as e:
            logger.error(
                "fire_and_forget.failed",
                name=name,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=e,
            )
            self._report(e, name)
            return _FAILED

        logger.debug("fire_and_forget.completed", name=name)
        return _SUCCEEDED

    def _report(self, error: BaseException, name: str) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error, name)
        except Exception as sink_error:
            logger.error(
                "fire_and_forget.error_handler_failed",
                name=name,
                error=str(sink_error),
            )

    def _finished(self, task: asyncio.Task[str], name: str, started: float) -> None:
        self._tasks.discard(task)
        stats = self._stats_for(name)
        stats.total_duration += self._clock() - started

        if task.cancelled():
            stats.cancelled += 1
            outcome = "cancelled"
            logger.info("fire_and_forget.cancelled", name=name)
        elif task.exception() is not None:
            # Only BaseException subclasses get past _run
            stats.failed += 1
            outcome = _FAILED
        else:
            outcome = task.result()
            if outcome == _SUCCEEDED:
                stats.succeeded += 1
            else:
                stats.failed += 1

        if self._metrics:
            self._metrics.record_task_finished(name, outcome)

    def metrics(self) -> dict[str, dict[str, Any]]:
        """Snapshot of per-name counters."""
        return {name: stats.to_dict() for name, stats in self._stats.items()}

    def reset_metrics(self) -> None:
        self._stats.clear()

    def close(self) -> None:
        """Stop accepting launches; running tasks continue."""
        self._closed = True

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for in-flight tasks, including any they launch.

        Returns:
            True if nothing was left running, False on timeout
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        current = asyncio.current_task()

        while True:
            pending = {task for task in self._tasks if task is not current}
            if not pending:
                return True
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            await asyncio.wait(pending, timeout=remaining)

    async def shutdown(self, timeout: float | None = None) -> bool:
        """Close, drain, then cancel whatever is still running.

        Returns:
            True if every task finished on its own
        """
        self.close()
        drained = await self.drain(timeout)
        if drained:
            return True

        current = asyncio.current_task()
        leftovers = [task for task in self._tasks if task is not current]
        logger.warning("fire_and_forget.cancelling", count=len(leftovers), timeout=timeout)
        for task in leftovers:
            task.cancel()
        await asyncio.gather(*leftovers, return_exceptions=True)
        return False
