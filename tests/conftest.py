"""
Shared pytest fixtures for hookrelay tests.

This module provides:
- A manual clock so breaker timeouts and cooldown windows are deterministic
- A recording sleep that advances the manual clock instead of waiting
- A scripted notifier whose outcome per call is set up front

Usage:
    Fixtures are auto-discovered by pytest::

        async def test_something(clock, sleep, scripted_notifier):
            notifier = scripted_notifier([TransientDeliveryError("503"), None])
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

import pytest
import structlog


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays and advances a clock."""

    def __init__(self, clock: ManualClock | None = None):
        self.delays: list[float] = []
        self._clock = clock

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self._clock is not None:
            self._clock.advance(delay)
        await asyncio.sleep(0)


class ScriptedNotifier:
    """Notifier whose n-th call raises ``outcomes[n]`` (None = success).

    Calls past the end of the script succeed.
    """

    def __init__(self, outcomes: Iterable[BaseException | None] = (), key: str = "scripted"):
        self.outcomes = list(outcomes)
        self.payloads: list[Any] = []
        self.key = key

    @property
    def destination_key(self) -> str:
        return self.key

    @property
    def calls(self) -> int:
        return len(self.payloads)

    async def send(self, payload: Any) -> None:
        index = len(self.payloads)
        self.payloads.append(payload)
        await asyncio.sleep(0)
        if index < len(self.outcomes) and self.outcomes[index] is not None:
            raise self.outcomes[index]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sleep(clock: ManualClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def scripted_notifier():
    """Factory: ``scripted_notifier([error, None, ...], key="dest")``."""

    def _make(outcomes: Iterable[BaseException | None] = (), key: str = "scripted") -> ScriptedNotifier:
        return ScriptedNotifier(outcomes, key=key)

    return _make


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo any ``configure_logging`` a test (or the CLI) performed."""
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
