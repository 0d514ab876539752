"""Notifier protocol.

A notifier performs one delivery of an already-rendered payload to one
destination. The engine treats it as an opaque async capability: success
is a normal return, failure is an exception. Raising one of the
:mod:`hookrelay.core.errors` delivery errors lets the retry classifier tell
transient failures from permanent ones; anything else is classified by
the retry policy's fallback rules.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Notifier(Protocol):
    """Protocol every delivery transport implements."""

    async def send(self, payload: Any) -> None:
        """Deliver ``payload``; raise on failure."""
        ...


@runtime_checkable
class KeyedNotifier(Notifier, Protocol):
    """Notifier that can name its own destination key."""

    @property
    def destination_key(self) -> str:
        """Stable identifier of the endpoint, safe to log."""
        ...
