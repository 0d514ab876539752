"""
Notification data types.

``NotificationEvent`` is the immutable notice a producer hands to the
engine. ``InspectionRule`` decides which events a destination is interested
in, by response status class and URI substring filters.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

from hookrelay.core.timestamps import utc_now

NO_RESPONSE = -1


class ResponseStatus(str, Enum):
    """HTTP response status classes."""

    INFORMATIONAL = "informational"
    SUCCESS = "success"
    REDIRECTION = "redirection"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"  # Matches every status code

    def matches(self, status_code: int) -> bool:
        """Check whether ``status_code`` belongs to this class."""
        if self is ResponseStatus.UNKNOWN:
            return True
        low = {
            ResponseStatus.INFORMATIONAL: 100,
            ResponseStatus.SUCCESS: 200,
            ResponseStatus.REDIRECTION: 300,
            ResponseStatus.CLIENT_ERROR: 400,
            ResponseStatus.SERVER_ERROR: 500,
        }[self]
        return low <= status_code < low + 100


@dataclass(frozen=True)
class NotificationEvent:
    """
    An interesting HTTP exchange worth notifying about.

    Produced by an interceptor in the host application and consumed
    read-only by the engine.

    Attributes:
        method: HTTP method, upper-cased on creation
        uri: Full request URI
        status_code: Response status, ``-1`` when no response arrived
        response_body: Optional response body (any JSON-friendly value)
        error: Optional error description for failed exchanges
        duration_ms: Optional round-trip time in milliseconds
        extra: Free-form metadata (read-only view)
        created_at: When the event was produced (UTC)
    """

    method: str
    uri: str
    status_code: int = NO_RESPONSE
    response_body: Any = None
    error: str | None = None
    duration_ms: int | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    @property
    def signature(self) -> str:
        """Identity of the logical event, used for dedup."""
        return f"{self.method} {self.uri}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        result: dict[str, Any] = {
            "method": self.method,
            "uri": self.uri,
            "status_code": self.status_code,
            "created_at": self.created_at.isoformat(),
        }
        if self.response_body is not None:
            result["response_body"] = self.response_body
        if self.error is not None:
            result["error"] = self.error
        if self.duration_ms is not None:
            result["duration_ms"] = self.duration_ms
        if self.extra:
            result["extra"] = dict(self.extra)
        return result


def dedup_key(destination_key: str, event: NotificationEvent) -> str:
    """Cooldown key: suppression is per (destination, event signature)."""
    return f"{destination_key}|{event.signature}"


_DEFAULT_STATUSES = (ResponseStatus.CLIENT_ERROR, ResponseStatus.SERVER_ERROR)


@dataclass(frozen=True)
class InspectionRule:
    """
    Which events a destination wants to hear about.

    An event matches when its status is in one of ``statuses`` (an empty
    tuple accepts every status), its URI contains one of ``include_uris``
    (empty accepts every URI), and it contains none of ``exclude_uris``.

    Example:
        >>> rule = InspectionRule(include_uris=("/api/",), exclude_uris=("/health",))
        >>> rule.matches(NotificationEvent("GET", "https://x.io/api/users", 500))
        True
        >>> rule.matches(NotificationEvent("GET", "https://x.io/api/health", 500))
        False
    """

    statuses: tuple[ResponseStatus, ...] = _DEFAULT_STATUSES
    include_uris: tuple[str, ...] = ()
    exclude_uris: tuple[str, ...] = ()

    @classmethod
    def all(cls) -> InspectionRule:
        """A rule that accepts every event."""
        return cls(statuses=())

    def matches(self, event: NotificationEvent) -> bool:
        status_ok = not self.statuses or any(
            status.matches(event.status_code) for status in self.statuses
        )
        include_ok = not self.include_uris or any(
            pattern in event.uri for pattern in self.include_uris
        )
        exclude_ok = not any(pattern in event.uri for pattern in self.exclude_uris)
        return status_ok and include_ok and exclude_ok
