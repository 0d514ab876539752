"""Generic JSON webhook notifier.

POSTs the payload as JSON through :class:`httpx.AsyncClient` and maps the
outcome onto the delivery error taxonomy:

======================================  ============================
Outcome                                 Raised
======================================  ============================
2xx / 3xx                               nothing
429, 5xx                                ``TransientDeliveryError``
other 4xx                               ``PermanentDeliveryError``
timeout                                 ``DeliveryTimeoutError``
connection / protocol error             ``TransientDeliveryError``
======================================  ============================

A ``Retry-After`` header (seconds or HTTP date) on a 429/503 is carried on
the error as ``retry_after`` so the retry executor can honour it.

Service-specific notifiers subclass this and override ``build_body`` (and,
where the service reports rate limits differently, ``retry_after``).
"""

from __future__ import annotations

from datetime import UTC
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import urlsplit

import httpx

from hookrelay.core.errors import (
    DeliveryTimeoutError,
    PermanentDeliveryError,
    TransientDeliveryError,
)
from hookrelay.core.logging import get_logger
from hookrelay.core.timestamps import utc_now

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 10.0


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header into seconds from now."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - utc_now()).total_seconds())


class WebhookNotifier:
    """POST JSON payloads to a URL.

    Args:
        url: Endpoint to POST to
        client: Shared ``httpx.AsyncClient``; one is created (and owned) if omitted
        timeout: Request timeout for an owned client
        headers: Extra request headers
        name: Destination key override
    """

    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        name: str | None = None,
    ):
        self._url = url
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._headers = headers or {}
        self._name = name

    @property
    def destination_key(self) -> str:
        return self._name or f"webhook:{self.safe_url}"

    @property
    def safe_url(self) -> str:
        """URL without query string, fit for logs."""
        parts = urlsplit(self._url)
        return f"{parts.scheme}://{parts.netloc}{parts.path}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def build_body(self, payload: Any) -> Any:
        """JSON body for ``payload``; passes it through unchanged."""
        return payload

    def retry_after(self, response: httpx.Response) -> float | None:
        return parse_retry_after(response.headers.get("Retry-After"))

    async def send(self, payload: Any) -> None:
        """POST ``payload`` and raise a delivery error unless it was accepted."""
        body = self.build_body(payload)
        client = self._get_client()

        try:
            response = await client.post(self._url, json=body, headers=self._headers)
        except httpx.TimeoutException as e:
            raise DeliveryTimeoutError(
                self._timeout,
                operation=self.destination_key,
                cause=e,
            ).with_context(destination=self.destination_key, url=self.safe_url) from e
        except httpx.TransportError as e:
            raise TransientDeliveryError(
                f"{type(e).__name__}: {e}",
                cause=e,
            ).with_context(destination=self.destination_key, url=self.safe_url) from e

        self.raise_for_status(response)
        logger.debug(
            "notifier.delivered",
            destination=self.destination_key,
            status_code=response.status_code,
        )

    def raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        message = f"HTTP {status} from {self.destination_key}"
        if status == 429 or status >= 500:
            raise TransientDeliveryError(
                message,
                status_code=status,
                retry_after=self.retry_after(response),
            ).with_context(destination=self.destination_key, url=self.safe_url)

        raise PermanentDeliveryError(
            message,
            status_code=status,
        ).with_context(
            destination=self.destination_key,
            url=self.safe_url,
            response=response.text[:200],
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this notifier created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> WebhookNotifier:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.destination_key!r})"
