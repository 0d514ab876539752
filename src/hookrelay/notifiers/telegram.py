"""Telegram Bot API notifier.

Sends text through ``sendMessage``. The bot token is part of the request
URL, so it is never used in the destination key, error context or logs.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from hookrelay.notifiers.webhook import WebhookNotifier

TELEGRAM_API = "https://api.telegram.org"

# sendMessage text limit
MAX_MESSAGE_LENGTH = 4096


class TelegramNotifier(WebhookNotifier):
    """Posts messages to one Telegram chat.

    Args:
        bot_token: Bot API token (secret)
        chat_id: Target chat, channel or user id
        parse_mode: Optional ``HTML`` / ``MarkdownV2`` formatting mode
        api_base: Bot API root, overridable for self-hosted servers
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str | int,
        *,
        parse_mode: str | None = None,
        api_base: str = TELEGRAM_API,
        **kwargs: Any,
    ):
        super().__init__(f"{api_base.rstrip('/')}/bot{bot_token}/sendMessage", **kwargs)
        self._chat_id = chat_id
        self._parse_mode = parse_mode
        self._api_base = api_base.rstrip("/")

    @property
    def chat_id(self) -> str | int:
        return self._chat_id

    @property
    def destination_key(self) -> str:
        return self._name or f"telegram:{self._chat_id}"

    @property
    def safe_url(self) -> str:
        return f"{self._api_base}/bot***/sendMessage"

    def build_body(self, payload: Any) -> dict[str, Any]:
        text = payload if isinstance(payload, str) else json.dumps(payload, indent=2, default=str)
        if len(text) > MAX_MESSAGE_LENGTH:
            text = text[: MAX_MESSAGE_LENGTH - 3] + "..."

        body: dict[str, Any] = {"chat_id": self._chat_id, "text": text}
        if self._parse_mode:
            body["parse_mode"] = self._parse_mode
        return body

    def retry_after(self, response: httpx.Response) -> float | None:
        # Telegram reports flood waits in the body: {"parameters": {"retry_after": 5}}
        try:
            parameters = response.json().get("parameters") or {}
        except (ValueError, AttributeError):
            parameters = {}
        value = parameters.get("retry_after")
        if isinstance(value, (int, float)):
            return float(value)
        return super().retry_after(response)
