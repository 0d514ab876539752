"""Discord webhook notifier."""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import urlsplit

from hookrelay.notifiers.webhook import WebhookNotifier

# Discord rejects message content longer than this
MAX_CONTENT_LENGTH = 2000


class DiscordNotifier(WebhookNotifier):
    """Posts to a Discord incoming webhook.

    Mappings that already carry ``content`` or ``embeds`` are sent as-is so
    callers can supply embeds. Anything else becomes ``{"content": ...}``:
    strings verbatim, other values as indented JSON, truncated to Discord's
    limit.
    The webhook token in the URL path is kept out of keys and logs.
    """

    def __init__(
        self,
        url: str,
        *,
        username: str | None = None,
        avatar_url: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(url, **kwargs)
        self._username = username
        self._avatar_url = avatar_url

    @property
    def webhook_id(self) -> str:
        # .../api/webhooks/{id}/{token}
        segments = [s for s in urlsplit(self._url).path.split("/") if s]
        if "webhooks" in segments:
            index = segments.index("webhooks")
            if index + 1 < len(segments):
                return segments[index + 1]
        return "unknown"

    @property
    def destination_key(self) -> str:
        return self._name or f"discord:{self.webhook_id}"

    @property
    def safe_url(self) -> str:
        parts = urlsplit(self._url)
        return f"{parts.scheme}://{parts.netloc}/api/webhooks/{self.webhook_id}/***"

    def build_body(self, payload: Any) -> dict[str, Any]:
        if isinstance(payload, dict) and ("content" in payload or "embeds" in payload):
            body = dict(payload)
        else:
            text = payload if isinstance(payload, str) else json.dumps(payload, indent=2, default=str)
            if len(text) > MAX_CONTENT_LENGTH:
                text = text[: MAX_CONTENT_LENGTH - 3] + "..."
            body = {"content": text}

        if self._username and "username" not in body:
            body["username"] = self._username
        if self._avatar_url and "avatar_url" not in body:
            body["avatar_url"] = self._avatar_url
        return body
