"""Tests for the HTTP and console notifiers."""

import io
import json
from datetime import timedelta
from email.utils import format_datetime

import httpx
import pytest
from rich.console import Console

from hookrelay.core.errors import (
    DeliveryTimeoutError,
    PermanentDeliveryError,
    TransientDeliveryError,
)
from hookrelay.core.models import NotificationEvent
from hookrelay.core.timestamps import utc_now
from hookrelay.dispatch import render_event, render_events
from hookrelay.notifiers import (
    ConsoleNotifier,
    DiscordNotifier,
    KeyedNotifier,
    Notifier,
    TelegramNotifier,
    WebhookNotifier,
    parse_retry_after,
)

DISCORD_URL = "https://discord.com/api/webhooks/123456/s3cr3t-token"


class Recorder:
    """httpx.MockTransport handler that records requests and replays a response."""

    def __init__(self, response=None, raises=None):
        self.requests: list[httpx.Request] = []
        self.response = response or httpx.Response(204)
        self.raises = raises

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raises is not None:
            raise self.raises(request)
        return self.response

    @property
    def bodies(self):
        return [json.loads(request.content) for request in self.requests]


def client_for(recorder: Recorder) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(recorder))


class TestParseRetryAfter:
    """Tests for Retry-After parsing."""

    def test_seconds(self):
        assert parse_retry_after("5") == 5.0
        assert parse_retry_after("1.5") == 1.5

    def test_missing_or_garbage(self):
        assert parse_retry_after(None) is None
        assert parse_retry_after("") is None
        assert parse_retry_after("soon") is None

    def test_http_date(self):
        when = format_datetime(utc_now() + timedelta(seconds=30), usegmt=True)
        assert 25.0 <= parse_retry_after(when) <= 30.0

    def test_past_date_clamps_to_zero(self):
        when = format_datetime(utc_now() - timedelta(hours=1), usegmt=True)
        assert parse_retry_after(when) == 0.0


class TestWebhookNotifier:
    """Tests for the generic JSON webhook."""

    @pytest.mark.asyncio
    async def test_posts_json(self):
        recorder = Recorder(httpx.Response(200))
        notifier = WebhookNotifier(
            "https://hooks.example/in?sig=abc",
            client=client_for(recorder),
            headers={"X-Token": "t"},
        )
        await notifier.send({"status": 500})

        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.headers["X-Token"] == "t"
        assert recorder.bodies == [{"status": 500}]

    def test_key_and_safe_url_hide_query(self):
        notifier = WebhookNotifier("https://hooks.example/in?sig=abc")
        assert notifier.safe_url == "https://hooks.example/in"
        assert notifier.destination_key == "webhook:https://hooks.example/in"
        assert WebhookNotifier("https://x", name="ops").destination_key == "ops"

    def test_satisfies_protocols(self):
        notifier = WebhookNotifier("https://hooks.example")
        assert isinstance(notifier, Notifier)
        assert isinstance(notifier, KeyedNotifier)

    @pytest.mark.asyncio
    async def test_429_is_transient_with_retry_after(self):
        recorder = Recorder(httpx.Response(429, headers={"Retry-After": "7"}))
        notifier = WebhookNotifier("https://hooks.example", client=client_for(recorder))

        with pytest.raises(TransientDeliveryError) as exc_info:
            await notifier.send({})
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 7.0
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_5xx_is_transient(self):
        recorder = Recorder(httpx.Response(503))
        notifier = WebhookNotifier("https://hooks.example", client=client_for(recorder))
        with pytest.raises(TransientDeliveryError) as exc_info:
            await notifier.send({})
        assert exc_info.value.context.destination == "webhook:https://hooks.example"

    @pytest.mark.asyncio
    async def test_4xx_is_permanent(self):
        recorder = Recorder(httpx.Response(404, text="Unknown Webhook"))
        notifier = WebhookNotifier("https://hooks.example", client=client_for(recorder))

        with pytest.raises(PermanentDeliveryError) as exc_info:
            await notifier.send({})
        error = exc_info.value
        assert error.status_code == 404
        assert error.retryable is False
        assert error.context.metadata["response"] == "Unknown Webhook"

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        recorder = Recorder(raises=lambda request: httpx.ConnectError("refused", request=request))
        notifier = WebhookNotifier("https://hooks.example", client=client_for(recorder))

        with pytest.raises(TransientDeliveryError) as exc_info:
            await notifier.send({})
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert not isinstance(exc_info.value, DeliveryTimeoutError)

    @pytest.mark.asyncio
    async def test_timeout_is_delivery_timeout(self):
        recorder = Recorder(raises=lambda request: httpx.ReadTimeout("slow", request=request))
        notifier = WebhookNotifier("https://hooks.example", client=client_for(recorder), timeout=2.0)

        with pytest.raises(DeliveryTimeoutError) as exc_info:
            await notifier.send({})
        assert exc_info.value.timeout == 2.0

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        notifier = WebhookNotifier("https://hooks.example")
        client = notifier._get_client()
        async with notifier:
            pass
        assert client.is_closed
        assert notifier._client is None

    @pytest.mark.asyncio
    async def test_shared_client_left_open(self):
        client = client_for(Recorder())
        notifier = WebhookNotifier("https://hooks.example", client=client)
        await notifier.aclose()
        assert not client.is_closed
        await client.aclose()


class TestDiscordNotifier:
    """Tests for Discord webhook formatting."""

    def test_key_and_masked_url(self):
        notifier = DiscordNotifier(DISCORD_URL)
        assert notifier.webhook_id == "123456"
        assert notifier.destination_key == "discord:123456"
        assert "s3cr3t" not in notifier.safe_url
        assert notifier.safe_url.endswith("/api/webhooks/123456/***")

    def test_text_body_truncated(self):
        notifier = DiscordNotifier(DISCORD_URL, username="hookrelay")
        body = notifier.build_body("x" * 2500)
        assert len(body["content"]) == 2000
        assert body["content"].endswith("...")
        assert body["username"] == "hookrelay"

    def test_mapping_passes_through(self):
        notifier = DiscordNotifier(DISCORD_URL, avatar_url="https://img")
        body = notifier.build_body({"embeds": [{"title": "500"}]})
        assert body["embeds"] == [{"title": "500"}]
        assert body["avatar_url"] == "https://img"

    def test_structured_payload_rendered_as_json_text(self):
        body = DiscordNotifier(DISCORD_URL).build_body(["a", 1])
        assert json.loads(body["content"]) == ["a", 1]

    def test_rendered_event_becomes_content(self):
        """Mappings without content or embeds are sent as JSON text."""
        event = NotificationEvent("GET", "https://api.example/users", 500)
        body = DiscordNotifier(DISCORD_URL).build_body(render_event(event))
        assert set(body) == {"content"}
        assert json.loads(body["content"])["uri"] == "https://api.example/users"

    def test_batch_rendering_becomes_content(self):
        events = [NotificationEvent("GET", "https://x/a", 500), NotificationEvent("GET", "https://x/b", 502)]
        body = DiscordNotifier(DISCORD_URL).build_body(render_events(events))
        assert json.loads(body["content"])["count"] == 2

    @pytest.mark.asyncio
    async def test_sends_content(self):
        recorder = Recorder()
        notifier = DiscordNotifier(DISCORD_URL, client=client_for(recorder))
        await notifier.send("GET /api -> 500")
        assert recorder.bodies == [{"content": "GET /api -> 500"}]
        assert str(recorder.requests[0].url) == DISCORD_URL


class TestTelegramNotifier:
    """Tests for the Telegram Bot API notifier."""

    def test_url_key_and_masking(self):
        notifier = TelegramNotifier("123:ABC", chat_id=-100)
        assert notifier._url == "https://api.telegram.org/bot123:ABC/sendMessage"
        assert notifier.destination_key == "telegram:-100"
        assert "ABC" not in notifier.safe_url
        assert notifier.chat_id == -100

    def test_body(self):
        notifier = TelegramNotifier("t", chat_id="@ops", parse_mode="HTML")
        body = notifier.build_body("<b>500</b>")
        assert body == {"chat_id": "@ops", "text": "<b>500</b>", "parse_mode": "HTML"}

    def test_body_truncated(self):
        body = TelegramNotifier("t", chat_id=1).build_body("y" * 5000)
        assert len(body["text"]) == 4096

    @pytest.mark.asyncio
    async def test_retry_after_from_json_body(self):
        recorder = Recorder(
            httpx.Response(429, json={"ok": False, "parameters": {"retry_after": 12}})
        )
        notifier = TelegramNotifier("t", chat_id=1, client=client_for(recorder))
        with pytest.raises(TransientDeliveryError) as exc_info:
            await notifier.send("hello")
        assert exc_info.value.retry_after == 12.0

    @pytest.mark.asyncio
    async def test_retry_after_falls_back_to_header(self):
        recorder = Recorder(httpx.Response(429, text="busy", headers={"Retry-After": "3"}))
        notifier = TelegramNotifier("t", chat_id=1, client=client_for(recorder))
        with pytest.raises(TransientDeliveryError) as exc_info:
            await notifier.send("hello")
        assert exc_info.value.retry_after == 3.0


class TestConsoleNotifier:
    """Tests for the console notifier."""

    @pytest.mark.asyncio
    async def test_prints_and_records(self):
        buffer = io.StringIO()
        notifier = ConsoleNotifier("dry-run", console=Console(file=buffer, width=120))
        await notifier.send({"uri": "/api"})

        assert notifier.sent == [{"uri": "/api"}]
        assert notifier.destination_key == "dry-run"
        output = buffer.getvalue()
        assert "[dry-run]" in output
        assert "/api" in output
