"""hookrelay notifiers - delivery transports behind the Notifier protocol."""

from hookrelay.notifiers.console import ConsoleNotifier
from hookrelay.notifiers.discord import DiscordNotifier
from hookrelay.notifiers.protocol import KeyedNotifier, Notifier
from hookrelay.notifiers.telegram import TelegramNotifier
from hookrelay.notifiers.webhook import WebhookNotifier, parse_retry_after

__all__ = [
    "ConsoleNotifier",
    "DiscordNotifier",
    "KeyedNotifier",
    "Notifier",
    "TelegramNotifier",
    "WebhookNotifier",
    "parse_retry_after",
]
