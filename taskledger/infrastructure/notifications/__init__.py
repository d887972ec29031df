"""Notification sinks"""

from .log import LogNotifier
from .webhook import (
    WebhookConfig,
    WebhookNotifier,
    WebhookPayload,
    create_webhook_config_from_settings,
)

__all__ = [
    "LogNotifier",
    "WebhookConfig",
    "WebhookNotifier",
    "WebhookPayload",
    "create_webhook_config_from_settings",
]
