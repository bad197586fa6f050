"""Ready-made message handlers."""

from __future__ import annotations

from .webhook import WebhookHandler, WebhookMessage, WebhookPayload, WebhookProcessor

__all__ = [
    "WebhookHandler",
    "WebhookMessage",
    "WebhookPayload",
    "WebhookProcessor",
]
