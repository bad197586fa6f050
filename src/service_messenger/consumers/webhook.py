"""Webhook consumer — routes inbound webhook messages to provider processors."""

from __future__ import annotations

import json
import logging
from typing import Any, ClassVar, Protocol, runtime_checkable

from pydantic import BaseModel, Field, model_validator

from ..contract import BaseMessage

logger = logging.getLogger(__name__)


class WebhookPayload(BaseModel):
    """Generic webhook payload structure."""

    type: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


class WebhookMessage(BaseMessage):
    """A received webhook.

    The payload may arrive as an object or as a JSON-encoded string; the
    string form is kept in ``raw_payload`` for signature validation.
    """

    IDENTIFIER: ClassVar[str] = "webhook"
    QUEUE: ClassVar[str] = "webhook"

    headers: dict[str, str] = Field(default_factory=dict)
    payload: WebhookPayload = Field(default_factory=WebhookPayload)
    raw_payload: str = Field(default="", exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _decode_string_payload(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("payload"), str):
            raw = data["payload"]
            data = {**data, "payload": json.loads(raw) if raw else {}}
            data.setdefault("raw_payload", raw)
        return data


@runtime_checkable
class WebhookProcessor(Protocol):
    """Handles webhooks of specific providers or types."""

    def supports(self, webhook_type: str) -> bool: ...

    async def process(self, message: WebhookMessage) -> None: ...


class WebhookHandler:
    """MessageHandler dispatching webhooks to the first supporting processor.

    Webhooks no processor supports are acknowledged after a debug log.
    """

    def __init__(self, processors: list[WebhookProcessor]) -> None:
        self._processors = processors

    def message(self) -> WebhookMessage:
        return WebhookMessage()

    async def handle(self, message: WebhookMessage) -> None:
        for processor in self._processors:
            if processor.supports(message.payload.type):
                await processor.process(message)
                return

        logger.debug("No processor found for webhook type %s", message.payload.type)
