"""EventPublisher — publishes generic events to a caller-chosen queue."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, Field, PrivateAttr

from ..contract import BaseMessage
from ..exceptions import EventPublishError

if TYPE_CHECKING:
    from ..contract import MessageDispatcher

logger = logging.getLogger(__name__)


class Event(BaseModel):
    """A generic event to be published."""

    type: str
    data: dict[str, Any] = Field(default_factory=dict)


class EventMessage(BaseMessage):
    """Generic event notification; the queue is chosen per instance."""

    IDENTIFIER: ClassVar[str] = "event"

    type: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    _queue: str = PrivateAttr(default="")

    @classmethod
    def for_queue(cls, event: Event, queue: str) -> EventMessage:
        message = cls(type=event.type, data=event.data)
        message._queue = queue
        return message

    def queue(self) -> str:
        return self._queue


class EventPublisher:
    """Wraps events in ``EventMessage`` and dispatches them."""

    def __init__(self, dispatcher: MessageDispatcher) -> None:
        self._dispatcher = dispatcher

    async def publish_event(self, event: Event, queue: str) -> None:
        message = EventMessage.for_queue(event, queue)
        logger.info("Publishing event message type=%s queue=%s", event.type, queue)
        try:
            await self._dispatcher.dispatch(message)
        except Exception as e:
            raise EventPublishError(f"failed to dispatch event message: {e}") from e
