"""Message and handler contracts shared by producers and consumers."""

from __future__ import annotations

from typing import Any, ClassVar, Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class Message(Protocol):
    """
    A unit that can be dispatched to and consumed from a queue.

    ``identifier()`` selects the handler on the consuming side; ``queue()``
    is the logical destination (not yet prefixed with the environment).
    The message must be JSON serialisable.
    """

    def identifier(self) -> str: ...

    def queue(self) -> str: ...


@runtime_checkable
class MessageHandler(Protocol):
    """
    Consumes messages of one identifier.

    ``message()`` must return a *fresh* instance on every call: it is used as
    the decode target for incoming bodies. ``handle`` signals failure by
    raising, which makes the broker redeliver the message.
    """

    def message(self) -> Message: ...

    def handle(self, message: Any) -> Any: ...


@runtime_checkable
class MessageDispatcher(Protocol):
    """Anything able to dispatch a message (usually a ``Messenger``)."""

    async def dispatch(self, message: Message) -> None: ...


class BaseMessage(BaseModel):
    """Pydantic base class for messages with a fixed identifier and queue.

    Usage::

        class OrderCreated(BaseMessage):
            IDENTIFIER: ClassVar[str] = "order.created"
            QUEUE: ClassVar[str] = "orders"

            order_id: str
    """

    IDENTIFIER: ClassVar[str] = ""
    QUEUE: ClassVar[str] = ""

    def identifier(self) -> str:
        return self.IDENTIFIER or type(self).__name__

    def queue(self) -> str:
        return self.QUEUE
