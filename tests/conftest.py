"""Pytest fixtures and doubles for messenger tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar

import pytest

from service_messenger.contract import BaseMessage
from service_messenger.memory import InMemoryBroker, InMemoryBrokerAdapter
from service_messenger.ports import AdapterMessage, HandleMessage
from service_messenger.shutdown import CancellationSignal, GracefulShutdown


class OrderCreated(BaseMessage):
    IDENTIFIER: ClassVar[str] = "order.created"
    QUEUE: ClassVar[str] = "orders"

    order_id: str = ""
    amount: int = 0


class OrderShipped(BaseMessage):
    IDENTIFIER: ClassVar[str] = "order.shipped"
    QUEUE: ClassVar[str] = "orders"

    order_id: str = ""


class InvoiceSent(BaseMessage):
    IDENTIFIER: ClassVar[str] = "invoice.sent"
    QUEUE: ClassVar[str] = "invoices"

    invoice_id: str = ""


class RecordingHandler:
    """MessageHandler storing every handled message; optionally failing."""

    def __init__(
        self,
        message_type: type[BaseMessage],
        *,
        fail_times: int = 0,
    ) -> None:
        self.message_type = message_type
        self.fail_times = fail_times
        self.handled: list[Any] = []
        self.received = asyncio.Event()

    def message(self) -> BaseMessage:
        return self.message_type()

    async def handle(self, message: Any) -> None:
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ValueError("handler failed")
        self.handled.append(message)
        self.received.set()


@dataclass
class FakeAdapter:
    """Scriptable IBrokerAdapter: each subscribe call pops one outcome.

    An outcome of None returns immediately, an exception is raised; once the
    script is exhausted subscribe blocks until cancelled.
    """

    publish_error: BaseException | None = None
    outcomes: list[BaseException | None] = field(default_factory=list)
    published: list[tuple[str, str, str]] = field(default_factory=list)
    subscribed: list[str] = field(default_factory=list)
    handles: list[HandleMessage] = field(default_factory=list)
    events: list[Any] = field(default_factory=list)

    async def publish(self, queue: str, identifier: str, body: str) -> None:
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((queue, identifier, body))

    async def subscribe(
        self, queue: str, handle: HandleMessage, cancel: CancellationSignal
    ) -> None:
        self.subscribed.append(queue)
        self.handles.append(handle)
        self.events.append("subscribe")
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if outcome is not None:
                raise outcome
            return
        await cancel.wait()

    async def close(self) -> None:
        return None

    async def deliver(self, identifier: str, body: str) -> None:
        """Invoke the latest subscription callback like a broker would."""
        await self.handles[-1](
            AdapterMessage(queue=self.subscribed[-1], identifier=identifier, body=body)
        )


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until *predicate* holds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def shutdown() -> GracefulShutdown:
    return GracefulShutdown()


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker()


@pytest.fixture
def memory_adapter(broker: InMemoryBroker) -> InMemoryBrokerAdapter:
    return InMemoryBrokerAdapter(broker)
