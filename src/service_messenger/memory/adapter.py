"""InMemoryBrokerAdapter — IBrokerAdapter with assertion helpers for tests."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ..envelope import Envelope
from ..ports import AdapterMessage
from ..serialization import EnvelopeSerializer
from .broker import InMemoryBroker

if TYPE_CHECKING:
    from ..dead_letter import DeadLetterPolicy
    from ..ports import HandleMessage
    from ..retry import RetryPolicy
    from ..shutdown import CancellationSignal
    from .broker import Delivery, InMemorySubscription

logger = logging.getLogger(__name__)


class InMemoryBrokerAdapter:
    """In-memory adapter following the same provisioning and ack/nack protocol
    as the network adapters.

    Nacked messages are redelivered after ``retry_policy.delay_for_attempt``
    (immediately without a retry policy) and moved to the dead-letter topic
    once ``dead_letter.max_delivery_attempts`` is reached.
    """

    def __init__(
        self,
        broker: InMemoryBroker | None = None,
        *,
        dead_letter: DeadLetterPolicy | None = None,
        retry_policy: RetryPolicy | None = None,
        serializer: EnvelopeSerializer | None = None,
    ) -> None:
        """If broker is None, a new one is created."""
        self._broker = broker or InMemoryBroker()
        self._dead_letter = dead_letter
        self._retry_policy = retry_policy
        self._serializer = serializer or EnvelopeSerializer()
        self._topics: dict[str, str] = {}
        self._lock = asyncio.Lock()

    @property
    def broker(self) -> InMemoryBroker:
        return self._broker

    async def publish(self, queue: str, identifier: str, body: str) -> None:
        data = self._serializer.serialize(Envelope.wrap(identifier, body))
        topic = await self._topic(queue)
        self._broker.publish(topic, data)

    async def subscribe(
        self,
        queue: str,
        handle: HandleMessage,
        cancel: CancellationSignal,
    ) -> None:
        sub = await self._subscription(queue, queue, self._dead_letter)
        logger.info("Listening to in-memory subscription %s", sub.name)

        while not cancel.cancelled:
            delivery = await self._next(sub, cancel)
            if delivery is None:
                return
            await self._deliver(sub, delivery, queue, handle)

    async def close(self) -> None:
        self._topics.clear()

    def get_published(self) -> list[tuple[str, Envelope]]:
        """Return all (topic, envelope) published so far, in order."""
        return [
            (topic, self._serializer.deserialize(data))
            for topic, data in self._broker.published
        ]

    def assert_published(
        self,
        identifier: str,
        count: int = 1,
        queue: str | None = None,
    ) -> None:
        """Assert that exactly `count` messages with this identifier were published.

        Optionally restrict to a specific queue. Raises AssertionError if not met.
        """
        published = self.get_published()
        if queue is not None:
            published = [(t, e) for t, e in published if t == queue]
        matching = [e for _, e in published if e.identifier == identifier]
        assert len(matching) == count, (
            f"Expected {count} message(s) with identifier={identifier!r}, "
            f"got {len(matching)}. Published: "
            f"{[e.identifier for _, e in published]}"
        )

    async def _topic(self, queue: str) -> str:
        async with self._lock:
            if queue in self._topics:
                return self._topics[queue]
            if not self._broker.topic_exists(queue):
                logger.info("Creating in-memory topic %s", queue)
                self._broker.create_topic(queue)
            self._topics[queue] = queue
            return queue

    async def _subscription(
        self, name: str, topic: str, dead_letter: DeadLetterPolicy | None
    ) -> InMemorySubscription:
        top = await self._topic(topic)
        if not self._broker.subscription_exists(name):
            logger.info("Creating in-memory subscription %s", name)
            self._broker.create_subscription(name, top)

        if dead_letter is not None:
            await self._subscription(dead_letter.topic, dead_letter.topic, None)
            logger.info("Updating in-memory subscription %s", name)
            self._broker.update_subscription(
                name, dead_letter=dead_letter, retry=self._retry_policy
            )

        return self._broker.subscriptions[name]

    async def _next(
        self, sub: InMemorySubscription, cancel: CancellationSignal
    ) -> Delivery | None:
        get = asyncio.ensure_future(sub.pending.get())
        stop = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({get, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            if not get.done():
                get.cancel()
        if get.done() and not get.cancelled():
            return get.result()
        return None

    async def _deliver(
        self,
        sub: InMemorySubscription,
        delivery: Delivery,
        queue: str,
        handle: HandleMessage,
    ) -> None:
        delivery.attempt += 1
        logger.debug(
            "Received in-memory message id=%s queue=%s attempt=%d",
            delivery.message_id,
            queue,
            delivery.attempt,
        )
        try:
            envelope = self._serializer.deserialize(delivery.data)
            await handle(
                AdapterMessage(
                    queue=queue, identifier=envelope.identifier, body=envelope.body
                )
            )
        except Exception:  # noqa: BLE001
            self._nack(sub, delivery)
            return
        sub.acked.append(delivery.data)

    def _nack(self, sub: InMemorySubscription, delivery: Delivery) -> None:
        sub.nacks += 1
        if sub.dead_letter is not None and sub.dead_letter.should_dead_letter(
            delivery.attempt
        ):
            logger.info(
                "Dead-lettering message %s from %s to %s",
                delivery.message_id,
                sub.name,
                sub.dead_letter.topic,
            )
            self._broker.publish(sub.dead_letter.topic, delivery.data)
            return

        delay = sub.retry.delay_for_attempt(delivery.attempt) if sub.retry else 0.0
        if delay > 0:
            asyncio.get_running_loop().call_later(
                delay, sub.pending.put_nowait, delivery
            )
        else:
            sub.pending.put_nowait(delivery)
