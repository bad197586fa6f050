"""RabbitMQAdapter — IBrokerAdapter on fanout exchanges and quorum queues."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import aio_pika
from aio_pika.exceptions import AMQPError

from ..envelope import Envelope
from ..exceptions import MessagingConnectionError, PublishTimeoutError
from ..ports import AdapterMessage
from ..serialization import EnvelopeSerializer

if TYPE_CHECKING:
    from aio_pika.abc import (
        AbstractChannel,
        AbstractExchange,
        AbstractIncomingMessage,
        AbstractQueue,
    )

    from ..dead_letter import DeadLetterPolicy
    from ..ports import HandleMessage
    from ..shutdown import CancellationSignal
    from .connection import RabbitMQConnectionManager

logger = logging.getLogger(__name__)


class RabbitMQAdapter:
    """RabbitMQ adapter implementing IBrokerAdapter.

    A topic is a durable fanout exchange named after the queue; its
    subscription is a durable quorum queue of the same name. Nacked messages
    are requeued and the broker dead-letters them once ``x-delivery-limit``
    redeliveries were used up. Declarations are idempotent and repeated on
    every subscribe, so the dead-letter arguments are always re-asserted.
    """

    def __init__(
        self,
        connection: RabbitMQConnectionManager,
        *,
        dead_letter: DeadLetterPolicy | None = None,
        serializer: EnvelopeSerializer | None = None,
        prefetch_count: int = 10,
        publish_timeout: float = 5.0,
    ) -> None:
        """Configure adapter.

        Args:
            connection: Shared connection manager.
            dead_letter: If set, queues dead-letter to this exchange.
            serializer: Used for envelopes; default EnvelopeSerializer().
            prefetch_count: QoS prefetch per subscription, i.e. how many
                messages may be handled concurrently.
            publish_timeout: Seconds to wait for the publisher confirm.
        """
        self._connection = connection
        self._dead_letter = dead_letter
        self._serializer = serializer or EnvelopeSerializer()
        self._prefetch_count = prefetch_count
        self._publish_timeout = publish_timeout
        self._channel: AbstractChannel | None = None
        self._exchanges: dict[str, AbstractExchange] = {}
        self._lock = asyncio.Lock()

    async def publish(self, queue: str, identifier: str, body: str) -> None:
        data = self._serializer.serialize(Envelope.wrap(identifier, body))
        exchange = await self._exchange(queue)
        try:
            await asyncio.wait_for(
                exchange.publish(
                    aio_pika.Message(
                        body=data,
                        content_type="application/json",
                        delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                        type=identifier,
                    ),
                    routing_key=queue,
                ),
                self._publish_timeout,
            )
        except asyncio.TimeoutError as e:
            raise PublishTimeoutError(queue, self._publish_timeout) from e
        except AMQPError as e:
            raise MessagingConnectionError(str(e)) from e

    async def subscribe(
        self,
        queue: str,
        handle: HandleMessage,
        cancel: CancellationSignal,
    ) -> None:
        channel = await self._connection.channel(prefetch_count=self._prefetch_count)
        try:
            declared = await self._queue(channel, queue, self._dead_letter)
            in_flight = 0
            idle = asyncio.Event()
            idle.set()

            async def on_message(raw: AbstractIncomingMessage) -> None:
                nonlocal in_flight
                in_flight += 1
                idle.clear()
                try:
                    await self._on_message(raw, queue, handle)
                finally:
                    in_flight -= 1
                    if in_flight == 0:
                        idle.set()

            tag = await declared.consume(on_message)
            logger.info("Listening to RabbitMQ queue %s", queue)
            await cancel.wait()

            logger.info("Stopping RabbitMQ consumer on %s", queue)
            await declared.cancel(tag)
            # Let deliveries scheduled before the cancel start and register.
            await asyncio.sleep(0)
            await idle.wait()
        except AMQPError as e:
            raise MessagingConnectionError(str(e)) from e
        finally:
            await channel.close()

    async def close(self) -> None:
        self._exchanges.clear()
        self._channel = None
        await self._connection.close()

    async def health_check(self) -> bool:
        """Return True if the connection is healthy."""
        return await self._connection.health_check()

    async def _on_message(
        self, raw: AbstractIncomingMessage, queue: str, handle: HandleMessage
    ) -> None:
        logger.debug("Received RabbitMQ message id=%s queue=%s", raw.message_id, queue)
        try:
            envelope = self._serializer.deserialize(raw.body)
            await handle(
                AdapterMessage(
                    queue=queue, identifier=envelope.identifier, body=envelope.body
                )
            )
        except Exception:  # noqa: BLE001
            await raw.nack(requeue=True)
            return
        await raw.ack()

    async def _exchange(self, name: str) -> AbstractExchange:
        """Declare the fanout exchange on the publishing channel, memoised."""
        async with self._lock:
            if name in self._exchanges:
                return self._exchanges[name]
            if self._channel is None or self._channel.is_closed:
                self._channel = await self._connection.channel()
            try:
                exchange = await _declare_exchange(self._channel, name)
            except AMQPError as e:
                raise MessagingConnectionError(str(e)) from e
            self._exchanges[name] = exchange
            return exchange

    async def _queue(
        self,
        channel: AbstractChannel,
        name: str,
        dead_letter: DeadLetterPolicy | None,
    ) -> AbstractQueue:
        """Declare exchange, queue and binding; with a dead-letter policy the
        dead-letter exchange and queue are declared first."""
        arguments: dict[str, Any] = {"x-queue-type": "quorum"}
        if dead_letter is not None:
            await self._queue(channel, dead_letter.topic, None)
            arguments["x-dead-letter-exchange"] = dead_letter.topic
            arguments["x-delivery-limit"] = dead_letter.max_delivery_attempts - 1

        exchange = await _declare_exchange(channel, name)
        logger.info("Declaring RabbitMQ queue %s", name)
        queue = await channel.declare_queue(name, durable=True, arguments=arguments)
        await queue.bind(exchange, routing_key=name)
        return queue


async def _declare_exchange(channel: AbstractChannel, name: str) -> AbstractExchange:
    return await channel.declare_exchange(
        name, aio_pika.ExchangeType.FANOUT, durable=True
    )
