"""Messenger — dispatches messages and runs multiplexed subscriptions.

The messenger is the only component application code touches. It prefixes
queue names with the deployment environment, encodes messages, and routes
received messages to the handler whose message identifier matches.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any

from .dead_letter import DeadLetterPolicy
from .exceptions import (
    ConfigurationError,
    DifferentQueuesError,
    HandlerNotFoundError,
    SubscriptionCancelledError,
)
from .serialization import MessageCodec

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .config import MessengerConfig
    from .contract import Message, MessageHandler
    from .ports import AdapterMessage, IBrokerAdapter, IShutdownCoordinator
    from .shutdown import CancellationSignal

logger = logging.getLogger(__name__)


class Messenger:
    """Environment-aware front for a broker adapter.

    Usage::

        messenger = Messenger(adapter, environment="dev", shutdown=shutdown)
        await messenger.dispatch(OrderCreated(order_id="1"))

        # Blocks until shutdown; run one task per handler group.
        asyncio.create_task(messenger.subscribe(OrderCreatedHandler()))
    """

    def __init__(
        self,
        adapter: IBrokerAdapter,
        *,
        environment: str,
        shutdown: IShutdownCoordinator,
        restart_timeout: float = 0.0,
        codec: MessageCodec | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Configure the messenger.

        Args:
            adapter: Broker adapter doing provisioning and transport.
            environment: Deployment environment used to prefix queue names.
            shutdown: Coordinator providing the cancellation signal of
                every subscription.
            restart_timeout: Seconds to wait before restarting a failed
                subscription; 0 makes failures fatal.
            codec: Message body codec; default MessageCodec().
            sleep: Awaitable sleep used for restart backoff.
        """
        self._adapter = adapter
        self._environment = environment
        self._shutdown = shutdown
        self._restart_timeout = restart_timeout
        self._codec = codec or MessageCodec()
        self._sleep = sleep

    @property
    def adapter(self) -> IBrokerAdapter:
        return self._adapter

    @property
    def environment(self) -> str:
        return self._environment

    def prefix_queue(self, queue: str) -> str:
        """Prefix the queue name with the environment name.

        Queues of different environments sharing one broker project must not
        interfere with each other.
        """
        return f"{self._environment}.{queue}"

    async def dispatch(self, message: Message) -> None:
        """Send *message* to its queue as JSON and wait for the broker ack."""
        identifier = message.identifier()
        queue = self.prefix_queue(message.queue())
        logger.info("Dispatching message %s to %s", identifier, queue)

        try:
            body = self._codec.encode(message)
            await self._adapter.publish(queue, identifier, body)
        except Exception:
            logger.exception("Error dispatching message %s to %s", identifier, queue)
            raise
        logger.info("Message %s dispatched to %s", identifier, queue)

    async def subscribe(self, *handlers: MessageHandler) -> None:
        """Handle messages of the handlers' queue until shutdown.

        All handlers must subscribe to the same queue. A subscription that
        fails is restarted after ``restart_timeout`` seconds when configured,
        otherwise the error is raised.
        """
        queue = self.prefix_queue(_common_queue(handlers))
        routes = self._routes(handlers)
        handle = self._handler_for(routes)

        logger.info("Subscribing to %s", queue)
        signal = self._shutdown.add()
        try:
            while True:
                try:
                    await self._adapter.subscribe(queue, handle, signal)
                    return
                except SubscriptionCancelledError:
                    if signal.cancelled:
                        return
                    raise
                except Exception as exc:
                    logger.error(
                        "Error subscribing to queue %s: %s",
                        queue,
                        exc,
                        exc_info=exc,
                    )
                    if not self._restart_timeout:
                        raise
                logger.info(
                    "Restarting subscription to %s in %ss",
                    queue,
                    self._restart_timeout,
                )
                if await self._backoff(signal):
                    return
        finally:
            self._shutdown.done()

    def _routes(
        self, handlers: tuple[MessageHandler, ...]
    ) -> dict[str, MessageHandler]:
        routes: dict[str, MessageHandler] = {}
        for handler in handlers:
            identifier = handler.message().identifier()
            if identifier in routes:
                logger.warning(
                    "Ignoring duplicate handler %s for message %s",
                    type(handler).__name__,
                    identifier,
                )
                continue
            routes[identifier] = handler
        return routes

    def _handler_for(
        self, routes: dict[str, MessageHandler]
    ) -> Callable[[AdapterMessage], Awaitable[None]]:
        """Build the callback finding the handler by message identifier."""

        async def handle(received: AdapterMessage) -> None:
            handler = routes.get(received.identifier)
            if handler is None:
                error = HandlerNotFoundError(received.identifier)
                logger.error("%s", error)
                raise error

            try:
                message = self._codec.decode(received.body, handler.message())
                result = handler.handle(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Error handling message %s", received.identifier)
                raise
            logger.info("Message %s handled", received.identifier)

        return handle

    async def _backoff(self, signal: CancellationSignal) -> bool:
        """Wait restart_timeout; return True when shutdown was requested meanwhile."""
        sleeper = asyncio.ensure_future(self._sleep(self._restart_timeout))
        stop = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait({sleeper, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            if not sleeper.done():
                sleeper.cancel()
        if sleeper.done() and not sleeper.cancelled():
            sleeper.result()
        return signal.cancelled


def _common_queue(handlers: tuple[MessageHandler, ...]) -> str:
    if not handlers:
        raise ConfigurationError("at least one handler is required to subscribe")
    queues = list(dict.fromkeys(h.message().queue() for h in handlers))
    if len(queues) > 1:
        raise DifferentQueuesError(queues)
    return queues[0]


def create_messenger(
    config: MessengerConfig, shutdown: IShutdownCoordinator
) -> Messenger:
    """Build a messenger and its adapter from configuration.

    The dead-letter queue is prefixed with the environment like any other
    queue. Broker SDKs are imported only for the selected broker.
    """
    dead_letter = None
    if config.dead_letter_queue:
        dead_letter = DeadLetterPolicy(
            topic=f"{config.environment}.{config.dead_letter_queue}",
            max_delivery_attempts=config.max_delivery_attempts,
        )

    logger.info("Starting messenger with %s broker", config.broker)
    adapter: IBrokerAdapter
    if config.broker == "pubsub":
        from .pubsub import PubSubAdapter, PubSubConnectionManager

        adapter = PubSubAdapter(
            PubSubConnectionManager(config.pubsub),
            dead_letter=dead_letter,
            retry_policy=config.retry,
            publish_timeout=config.pubsub.publish_timeout,
            max_messages=config.pubsub.max_messages,
        )
    elif config.broker == "rabbitmq":
        from .rabbitmq import RabbitMQAdapter, RabbitMQConnectionManager

        adapter = RabbitMQAdapter(
            RabbitMQConnectionManager(config.rabbitmq.url),
            dead_letter=dead_letter,
            prefetch_count=config.rabbitmq.prefetch_count,
            publish_timeout=config.rabbitmq.publish_timeout,
        )
    else:
        from .memory import InMemoryBrokerAdapter

        adapter = InMemoryBrokerAdapter(
            dead_letter=dead_letter, retry_policy=config.retry
        )

    return Messenger(
        adapter,
        environment=config.environment,
        shutdown=shutdown,
        restart_timeout=config.restart_timeout,
    )
