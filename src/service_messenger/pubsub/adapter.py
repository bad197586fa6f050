"""PubSubAdapter — IBrokerAdapter for Google Cloud Pub/Sub.

Topics and subscriptions share the (already namespaced) queue name. The
client library is blocking: administrative calls run in worker threads and
the streaming-pull callback, which the library invokes from its own thread
pool, hands each message back to the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from google.api_core.exceptions import AlreadyExists, GoogleAPIError, NotFound
from google.cloud.pubsub_v1.types import FlowControl

from ..envelope import Envelope
from ..exceptions import (
    MessagingConnectionError,
    MessagingSerializationError,
    PublishTimeoutError,
)
from ..ports import AdapterMessage
from ..retry import RetryPolicy
from ..serialization import EnvelopeSerializer

if TYPE_CHECKING:
    from ..dead_letter import DeadLetterPolicy
    from ..ports import HandleMessage
    from ..shutdown import CancellationSignal
    from .connection import PubSubConnectionManager

logger = logging.getLogger(__name__)


class PubSubAdapter:
    """Pub/Sub adapter implementing IBrokerAdapter.

    Topics are resolved lazily and memoised per adapter instance. On every
    subscribe the dead-letter and retry policies are re-applied, so changes
    made by hand in the console do not persist.
    """

    def __init__(
        self,
        connection: PubSubConnectionManager,
        *,
        dead_letter: DeadLetterPolicy | None = None,
        retry_policy: RetryPolicy | None = None,
        serializer: EnvelopeSerializer | None = None,
        publish_timeout: float = 5.0,
        max_messages: int = 100,
    ) -> None:
        """Configure adapter.

        Args:
            connection: Shared connection manager.
            dead_letter: If set, subscriptions dead-letter to this topic.
            retry_policy: Backoff bounds applied together with dead_letter;
                default RetryPolicy().
            serializer: Used for envelopes; default EnvelopeSerializer().
            publish_timeout: Seconds to wait for a publish acknowledgement.
            max_messages: Flow control limit of outstanding messages.
        """
        self._connection = connection
        self._dead_letter = dead_letter
        self._retry_policy = retry_policy or RetryPolicy()
        self._serializer = serializer or EnvelopeSerializer()
        self._publish_timeout = publish_timeout
        self._max_messages = max_messages
        self._topics: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def publish(self, queue: str, identifier: str, body: str) -> None:
        data = self._serializer.serialize(Envelope.wrap(identifier, body))
        topic = await self._topic(queue)
        try:
            future = self._connection.publisher.publish(topic, data)
            await asyncio.wait_for(asyncio.wrap_future(future), self._publish_timeout)
        except asyncio.TimeoutError as e:
            raise PublishTimeoutError(queue, self._publish_timeout) from e
        except (GoogleAPIError, RuntimeError) as e:
            raise MessagingConnectionError(str(e)) from e

    async def subscribe(
        self,
        queue: str,
        handle: HandleMessage,
        cancel: CancellationSignal,
    ) -> None:
        path = await self._subscription(queue, queue, self._dead_letter)
        logger.info("Listening to Pub/Sub subscription %s", path)

        loop = asyncio.get_running_loop()

        def callback(message: Any) -> None:
            self._on_message(loop, queue, handle, message)

        future = self._connection.subscriber.subscribe(
            path,
            callback=callback,
            flow_control=FlowControl(max_messages=self._max_messages),
            await_callbacks_on_shutdown=True,
        )
        streaming = asyncio.wrap_future(future)
        stop = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {streaming, stop}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            future.cancel()
            raise
        finally:
            stop.cancel()

        if streaming in done:
            exc = None if streaming.cancelled() else streaming.exception()
            if exc is not None:
                raise MessagingConnectionError(str(exc)) from exc
            return

        logger.info("Stopping Pub/Sub subscription %s", path)
        future.cancel()
        # Blocks until running callbacks returned.
        await asyncio.to_thread(future.result)

    async def close(self) -> None:
        await self._connection.close()

    async def health_check(self) -> bool:
        """Return True if Pub/Sub is reachable."""
        return await self._connection.health_check()

    def _on_message(
        self,
        loop: asyncio.AbstractEventLoop,
        queue: str,
        handle: HandleMessage,
        message: Any,
    ) -> None:
        """Handle one Pub/Sub message on a library thread, then ack or nack."""
        logger.debug(
            "Received Pub/Sub message id=%s queue=%s", message.message_id, queue
        )
        try:
            envelope = self._serializer.deserialize(message.data)
        except MessagingSerializationError:
            logger.warning(
                "Malformed Pub/Sub message id=%s queue=%s", message.message_id, queue
            )
            message.nack()
            return

        try:
            asyncio.run_coroutine_threadsafe(
                handle(
                    AdapterMessage(
                        queue=queue, identifier=envelope.identifier, body=envelope.body
                    )
                ),
                loop,
            ).result()
        except Exception:  # noqa: BLE001
            message.nack()
            return
        message.ack()

    async def _topic(self, queue: str) -> str:
        """Retrieve the topic path and create the topic if it does not exist."""
        async with self._lock:
            if queue in self._topics:
                return self._topics[queue]
            path = self._connection.topic_path(queue)
            await asyncio.to_thread(self._create_topic_if_not_exists, path)
            self._topics[queue] = path
            return path

    async def _subscription(
        self, subscription: str, topic: str, dead_letter: DeadLetterPolicy | None
    ) -> str:
        """Retrieve the subscription and create it if it does not exist.

        With a dead-letter topic, the dead-letter topic and subscription are
        provisioned too and the policies are applied to the subscription.
        """
        top = await self._topic(topic)
        path = self._connection.subscription_path(subscription)
        await asyncio.to_thread(self._create_subscription_if_not_exists, path, top)

        if dead_letter is None:
            return path

        await self._subscription(dead_letter.topic, dead_letter.topic, None)
        await asyncio.to_thread(
            self._update_policies,
            path,
            self._connection.topic_path(dead_letter.topic),
            dead_letter,
        )
        return path

    def _create_topic_if_not_exists(self, path: str) -> None:
        publisher = self._connection.publisher
        try:
            publisher.get_topic(request={"topic": path})
            return
        except NotFound:
            pass
        except GoogleAPIError as e:
            raise MessagingConnectionError(str(e)) from e

        logger.info("Creating Pub/Sub topic %s", path)
        try:
            publisher.create_topic(request={"name": path})
        except AlreadyExists:
            logger.debug("Pub/Sub topic %s was created concurrently", path)
        except GoogleAPIError as e:
            raise MessagingConnectionError(str(e)) from e

    def _create_subscription_if_not_exists(self, path: str, topic: str) -> None:
        subscriber = self._connection.subscriber
        try:
            subscriber.get_subscription(request={"subscription": path})
            return
        except NotFound:
            pass
        except GoogleAPIError as e:
            raise MessagingConnectionError(str(e)) from e

        logger.info("Creating Pub/Sub subscription %s", path)
        try:
            subscriber.create_subscription(request={"name": path, "topic": topic})
        except AlreadyExists:
            logger.debug("Pub/Sub subscription %s was created concurrently", path)
        except GoogleAPIError as e:
            raise MessagingConnectionError(str(e)) from e

    def _update_policies(
        self, path: str, dead_letter_topic: str, policy: DeadLetterPolicy
    ) -> None:
        logger.info("Updating Pub/Sub subscription %s", path)
        try:
            self._connection.subscriber.update_subscription(
                request={
                    "subscription": {
                        "name": path,
                        "dead_letter_policy": {
                            "dead_letter_topic": dead_letter_topic,
                            "max_delivery_attempts": (
                                policy.max_delivery_attempts
                            ),
                        },
                        "retry_policy": {
                            "minimum_backoff": timedelta(
                                seconds=self._retry_policy.min_backoff
                            ),
                            "maximum_backoff": timedelta(
                                seconds=self._retry_policy.max_backoff
                            ),
                        },
                    },
                    "update_mask": {"paths": ["dead_letter_policy", "retry_policy"]},
                }
            )
        except GoogleAPIError as e:
            raise MessagingConnectionError(str(e)) from e

