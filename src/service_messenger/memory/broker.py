"""In-memory broker for testing — topics, subscriptions and redelivery state."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..exceptions import MessagingConnectionError, MessagingError

if TYPE_CHECKING:
    from ..dead_letter import DeadLetterPolicy
    from ..retry import RetryPolicy


@dataclass
class Delivery:
    """One message waiting in a subscription, with its delivery attempt count."""

    data: bytes
    message_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    attempt: int = 0


@dataclass
class InMemorySubscription:
    name: str
    topic: str
    pending: asyncio.Queue[Delivery] = field(default_factory=asyncio.Queue)
    dead_letter: DeadLetterPolicy | None = None
    retry: RetryPolicy | None = None
    acked: list[bytes] = field(default_factory=list)
    nacks: int = 0


class InMemoryBroker:
    """Shared broker state: publish fans out to every subscription of a topic.

    Like a real broker it refuses to create a resource twice and to publish
    to an unknown topic, which lets tests verify idempotent provisioning.
    """

    def __init__(self) -> None:
        self.topics: set[str] = set()
        self.subscriptions: dict[str, InMemorySubscription] = {}
        self.published: list[tuple[str, bytes]] = []
        self.created: list[tuple[str, str]] = []
        self.policy_updates: list[str] = []

    def topic_exists(self, name: str) -> bool:
        return name in self.topics

    def create_topic(self, name: str) -> None:
        if name in self.topics:
            raise MessagingError(f"topic {name} already exists")
        self.topics.add(name)
        self.created.append(("topic", name))

    def subscription_exists(self, name: str) -> bool:
        return name in self.subscriptions

    def create_subscription(self, name: str, topic: str) -> InMemorySubscription:
        if name in self.subscriptions:
            raise MessagingError(f"subscription {name} already exists")
        if topic not in self.topics:
            raise MessagingConnectionError(f"topic {topic} not found")
        sub = InMemorySubscription(name=name, topic=topic)
        self.subscriptions[name] = sub
        self.created.append(("subscription", name))
        return sub

    def update_subscription(
        self,
        name: str,
        *,
        dead_letter: DeadLetterPolicy | None,
        retry: RetryPolicy | None,
    ) -> None:
        sub = self.subscriptions[name]
        sub.dead_letter = dead_letter
        sub.retry = retry
        self.policy_updates.append(name)

    def publish(self, topic: str, data: bytes) -> str:
        """Append to every subscription bound to *topic*; returns the message id."""
        if topic not in self.topics:
            raise MessagingConnectionError(f"topic {topic} not found")
        delivery_id = str(uuid.uuid4())
        self.published.append((topic, data))
        for sub in self.subscriptions.values():
            if sub.topic == topic:
                sub.pending.put_nowait(Delivery(data=data, message_id=delivery_id))
        return delivery_id

    def clear(self) -> None:
        """Forget every resource and message (for test teardown)."""
        self.topics.clear()
        self.subscriptions.clear()
        self.published.clear()
        self.created.clear()
        self.policy_updates.clear()
