"""Broker-agnostic messenger with environment-namespaced queues and
shutdown-aware subscriptions.

Broker adapters for Google Cloud Pub/Sub and RabbitMQ live in the
``service_messenger.pubsub`` and ``service_messenger.rabbitmq`` subpackages
(optional extras); the in-memory adapter is always available.
"""

from __future__ import annotations

from .config import MessengerConfig, PubSubConfig, RabbitMQConfig
from .contract import BaseMessage, Message, MessageDispatcher, MessageHandler
from .dead_letter import DeadLetterPolicy
from .envelope import Envelope, EnvelopeHeaders
from .exceptions import (
    ConfigurationError,
    DifferentQueuesError,
    EventPublishError,
    HandlerNotFoundError,
    MessagingConnectionError,
    MessagingError,
    MessagingSerializationError,
    MessengerError,
    MissingProjectError,
    PublishTimeoutError,
    ShutdownTimeoutError,
    SubscriptionCancelledError,
)
from .memory import InMemoryBroker, InMemoryBrokerAdapter
from .messenger import Messenger, create_messenger
from .ports import AdapterMessage, HandleMessage, IBrokerAdapter, IShutdownCoordinator
from .retry import RetryPolicy
from .serialization import EnvelopeSerializer, MessageCodec
from .shutdown import CancellationSignal, GracefulShutdown

__all__ = [
    "AdapterMessage",
    "BaseMessage",
    "CancellationSignal",
    "ConfigurationError",
    "DeadLetterPolicy",
    "DifferentQueuesError",
    "Envelope",
    "EnvelopeHeaders",
    "EnvelopeSerializer",
    "EventPublishError",
    "GracefulShutdown",
    "HandleMessage",
    "HandlerNotFoundError",
    "IBrokerAdapter",
    "IShutdownCoordinator",
    "InMemoryBroker",
    "InMemoryBrokerAdapter",
    "Message",
    "MessageCodec",
    "MessageDispatcher",
    "MessageHandler",
    "MessagingConnectionError",
    "MessagingError",
    "MessagingSerializationError",
    "Messenger",
    "MessengerConfig",
    "MessengerError",
    "MissingProjectError",
    "PubSubConfig",
    "PublishTimeoutError",
    "RabbitMQConfig",
    "RetryPolicy",
    "ShutdownTimeoutError",
    "SubscriptionCancelledError",
    "create_messenger",
]
