"""RabbitMQ transport adapter (optional extra: service-messenger[rabbitmq])."""

from __future__ import annotations

from .adapter import RabbitMQAdapter
from .connection import RabbitMQConnectionManager

__all__ = [
    "RabbitMQAdapter",
    "RabbitMQConnectionManager",
]
