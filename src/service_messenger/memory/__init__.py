"""In-memory messaging adapter for testing."""

from __future__ import annotations

from .adapter import InMemoryBrokerAdapter
from .broker import Delivery, InMemoryBroker, InMemorySubscription

__all__ = [
    "Delivery",
    "InMemoryBroker",
    "InMemoryBrokerAdapter",
    "InMemorySubscription",
]
