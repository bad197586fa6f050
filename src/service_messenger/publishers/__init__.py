"""Ready-made publishers built on a message dispatcher."""

from __future__ import annotations

from .events import Event, EventMessage, EventPublisher

__all__ = [
    "Event",
    "EventMessage",
    "EventPublisher",
]
