"""Google Cloud Pub/Sub transport adapter (optional extra: service-messenger[pubsub])."""

from __future__ import annotations

from .adapter import PubSubAdapter
from .connection import EMULATOR_PROJECT, PubSubConnectionManager

__all__ = [
    "EMULATOR_PROJECT",
    "PubSubAdapter",
    "PubSubConnectionManager",
]
