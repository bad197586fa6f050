"""Ports implemented by broker adapters and by shutdown coordinators."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .shutdown import CancellationSignal


@dataclass(frozen=True)
class AdapterMessage:
    """A received message as seen by the messenger: routing data plus raw body."""

    queue: str
    identifier: str
    body: str


HandleMessage = Callable[[AdapterMessage], Awaitable[None]]


@runtime_checkable
class IBrokerAdapter(Protocol):
    """
    Port isolating broker-specific provisioning and transport.

    Queue names reaching an adapter are already namespaced; adapters never
    prefix them.
    """

    async def publish(self, queue: str, identifier: str, body: str) -> None:
        """
        Publish *body* to *queue* and wait for the broker acknowledgement.

        The topic is created when it does not exist yet.
        """
        ...

    async def subscribe(
        self,
        queue: str,
        handle: HandleMessage,
        cancel: CancellationSignal,
    ) -> None:
        """
        Provision the topic, subscription and dead-letter chain for *queue*,
        then invoke *handle* for every received message until *cancel* fires.

        A message is acknowledged when *handle* returns and negatively
        acknowledged when decoding fails or *handle* raises.
        """
        ...

    async def close(self) -> None:
        """Release broker connections."""
        ...


@runtime_checkable
class IShutdownCoordinator(Protocol):
    """Registers cancellable units of work and tracks their completion."""

    def add(self) -> CancellationSignal: ...

    def done(self) -> None: ...
