"""Messenger-specific exceptions for service-messenger."""

from __future__ import annotations


class MessengerError(Exception):
    """Root exception for the messenger toolkit."""


class ConfigurationError(MessengerError):
    """Raised for programming or configuration mistakes; never retried."""


class DifferentQueuesError(ConfigurationError):
    """Raised when handlers passed to one subscription use different queues."""

    def __init__(self, queues: list[str] | None = None) -> None:
        self.queues = queues or []
        msg = "all handlers must subscribe to the same queue"
        if self.queues:
            msg += f" (got {', '.join(repr(q) for q in self.queues)})"
        super().__init__(msg)


class MissingProjectError(ConfigurationError):
    """Raised when the broker project identifier is missing."""

    def __init__(self) -> None:
        super().__init__("missing project")


class MessagingError(MessengerError):
    """Base class for all messaging-related infrastructure errors."""


class MessagingConnectionError(MessagingError):
    """Raised when connectivity to the message broker fails."""


class MessagingSerializationError(MessagingError):
    """Raised when message serialization or deserialization fails."""


class PublishTimeoutError(MessagingError):
    """Raised when the broker does not acknowledge a publish in time."""

    def __init__(self, queue: str, timeout: float) -> None:
        self.queue = queue
        self.timeout = timeout
        super().__init__(f"publish to {queue!r} not acknowledged within {timeout}s")


class HandlerNotFoundError(MessagingError):
    """Raised when no handler matches the identifier of a received message."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"no handler found for message {identifier}")


class SubscriptionCancelledError(MessagingError):
    """Raised by an adapter whose receive loop ended because of cancellation."""


class ShutdownTimeoutError(MessengerError):
    """Raised when registered work does not finish within the shutdown timeout."""

    def __init__(self, timeout: float, pending: int) -> None:
        self.timeout = timeout
        self.pending = pending
        super().__init__(
            f"shutdown timed out after {timeout}s with {pending} task(s) pending"
        )


class EventPublishError(MessengerError):
    """Raised when an event message cannot be dispatched."""
