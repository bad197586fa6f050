"""Pub/Sub client management and resource path resolution."""

from __future__ import annotations

import asyncio
import os
from typing import TYPE_CHECKING, Any

from google.cloud import pubsub_v1

from ..exceptions import MissingProjectError

if TYPE_CHECKING:
    from ..config import PubSubConfig

EMULATOR_PROJECT = "emulator-project"


class PubSubConnectionManager:
    """Manages the Pub/Sub publisher and subscriber clients.

    When an emulator address is configured it is exported as
    ``PUBSUB_EMULATOR_HOST`` (read by the client library) and the project
    defaults to ``emulator-project``.
    """

    def __init__(
        self,
        config: PubSubConfig,
        *,
        publisher: Any = None,
        subscriber: Any = None,
    ) -> None:
        """Resolve the project; clients are created lazily unless injected."""
        project = config.project
        if config.emulator:
            os.environ["PUBSUB_EMULATOR_HOST"] = config.emulator
            project = project or EMULATOR_PROJECT
        if not project:
            raise MissingProjectError()

        self._project = project
        self._publisher = publisher
        self._subscriber = subscriber

    @property
    def project(self) -> str:
        return self._project

    @property
    def publisher(self) -> Any:
        """Return the shared publisher client; create if needed."""
        if self._publisher is None:
            self._publisher = pubsub_v1.PublisherClient()
        return self._publisher

    @property
    def subscriber(self) -> Any:
        """Return the shared subscriber client; create if needed."""
        if self._subscriber is None:
            self._subscriber = pubsub_v1.SubscriberClient()
        return self._subscriber

    def topic_path(self, name: str) -> str:
        return f"projects/{self._project}/topics/{name}"

    def subscription_path(self, name: str) -> str:
        return f"projects/{self._project}/subscriptions/{name}"

    async def close(self) -> None:
        """Flush pending publishes and close the clients if open."""
        if self._publisher is not None:
            await asyncio.to_thread(self._publisher.stop)
            self._publisher = None
        if self._subscriber is not None:
            await asyncio.to_thread(self._subscriber.close)
            self._subscriber = None

    async def health_check(self) -> bool:
        """Return True if we can list topics (lightweight check)."""

        def _probe() -> None:
            pages = self.publisher.list_topics(
                request={"project": f"projects/{self._project}", "page_size": 1}
            )
            next(iter(pages), None)

        try:
            await asyncio.to_thread(_probe)
            return True
        except Exception:  # noqa: BLE001
            return False
