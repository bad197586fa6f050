"""Tests for EventPublisher."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from conftest import FakeAdapter
from service_messenger.exceptions import EventPublishError, MessagingConnectionError
from service_messenger.messenger import Messenger
from service_messenger.publishers import Event, EventMessage, EventPublisher
from service_messenger.shutdown import GracefulShutdown


def test_event_message_uses_chosen_queue() -> None:
    message = EventMessage.for_queue(Event(type="user.created", data={"id": 1}), "users")
    assert message.identifier() == "event"
    assert message.queue() == "users"
    assert json.loads(message.model_dump_json()) == {
        "type": "user.created",
        "data": {"id": 1},
    }


@pytest.mark.asyncio
async def test_publish_event_dispatches_through_messenger(
    fake_adapter: FakeAdapter, shutdown: GracefulShutdown
) -> None:
    messenger = Messenger(fake_adapter, environment="dev", shutdown=shutdown)
    await EventPublisher(messenger).publish_event(
        Event(type="user.created", data={"id": 1}), "users"
    )

    queue, identifier, body = fake_adapter.published[0]
    assert queue == "dev.users"
    assert identifier == "event"
    assert json.loads(body) == {"type": "user.created", "data": {"id": 1}}


@pytest.mark.asyncio
async def test_dispatch_failure_is_wrapped() -> None:
    dispatcher = AsyncMock()
    dispatcher.dispatch.side_effect = MessagingConnectionError("broker down")

    with pytest.raises(EventPublishError, match="failed to dispatch event message"):
        await EventPublisher(dispatcher).publish_event(Event(type="x"), "users")

    sent = dispatcher.dispatch.call_args.args[0]
    assert isinstance(sent, EventMessage)
    assert sent.queue() == "users"
