"""Envelope — wire wrapper carrying the routing identifier next to the body."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class EnvelopeHeaders(BaseModel):
    """Routing headers; ``type`` holds the message identifier."""

    model_config = ConfigDict(frozen=True)

    type: str = ""


class Envelope(BaseModel):
    """Immutable wrapper for messages over the wire.

    Serialises to ``{"headers": {"type": "<identifier>"}, "body": "<json>"}``
    so the consumer can route before decoding the body.
    """

    model_config = ConfigDict(frozen=True)

    headers: EnvelopeHeaders = Field(default_factory=EnvelopeHeaders)
    body: str = ""

    @classmethod
    def wrap(cls, identifier: str, body: str) -> Envelope:
        return cls(headers=EnvelopeHeaders(type=identifier), body=body)

    @property
    def identifier(self) -> str:
        return self.headers.type
