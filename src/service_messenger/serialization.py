"""EnvelopeSerializer and MessageCodec — JSON roundtrips for the wire format."""

from __future__ import annotations

import dataclasses
import json
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .envelope import Envelope
from .exceptions import MessagingSerializationError

M = TypeVar("M")


def _json_serializer(obj: Any) -> Any:
    """Serialize datetime and other non-JSON types."""
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class EnvelopeSerializer:
    """Serialize/deserialize Envelope to/from JSON bytes."""

    def serialize(self, envelope: Envelope) -> bytes:
        """Encode envelope to JSON bytes."""
        try:
            return envelope.model_dump_json().encode("utf-8")
        except (TypeError, ValueError) as e:
            raise MessagingSerializationError(str(e)) from e

    def deserialize(self, raw: bytes | str) -> Envelope:
        """Decode JSON bytes to Envelope."""
        try:
            return Envelope.model_validate_json(raw)
        except (ValidationError, UnicodeDecodeError, ValueError) as e:
            raise MessagingSerializationError(str(e)) from e


class MessageCodec:
    """Encode messages to a JSON body and decode bodies into message instances.

    Pydantic models, dataclasses, and plain objects (through their public
    attributes) are supported.
    """

    def encode(self, message: Any) -> str:
        try:
            if isinstance(message, BaseModel):
                return message.model_dump_json()
            if dataclasses.is_dataclass(message) and not isinstance(message, type):
                data = dataclasses.asdict(message)
            else:
                data = _public_attributes(message)
            return json.dumps(data, default=_json_serializer)
        except (TypeError, ValueError) as e:
            raise MessagingSerializationError(str(e)) from e

    def decode(self, body: str, target: M) -> M:
        """Decode *body* using *target* as the allocation.

        Pydantic models and dataclasses are rebuilt from their type; other
        objects are populated in place.
        """
        try:
            if isinstance(target, BaseModel):
                return type(target).model_validate_json(body)
            data = json.loads(body)
            if not isinstance(data, dict):
                raise TypeError(
                    f"expected a JSON object, got {type(data).__name__}"
                )
            if dataclasses.is_dataclass(target) and not isinstance(target, type):
                names = {f.name for f in dataclasses.fields(target) if f.init}
                return type(target)(**{k: v for k, v in data.items() if k in names})
            for key, value in data.items():
                setattr(target, key, value)
            return target
        except (ValidationError, TypeError, ValueError) as e:
            raise MessagingSerializationError(str(e)) from e


def _public_attributes(message: Any) -> dict[str, Any]:
    try:
        attributes = vars(message)
    except TypeError as e:
        raise TypeError(
            f"Object of type {type(message).__name__} is not JSON serializable"
        ) from e
    return {k: v for k, v in attributes.items() if not k.startswith("_")}
