"""DeadLetterPolicy — where messages go after their last delivery attempt."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class DeadLetterPolicy(BaseModel):
    """Routes messages that were nacked ``max_delivery_attempts`` times.

    ``topic`` is a broker-level name: the messenger prefixes it with the
    environment before handing it to an adapter.
    """

    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., min_length=1)
    max_delivery_attempts: int = Field(default=5, ge=1)

    def should_dead_letter(self, attempt: int) -> bool:
        """Return True once *attempt* (1-based) exhausted the allowed deliveries."""
        return attempt >= self.max_delivery_attempts
