"""RetryPolicy — exponential redelivery backoff between two bounds."""

from __future__ import annotations

import random

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RetryPolicy(BaseModel):
    """Exponential backoff applied by the broker before redelivering a nack.

    Brokers with native retry policies (Pub/Sub) receive the bounds as-is;
    the in-memory broker computes the delay itself with
    ``delay_for_attempt``.
    """

    model_config = ConfigDict(frozen=True)

    min_backoff: float = Field(default=10.0, ge=0, description="Seconds")
    max_backoff: float = Field(default=300.0, ge=0, description="Seconds")
    jitter: bool = False

    @model_validator(mode="after")
    def _check_bounds(self) -> RetryPolicy:
        if self.min_backoff > self.max_backoff:
            raise ValueError("min_backoff must be <= max_backoff")
        return self

    def delay_for_attempt(self, attempt: int) -> float:
        """Return delay in seconds before redelivering a 1-based attempt.

        Uses exponential backoff: min_backoff * 2^(attempt-1), capped by
        max_backoff. If jitter is enabled, multiplies by a random factor in
        [0.5, 1.5] and re-applies the cap.
        """
        if attempt < 1:
            return 0.0
        delay = min(self.min_backoff * (2 ** (attempt - 1)), self.max_backoff)
        if self.jitter:
            delay = min(delay * (0.5 + random.random()), self.max_backoff)  # noqa: S311
        return float(max(0.0, delay))
