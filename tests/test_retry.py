"""Tests for RetryPolicy."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from service_messenger.retry import RetryPolicy


def test_defaults_match_broker_backoff() -> None:
    policy = RetryPolicy()
    assert policy.min_backoff == 10.0
    assert policy.max_backoff == 300.0
    assert policy.jitter is False


def test_delay_for_attempt_exponential() -> None:
    policy = RetryPolicy(min_backoff=1.0, max_backoff=100.0)
    assert policy.delay_for_attempt(1) == 1.0
    assert policy.delay_for_attempt(2) == 2.0
    assert policy.delay_for_attempt(3) == 4.0
    assert policy.delay_for_attempt(10) == 100.0  # capped


def test_delay_for_attempt_zero_returns_zero() -> None:
    policy = RetryPolicy(min_backoff=1.0)
    assert policy.delay_for_attempt(0) == 0.0


def test_delay_with_jitter_in_range() -> None:
    policy = RetryPolicy(min_backoff=2.0, max_backoff=10.0, jitter=True)
    for _ in range(20):
        d = policy.delay_for_attempt(2)
        # attempt 2 -> 4.0; jitter 0.5..1.5 -> 2.0..6.0
        assert 2.0 <= d <= 6.0


def test_jitter_never_exceeds_max_backoff() -> None:
    policy = RetryPolicy(min_backoff=8.0, max_backoff=10.0, jitter=True)
    for _ in range(20):
        assert policy.delay_for_attempt(5) <= 10.0


def test_invalid_bounds_raise() -> None:
    with pytest.raises(ValidationError):
        RetryPolicy(min_backoff=-0.1)
    with pytest.raises(ValidationError, match="min_backoff must be <= max_backoff"):
        RetryPolicy(min_backoff=10.0, max_backoff=1.0)


def test_policy_is_frozen() -> None:
    policy = RetryPolicy()
    with pytest.raises(ValidationError):
        policy.min_backoff = 1.0  # type: ignore[misc]
