from datetime import timedelta

import pytest

from secret_santa.features.notifications.retry_policy import RetryPolicy


def test_backoff_doubles_from_sixty_seconds():
    policy = RetryPolicy()

    delays = [policy.backoff(attempt) for attempt in range(1, 6)]

    assert delays == [timedelta(seconds=s) for s in (60, 120, 240, 480, 960)]


def test_backoff_respects_cap():
    policy = RetryPolicy(initial_delay_seconds=60, max_delay_seconds=300)

    assert policy.backoff(3) == timedelta(seconds=240)
    assert policy.backoff(4) == timedelta(seconds=300)
    assert policy.backoff(10) == timedelta(seconds=300)


def test_fifth_attempt_is_the_last():
    policy = RetryPolicy(max_attempts=5)

    assert policy.should_retry(4)
    assert not policy.should_retry(5)
    assert policy.is_exhausted(5)
    assert not policy.is_exhausted(4)


def test_rejects_invalid_configuration():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(initial_delay_seconds=-1)
    with pytest.raises(ValueError):
        RetryPolicy().backoff(0)
