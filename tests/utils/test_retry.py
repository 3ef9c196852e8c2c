# tests/utils/test_retry.py
from __future__ import annotations

import pytest

from monkeeper.utils.retry import RetryError, RetryPolicy, call_with_retry, poll_until


def test_policy_validation():
    with pytest.raises(ValueError):
        RetryPolicy(attempts=0, delay=1)
    with pytest.raises(ValueError):
        RetryPolicy(attempts=1, delay=-1)


def test_call_with_retry_returns_first_success():
    attempts = []
    sleeps = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("down")
        return "ok"

    seen = []
    out = call_with_retry(
        flaky, RetryPolicy(attempts=5, delay=7),
        on_retry=lambda n, e: seen.append(n), sleep=sleeps.append,
    )

    assert out == "ok"
    assert seen == [1, 2]
    assert sleeps == [7, 7]


def test_call_with_retry_exhausted_keeps_cause():
    sleeps = []

    def always():
        raise ConnectionError("down")

    with pytest.raises(RetryError, match="failed after 3 attempts") as exc:
        call_with_retry(always, RetryPolicy(attempts=3, delay=1), sleep=sleeps.append)

    assert isinstance(exc.value.__cause__, ConnectionError)
    assert sleeps == [1, 1]


def test_call_with_retry_does_not_retry_other_errors():
    calls = []

    def bad():
        calls.append(1)
        raise KeyError("nope")

    with pytest.raises(KeyError):
        call_with_retry(bad, RetryPolicy(attempts=3, delay=0), retry_on=(ConnectionError,), sleep=lambda s: None)
    assert calls == [1]


def test_poll_until_returns_accepted_value():
    values = iter([1, 2, 3, 4])
    sleeps = []
    out = poll_until(lambda: next(values), lambda v: v >= 3, RetryPolicy(attempts=10, delay=2), sleep=sleeps.append)
    assert out == 3
    assert sleeps == [2, 2]


def test_poll_until_exhausted_sleeps_after_every_miss():
    sleeps = []
    misses = []
    with pytest.raises(RetryError):
        poll_until(
            lambda: 0, bool, RetryPolicy(attempts=4, delay=2),
            on_miss=lambda n, v: misses.append(n), sleep=sleeps.append,
        )
    assert misses == [1, 2, 3, 4]
    assert sleeps == [2, 2, 2, 2]
