# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/utils/retry.py
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from monkeeper.errors import MonkeeperError

T = TypeVar("T")


class RetryError(MonkeeperError):
    pass


@dataclass(frozen=True)
class RetryPolicy:
    """
    Fixed-delay retry policy: no jitter, no backoff growth.

    attempts: total number of attempts (>= 1)
    delay: seconds slept between attempts
    """
    attempts: int
    delay: float

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")


def call_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    name: str | None = None,
) -> T:
    """
    Call *fn* until it returns without raising, at most policy.attempts times.

    on_retry: callback(attempt, exception), invoked after every failed attempt
    """
    last_exc = None
    for attempt in range(1, policy.attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            last_exc = exc
            if on_retry:
                on_retry(attempt, exc)
            if attempt == policy.attempts:
                break
            sleep(policy.delay)
    label = name or getattr(fn, "__name__", "call")
    raise RetryError(f"{label} failed after {policy.attempts} attempts: {last_exc}") from last_exc


def poll_until(
    probe: Callable[[], T],
    predicate: Callable[[T], bool],
    policy: RetryPolicy,
    *,
    on_miss: Callable[[int, T], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call *probe* until *predicate* accepts its result.

    Exceptions raised by probe propagate immediately. Raises RetryError when
    the predicate never held after policy.attempts probes; the caller sleeps
    policy.delay after every miss, the last one included.
    """
    for attempt in range(1, policy.attempts + 1):
        value = probe()
        if predicate(value):
            return value
        if on_miss:
            on_miss(attempt, value)
        sleep(policy.delay)
    raise RetryError(f"condition not met after {policy.attempts} attempts")


