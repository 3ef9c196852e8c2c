# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/rollout.py
"""
Safe rolling updates of replicated daemon sets.

The caller supplies a verify(intent) hook that decides whether the daemons
can be stopped (Intent.STOP, before the update) and whether the update may
be considered complete (Intent.CONTINUE, once the new replicas are ready).
The hook signals refusal by raising.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from .errors import RolloutError
from .observers.dispatcher import EventBus
from .observers.events import new_ctx, RolloutFailed, RolloutPhase, RolloutSucceeded
from .utils.retry import RetryError, RetryPolicy, call_with_retry, poll_until

log = logging.getLogger("monkeeper")

ROLLING_UPDATE = "RollingUpdate"

VERIFY_POLICY = RetryPolicy(attempts=5, delay=60)
ROLLOUT_POLICY = RetryPolicy(attempts=30, delay=2)


class Intent(str, enum.Enum):
    STOP = "stop"            # may the current replicas be stopped?
    CONTINUE = "continue"    # may we proceed now the update is running?


class Phase(str, enum.Enum):
    FETCHING = "fetching"
    PRECONDITION = "precondition"
    VERIFYING_PRE = "verifying-pre"
    APPLYING = "applying"
    POLLING = "polling"
    VERIFYING_POST = "verifying-post"
    DONE = "done"


@dataclass(frozen=True)
class ReplicaSetState:
    """Live view of a replicated daemon set."""
    name: str
    strategy_type: str
    observed_generation: int = 0
    updated_replicas: int = 0
    ready_replicas: int = 0


class ReplicaSetResource(Protocol):
    def get(self, name: str) -> ReplicaSetState: ...

    def update(self, spec: Any) -> None: ...


def _rolled_out(before: ReplicaSetState) -> Callable[[ReplicaSetState], bool]:
    def check(latest: ReplicaSetState) -> bool:
        return (
            latest.observed_generation != before.observed_generation
            and latest.updated_replicas > 0
            and latest.ready_replicas > 0
        )
    return check


def update_and_wait(
    resource: ReplicaSetResource,
    name: str,
    spec: Any,
    verify: Callable[[Intent], None],
    *,
    verify_policy: RetryPolicy = VERIFY_POLICY,
    rollout_policy: RetryPolicy = ROLLOUT_POLICY,
    sleep: Callable[[float], None] = time.sleep,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
) -> Any:
    """
    Update the daemon set *name* to *spec* and wait until it runs.

    Fetching -> precondition -> verifying(pre) -> applying -> polling ->
    verifying(post) -> done. Any failure raises RolloutError naming the
    phase; nothing is retried beyond the fixed retry policies.

    Only sets using the RollingUpdate strategy can be updated this way.
    """
    bus = bus or EventBus()
    ctx = run_ctx or new_ctx(cluster="")

    def enter(phase: Phase) -> None:
        log.debug("rolling update of %s: %s", name, phase.value)
        bus.emit(RolloutPhase(name=name, phase=phase.value, **ctx))

    def fail(phase: Phase, message: str, cause: Optional[BaseException] = None) -> RolloutError:
        bus.emit(RolloutFailed(name=name, phase=phase.value, error=message, **ctx))
        err = RolloutError(phase.value, message)
        err.__cause__ = cause
        return err

    enter(Phase.FETCHING)
    try:
        original = resource.get(name)
    except Exception as e:
        raise fail(Phase.FETCHING, f"failed to get {name}: {e}", e)

    enter(Phase.PRECONDITION)
    if original.strategy_type != ROLLING_UPDATE:
        raise fail(
            Phase.PRECONDITION,
            f"can only update {name} with rolling updates (strategy is {original.strategy_type!r})",
        )

    enter(Phase.VERIFYING_PRE)
    try:
        call_with_retry(
            lambda: verify(Intent.STOP),
            verify_policy,
            on_retry=lambda attempt, exc: log.info(
                "%s cannot be stopped yet (attempt %d/%d): %s",
                name, attempt, verify_policy.attempts, exc,
            ),
            sleep=sleep,
            name=f"verify {name}",
        )
    except RetryError as e:
        raise fail(Phase.VERIFYING_PRE, f"failed to check if {name} can be updated: {e}", e)

    enter(Phase.APPLYING)
    log.info("updating %s", name)
    try:
        resource.update(spec)
    except Exception as e:
        raise fail(Phase.APPLYING, f"failed to update {name}: {e}", e)

    enter(Phase.POLLING)
    try:
        poll_until(
            lambda: resource.get(name),
            _rolled_out(original),
            rollout_policy,
            on_miss=lambda attempt, latest: log.debug("%s status=%s", name, latest),
            sleep=sleep,
        )
    except RetryError as e:
        raise fail(Phase.POLLING, f"gave up waiting for {name} to update", e)
    except Exception as e:
        raise fail(Phase.POLLING, f"failed to get {name}: {e}", e)
    log.info("finished waiting for updated %s", name)

    enter(Phase.VERIFYING_POST)
    try:
        verify(Intent.CONTINUE)
    except Exception as e:
        raise fail(Phase.VERIFYING_POST, f"failed to check if {name} can continue: {e}", e)

    enter(Phase.DONE)
    bus.emit(RolloutSucceeded(name=name, **ctx))
    return spec
