# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/mon/health.py

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..observers.events import (
    HealthCheckFailed,
    MonBackInQuorum,
    MonOutOfQuorum,
    RemediationFailed,
)
from .cluster import MonCluster

log = logging.getLogger("monkeeper")

# interval between two mon health checks
HEALTH_CHECK_INTERVAL = 45.0
# how long a mon may stay out of quorum before it is removed or failed over
MON_OUT_TIMEOUT = 600.0


class Action(str, enum.Enum):
    NONE = "none"
    REMOVE = "remove"
    FAILOVER = "failover"
    SCALE_UP = "scale-up"
    SCALE_DOWN = "scale-down"


@dataclass(frozen=True)
class CheckResult:
    """
    Outcome of one health-check cycle.

    `error` is only set when the cycle could not diagnose the cluster
    (status query failed). A failed remediation is logged and kept in
    `remediation_error`; it does not make the cycle fail. At most one
    action is taken per cycle.
    """
    action: Action = Action.NONE
    target: Optional[str] = None
    error: Optional[str] = None
    remediation_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class HealthChecker:
    """
    Periodically checks that the mons are in quorum and converges the
    membership towards the desired mon count, one action per cycle.
    """

    def __init__(
        self,
        cluster: MonCluster,
        desired_count: Callable[[], int],
        *,
        interval: float = HEALTH_CHECK_INTERVAL,
        out_timeout: float = MON_OUT_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cluster = cluster
        self.desired_count = desired_count
        self.interval = interval
        self.out_timeout = out_timeout
        self._clock = clock
        # mon name -> when it was first seen out of quorum; reset on restart
        self._mon_timeouts: Dict[str, float] = {}

    def timeouts(self) -> Dict[str, float]:
        return dict(self._mon_timeouts)

    def _emit(self, event_cls, **fields) -> None:
        self.cluster.bus.emit(event_cls(**fields, **self.cluster.run_ctx))

    def run_forever(self, stop: threading.Event) -> None:
        """
        Run check() every `interval` seconds until *stop* is set. A cycle in
        progress always completes; errors are logged and never raised.
        """
        log.info("monitoring mons of cluster %s every %ss", self.cluster.name, self.interval)
        while not stop.wait(self.interval):
            log.debug("checking health of mons")
            try:
                result = self.check()
            except Exception as e:
                log.exception("mon health check crashed: %s", e)
                continue
            if not result.ok:
                log.info("failed to check mon health: %s", result.error)
        log.info("stopping monitoring of mons of cluster %s", self.cluster.name)

    def check(self) -> CheckResult:
        with self.cluster.lock.hold():
            return self._check_health()

    def _check_health(self) -> CheckResult:
        cluster = self.cluster
        log.debug("checking health of mons in cluster %s", cluster.name)

        # one desired count for the whole cycle, even if the config changes
        desired = self.desired_count()
        log.debug("targeting the mon count %d", desired)

        try:
            status = cluster.get_mon_status()
        except Exception as e:
            self._emit(HealthCheckFailed, error=str(e))
            return CheckResult(error=f"failed to get mon status: {e}")
        log.debug("mon status: %s", status)

        # membership is the source of truth for which mons should exist
        not_found = set(cluster.membership())
        mon_count = len(status.mons)

        # forget timeouts of mons that left the mon map
        in_map = {mon.name for mon in status.mons}
        for name in [n for n in self._mon_timeouts if n not in in_map]:
            log.debug("mon %s no longer in mon map, removed from mon out timeout list", name)
            del self._mon_timeouts[name]

        all_in_quorum = True
        for mon in status.mons:
            in_quorum = status.in_quorum(mon)

            if mon.name in not_found:
                not_found.discard(mon.name)
            elif in_quorum and mon_count > desired:
                log.warning("mon %s not in source of truth but in quorum, removing", mon.name)
                return self._remediate(Action.REMOVE, mon.name, cluster.remove_mon)
            else:
                log.warning(
                    "mon %s not in source of truth and not enough mons to remove it now (wanted: %d, current: %d)",
                    mon.name, desired, mon_count,
                )

            if in_quorum:
                log.debug("mon %s found in quorum", mon.name)
                if self._mon_timeouts.pop(mon.name, None) is not None:
                    log.info("mon %s is back in quorum, removed from mon out timeout list", mon.name)
                    self._emit(MonBackInQuorum, name=mon.name)
                continue

            log.debug("mon %s NOT found in quorum", mon.name)
            all_in_quorum = False

            now = self._clock()
            started = self._mon_timeouts.setdefault(mon.name, now)
            out_for = now - started
            if out_for <= self.out_timeout:
                log.warning("mon %s not found in quorum, waiting for timeout before failover", mon.name)
                self._emit(MonOutOfQuorum, name=mon.name, out_for_s=out_for)
                continue

            log.warning("mon %s NOT found in quorum and timeout exceeded, mon will be failed over", mon.name)
            # only deal with one unhealthy mon per health check
            return self.fail_mon(mon_count, desired, mon.name)

        # mons we expect but that are missing from the ceph mon map entirely
        for name in sorted(not_found):
            log.warning("mon %s NOT found in ceph mon map, failover", name)
            return self.fail_mon(cluster.mon_count(), desired, name)

        if mon_count < desired:
            log.info(
                "adding mons. currently %d mons are in quorum and the desired count is %d",
                mon_count, desired,
            )
            return self._remediate(Action.SCALE_UP, None, lambda _: cluster.start_mons(desired))

        if all_in_quorum and mon_count > desired:
            if desired < 2 and mon_count == 2:
                log.warning("cannot reduce mon quorum size from 2 to 1")
            else:
                log.info(
                    "removing an extra mon. currently %d are in quorum and only %d are desired",
                    mon_count, desired,
                )
                extra = status.mons[0].name
                return self._remediate(Action.SCALE_DOWN, extra, cluster.remove_mon)

        return CheckResult()

    def fail_mon(self, mon_count: int, desired: int, name: str) -> CheckResult:
        """Remove *name* if there is a spare mon, otherwise replace it."""
        if mon_count > desired:
            # no need for a replacement, we have an extra
            return self._remediate(Action.REMOVE, name, self.cluster.remove_mon)
        return self._remediate(Action.FAILOVER, name, self.cluster.failover_mon)

    def _remediate(self, action: Action, name: Optional[str], fn) -> CheckResult:
        try:
            fn(name)
        except Exception as e:
            log.error("failed to %s mon %s: %s", action.value, name or "", e)
            self._emit(RemediationFailed, action=action.value, name=name or "", error=str(e))
            return CheckResult(action=action, target=name, remediation_error=str(e))
        if name:
            self._mon_timeouts.pop(name, None)
        return CheckResult(action=action, target=name)
