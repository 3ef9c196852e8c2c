# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/mon/cluster.py

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from ..errors import MonError
from ..observers.dispatcher import EventBus
from ..observers.events import (
    new_ctx,
    MonFailoverStarted,
    MonFailedOver,
    MonRemoved,
    MonsScaledUp,
)
from .interfaces import (
    ConfigPersistence,
    DaemonLifecycle,
    Placement,
    QuorumMembership,
    QuorumStatusSource,
)
from .models import (
    DEFAULT_PORT,
    ClusterInfo,
    Mapping,
    MonConfig,
    MonInfo,
    MonStatus,
    NodeInfo,
)

log = logging.getLogger("monkeeper")


class OrchestrationLock:
    """
    The one lock every cluster-mutating operation runs under.

    Re-entrant for the owning thread, so a health check that holds it can
    call into failover and removal.
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.RLock()
        self._owner: Optional[int] = None
        self._depth = 0

    @contextmanager
    def hold(self) -> Iterator["OrchestrationLock"]:
        self._lock.acquire()
        self._owner = threading.get_ident()
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            if self._depth == 0:
                self._owner = None
            self._lock.release()

    def held(self) -> bool:
        return self._owner == threading.get_ident()


class MonCluster:
    """
    Owns the mon membership, node assignments and the mon id counter of one
    ceph cluster, and performs removal, failover and scale-up against the
    external collaborators.

    Every mutating method must be called with `lock` held.
    """

    def __init__(
        self,
        info: ClusterInfo,
        *,
        lock: OrchestrationLock,
        status_source: QuorumStatusSource,
        quorum: QuorumMembership,
        daemons: DaemonLifecycle,
        store: ConfigPersistence,
        placement: Placement,
        mapping: Optional[Mapping] = None,
        max_mon_id: int = -1,
        host_network: bool = False,
        port: int = DEFAULT_PORT,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[dict] = None,
    ):
        self.lock = lock
        self._info = info
        self._mapping = mapping or Mapping()
        self._max_mon_id = max_mon_id
        self._status_source = status_source
        self._quorum = quorum
        self._daemons = daemons
        self._store = store
        self._placement = placement
        self.host_network = host_network
        self.port = port
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or new_ctx(cluster=info.name)

    # ------------- read snapshots -------------

    @property
    def name(self) -> str:
        return self._info.name

    @property
    def max_mon_id(self) -> int:
        return self._max_mon_id

    def membership(self) -> Dict[str, MonInfo]:
        return dict(self._info.monitors)

    def assignments(self) -> Dict[str, NodeInfo]:
        return dict(self._mapping.node)

    def mon_count(self) -> int:
        return len(self._info.monitors)

    # ------------- operations -------------

    def _require_lock(self) -> None:
        if not self.lock.held():
            raise MonError(f"orchestration lock for cluster {self.name} is not held")

    def _emit(self, event_cls, **fields) -> None:
        self.bus.emit(event_cls(**fields, **self.run_ctx))

    def get_mon_status(self) -> MonStatus:
        return self._status_source.get_mon_status(self.name)

    def _persist(self) -> None:
        self._store.save_mon_config(self._info, self._mapping, self._max_mon_id)
        # rewrite the connection config so clients only see current mons
        self._store.write_connection_config(self._info)

    def _persist_added(self, added: List[str]) -> None:
        try:
            self._persist()
        except Exception as e:
            raise MonError(f"failed to save mon config after adding {added}: {e}") from e

    def _start_new_mon(self) -> MonConfig:
        """
        Place, expose and start the mon with the next id. The counter only
        moves once the daemon is confirmed running.
        """
        mon = MonConfig.for_id(self._max_mon_id + 1, port=self.port)
        log.info("starting new mon %s", mon.daemon_name)

        try:
            node = self._placement.assign(mon, self.assignments())
        except Exception as e:
            raise MonError(f"failed to place new mon {mon.daemon_name} on a node: {e}") from e
        self._mapping.node[mon.daemon_name] = node

        if self.host_network:
            mon.public_ip = node.address
        else:
            try:
                mon.public_ip = self._daemons.create_service(mon)
            except Exception as e:
                raise MonError(f"failed to create mon service {mon.resource_name}: {e}") from e

        self._info.monitors[mon.daemon_name] = MonInfo(name=mon.daemon_name, endpoint=mon.endpoint)

        try:
            self._daemons.start_and_confirm(mon, node)
        except Exception as e:
            raise MonError(f"failed to start new mon {mon.daemon_name}: {e}") from e

        self._max_mon_id += 1
        return mon

    def start_mons(self, target: int) -> List[str]:
        """
        Add mons until the membership holds *target* of them, then persist.
        Returns the names of the mons added. If a start fails, the mons
        already started are still persisted before the error propagates.
        """
        self._require_lock()
        added: List[str] = []
        try:
            while self.mon_count() < target:
                mon = self._start_new_mon()
                added.append(mon.daemon_name)
        except MonError:
            if added:
                log.warning("saving mons %s started before the failure", added)
                self._persist_added(added)
            raise

        if not added:
            log.debug("membership already has %d mons (target %d)", self.mon_count(), target)
            return added

        self._persist_added(added)

        log.info("added mons %s, cluster now has %d", added, self.mon_count())
        self._emit(MonsScaledUp, added=added, count=self.mon_count())
        return added

    def failover_mon(self, name: str) -> str:
        """
        Replace mon *name* with a freshly provisioned one, then remove *name*.
        Returns the replacement's name. Nothing is rolled back on failure.
        """
        self._require_lock()
        log.info("failing over mon %s", name)
        replacement = MonConfig.for_id(self._max_mon_id + 1).daemon_name
        self._emit(MonFailoverStarted, name=name, replacement=replacement)

        mon = self._start_new_mon()
        self.remove_mon(name)

        self._emit(MonFailedOver, name=name, replacement=mon.daemon_name)
        return mon.daemon_name

    def remove_mon(self, name: str) -> None:
        """
        Tear down mon *name* and drop it from the membership.

        Idempotent: resources that are already gone count as removed. Only
        the ceph `mon remove` and the config persistence must succeed.
        """
        self._require_lock()
        log.info("ensuring removal of mon %s", name)

        try:
            if not self._daemons.delete_deployment(name):
                log.info("mon %s deployment was already gone", name)
        except Exception as e:
            log.warning("failed to delete deployment of mon %s: %s", name, e)

        try:
            self._quorum.remove_mon(self.name, name)
        except Exception as e:
            raise MonError(f"failed to remove mon {name} from quorum: {e}") from e

        self._info.monitors.pop(name, None)
        self._mapping.node.pop(name, None)

        try:
            if not self._daemons.delete_service(name):
                log.info("mon %s service was already gone", name)
        except Exception as e:
            log.warning("failed to delete service of mon %s: %s", name, e)

        # NOTE: a failure below leaves the in-memory membership ahead of what
        # is persisted; the next health check or an operator reconciles it.
        try:
            self._persist()
        except Exception as e:
            raise MonError(f"failed to save mon config after removing mon {name}: {e}") from e

        log.info("removed mon %s", name)
        self._emit(MonRemoved, name=name)
