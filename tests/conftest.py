# tests/conftest.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import pytest

from monkeeper.errors import CephCommandError, KubeError
from monkeeper.mon.cluster import MonCluster, OrchestrationLock
from monkeeper.mon.models import (
    ClusterInfo,
    Mapping,
    MonConfig,
    MonInfo,
    MonMapEntry,
    MonStatus,
    NodeInfo,
)
from monkeeper.observers.dispatcher import EventBus


# --------- Test doubles ----------

@dataclass
class Call:
    op: str
    args: tuple


def mon_status(*names: str, quorum: Optional[Sequence[str]] = None) -> MonStatus:
    """Mon map with ranks in the given order; all in quorum unless told otherwise."""
    mons = [MonMapEntry(name=n, rank=i, public_addr=f"10.0.0.{i + 1}:6789") for i, n in enumerate(names)]
    in_q = names if quorum is None else quorum
    return MonStatus(mons=mons, quorum=[m.rank for m in mons if m.name in in_q])


class FakeCeph:
    """Quorum status source + quorum membership."""

    def __init__(self, status: Optional[MonStatus] = None):
        self.status = status or mon_status()
        self.calls: List[Call] = []
        self.fail_status = False
        self.fail_remove: set = set()

    def get_mon_status(self, cluster_name):
        self.calls.append(Call("status", (cluster_name,)))
        if self.fail_status:
            raise CephCommandError("ceph unreachable")
        return self.status

    def remove_mon(self, cluster_name, name):
        self.calls.append(Call("remove", (cluster_name, name)))
        if name in self.fail_remove:
            raise CephCommandError(f"mon remove {name} failed")

    def removed(self) -> List[str]:
        return [c.args[1] for c in self.calls if c.op == "remove"]


class FakeDaemons:
    def __init__(self, existing: Sequence[str] = ()):
        self.deployments = set(existing)
        self.services = set(existing)
        self.calls: List[Call] = []
        self.fail_start: set = set()
        self.fail_delete = False
        self._next_ip = 100

    def create_service(self, mon: MonConfig) -> str:
        self.calls.append(Call("create_service", (mon.daemon_name,)))
        self.services.add(mon.daemon_name)
        self._next_ip += 1
        return f"10.96.0.{self._next_ip}"

    def delete_service(self, name: str) -> bool:
        self.calls.append(Call("delete_service", (name,)))
        if name not in self.services:
            return False
        self.services.discard(name)
        return True

    def start_and_confirm(self, mon: MonConfig, node: NodeInfo) -> None:
        self.calls.append(Call("start", (mon.daemon_name, node.name)))
        if mon.daemon_name in self.fail_start:
            raise KubeError(f"mon {mon.daemon_name} never became available")
        self.deployments.add(mon.daemon_name)

    def delete_deployment(self, name: str) -> bool:
        self.calls.append(Call("delete_deployment", (name,)))
        if self.fail_delete:
            raise KubeError("apiserver unavailable")
        if name not in self.deployments:
            return False
        self.deployments.discard(name)
        return True

    def started(self) -> List[str]:
        return [c.args[0] for c in self.calls if c.op == "start"]


class FakeStore:
    def __init__(self):
        self.calls: List[Call] = []
        self.fail_save = False

    def save_mon_config(self, info: ClusterInfo, mapping: Mapping, max_mon_id: int) -> None:
        self.calls.append(Call("save", (tuple(sorted(info.monitors)), max_mon_id)))
        if self.fail_save:
            raise KubeError("configmap update failed")

    def write_connection_config(self, info: ClusterInfo) -> None:
        self.calls.append(Call("write", (tuple(sorted(info.monitors)),)))


class FakePlacement:
    def __init__(self):
        self.assigned: List[str] = []

    def assign(self, mon: MonConfig, assigned: Dict[str, NodeInfo]) -> NodeInfo:
        self.assigned.append(mon.daemon_name)
        return NodeInfo(name=f"node-{mon.daemon_name}", hostname=f"host-{mon.daemon_name}", address=f"192.168.1.{len(self.assigned)}")


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)

    def kinds(self) -> List[str]:
        return [e.__class__.__name__ for e in self.events]


@dataclass
class Env:
    cluster: MonCluster
    ceph: FakeCeph
    daemons: FakeDaemons
    store: FakeStore
    placement: FakePlacement
    capture: Capture


@pytest.fixture
def make_cluster():
    def _make(members: Sequence[str] = ("a", "b", "c"), *, max_mon_id: Optional[int] = None,
              host_network: bool = False, status: Optional[MonStatus] = None) -> Env:
        info = ClusterInfo(
            name="ceph",
            namespace="rook-ceph",
            monitors={n: MonInfo(name=n, endpoint=f"10.0.0.{i + 1}:6789") for i, n in enumerate(members)},
        )
        mapping = Mapping(node={n: NodeInfo(name=f"node-{n}", hostname=f"host-{n}", address=f"192.168.0.{i + 1}")
                                for i, n in enumerate(members)})
        ceph = FakeCeph(status or mon_status(*members))
        daemons = FakeDaemons(existing=members)
        store = FakeStore()
        placement = FakePlacement()
        capture = Capture()
        cluster = MonCluster(
            info,
            lock=OrchestrationLock("ceph"),
            status_source=ceph,
            quorum=ceph,
            daemons=daemons,
            store=store,
            placement=placement,
            mapping=mapping,
            max_mon_id=len(members) - 1 if max_mon_id is None else max_mon_id,
            host_network=host_network,
            bus=EventBus(observers=[capture]),
        )
        return Env(cluster, ceph, daemons, store, placement, capture)
    return _make
