# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/mon/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

APP_NAME = "rook-ceph-mon"
DEFAULT_PORT = 6789


def index_to_name(index: int) -> str:
    """
    Mon id -> daemon name: 0 -> "a", 25 -> "z", 26 -> "aa", 27 -> "ab", ...
    """
    if index < 0:
        raise ValueError(f"mon id must be >= 0, got {index}")
    name = ""
    i = index
    while True:
        name = chr(ord("a") + i % 26) + name
        i = i // 26 - 1
        if i < 0:
            return name


def resource_name(daemon_name: str) -> str:
    """Name shared by a mon's Deployment and Service."""
    return f"{APP_NAME}-{daemon_name}"


@dataclass(frozen=True)
class MonInfo:
    """
    A mon as recorded in the cluster membership.
    """
    name: str
    endpoint: str         # "ip:port"


@dataclass
class ClusterInfo:
    """
    Source of truth for which mons should exist.
    """
    name: str                                       # ceph cluster name
    namespace: str
    monitors: Dict[str, MonInfo] = field(default_factory=dict)

    def mon_hosts(self) -> List[str]:
        return [self.monitors[n].endpoint for n in sorted(self.monitors)]


@dataclass(frozen=True)
class NodeInfo:
    name: str             # k8s node name
    hostname: str
    address: str          # reachable node IP


@dataclass
class Mapping:
    """Node assignment per mon daemon name."""
    node: Dict[str, NodeInfo] = field(default_factory=dict)


@dataclass
class MonConfig:
    """
    Everything needed to run one mon daemon.
    """
    daemon_name: str
    resource_name: str
    port: int = DEFAULT_PORT
    public_ip: str = ""

    @classmethod
    def for_id(cls, mon_id: int, port: int = DEFAULT_PORT) -> "MonConfig":
        daemon = index_to_name(mon_id)
        return cls(daemon_name=daemon, resource_name=resource_name(daemon), port=port)

    @property
    def endpoint(self) -> str:
        return f"{self.public_ip}:{self.port}"


@dataclass(frozen=True)
class MonMapEntry:
    name: str
    rank: int
    public_addr: str = ""


@dataclass(frozen=True)
class MonStatus:
    """
    What the ceph cluster currently reports: the mon map and which ranks
    are in quorum.
    """
    mons: List[MonMapEntry]
    quorum: List[int]

    def in_quorum(self, mon: MonMapEntry) -> bool:
        return mon.rank in self.quorum
