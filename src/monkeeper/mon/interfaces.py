# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
from typing import Dict, Protocol

from .models import ClusterInfo, Mapping, MonConfig, MonStatus, NodeInfo


class QuorumStatusSource(Protocol):
    def get_mon_status(self, cluster_name: str) -> MonStatus: ...


class QuorumMembership(Protocol):
    def remove_mon(self, cluster_name: str, name: str) -> None: ...


class DaemonLifecycle(Protocol):
    def delete_deployment(self, name: str) -> bool:
        """Foreground delete; False when it was already gone."""
        ...

    def create_service(self, mon: MonConfig) -> str:
        """Create (or reuse) the mon service and return its cluster IP."""
        ...

    def delete_service(self, name: str) -> bool: ...

    def start_and_confirm(self, mon: MonConfig, node: NodeInfo) -> None:
        """Create the mon deployment and block until it is running."""
        ...


class ConfigPersistence(Protocol):
    def save_mon_config(self, info: ClusterInfo, mapping: Mapping, max_mon_id: int) -> None: ...

    def write_connection_config(self, info: ClusterInfo) -> None: ...


class Placement(Protocol):
    def assign(self, mon: MonConfig, assigned: Dict[str, NodeInfo]) -> NodeInfo: ...
