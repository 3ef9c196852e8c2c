# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/k8s/placement.py
from __future__ import annotations

import logging
from typing import Dict, List

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..errors import KubeError
from ..mon.models import MonConfig, NodeInfo

log = logging.getLogger("monkeeper")


def _node_info(node) -> NodeInfo:
    addresses = node.status.addresses or []
    by_type = {a.type: a.address for a in addresses}
    address = by_type.get("InternalIP") or by_type.get("ExternalIP") or ""
    hostname = (node.metadata.labels or {}).get("kubernetes.io/hostname") or by_type.get("Hostname") or node.metadata.name
    return NodeInfo(name=node.metadata.name, hostname=hostname, address=address)


def _ready(node) -> bool:
    if node.spec and node.spec.unschedulable:
        return False
    for cond in node.status.conditions or []:
        if cond.type == "Ready":
            return cond.status == "True"
    return False


class NodePlacement:
    """
    Picks a ready, schedulable node for a new mon, preferring nodes that do
    not already host one.
    """

    def __init__(self, api_client: client.ApiClient):
        self.core = client.CoreV1Api(api_client)

    def candidates(self) -> List[NodeInfo]:
        try:
            nodes = self.core.list_node().items
        except ApiException as e:
            raise KubeError(f"failed to list nodes: {e.reason}") from e
        return [_node_info(n) for n in nodes if _ready(n)]

    def assign(self, mon: MonConfig, mapping: Dict[str, NodeInfo]) -> NodeInfo:
        nodes = [n for n in self.candidates() if n.address]
        if not nodes:
            raise KubeError(f"no ready node available for mon {mon.daemon_name}")

        used = {n.name for n in mapping.values()}
        free = [n for n in nodes if n.name not in used]
        node = (free or nodes)[0]
        log.info("assigned mon %s to node %s", mon.daemon_name, node.name)
        return node
