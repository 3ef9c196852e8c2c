# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/k8s/config_store.py
from __future__ import annotations

import json
import logging
from typing import Dict, Tuple

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..errors import KubeError
from ..mon.models import ClusterInfo, Mapping, MonInfo, NodeInfo
from .client import is_not_found

log = logging.getLogger("monkeeper")

ENDPOINTS_CONFIGMAP = "rook-ceph-mon-endpoints"
CONNECTION_CONFIGMAP = "rook-ceph-config"

ENDPOINT_DATA_KEY = "data"
MAX_MON_ID_KEY = "maxMonId"
MAPPING_KEY = "mapping"
CONNECTION_KEY = "config"


def format_endpoints(info: ClusterInfo) -> str:
    """{"a": 10.0.0.1:6789, "b": ...} -> "a=10.0.0.1:6789,b=..." """
    return ",".join(f"{n}={info.monitors[n].endpoint}" for n in sorted(info.monitors))


def parse_endpoints(raw: str) -> Dict[str, MonInfo]:
    mons: Dict[str, MonInfo] = {}
    for item in filter(None, (s.strip() for s in (raw or "").split(","))):
        name, sep, endpoint = item.partition("=")
        if not sep or not name or not endpoint:
            raise KubeError(f"invalid mon endpoint entry {item!r}")
        mons[name] = MonInfo(name=name, endpoint=endpoint)
    return mons


def render_connection_config(info: ClusterInfo) -> str:
    """ceph.conf fragment clients use to find the current mons."""
    names = sorted(info.monitors)
    return (
        "[global]\n"
        f"mon initial members = {' '.join(names)}\n"
        f"mon host = {','.join(info.mon_hosts())}\n"
    )


def _mapping_to_json(mapping: Mapping) -> str:
    return json.dumps(
        {
            "node": {
                name: {"Name": n.name, "Hostname": n.hostname, "Address": n.address}
                for name, n in sorted(mapping.node.items())
            }
        },
        sort_keys=True,
    )


def _mapping_from_json(raw: str) -> Mapping:
    if not raw:
        return Mapping()
    try:
        data = json.loads(raw)
        return Mapping(node={
            name: NodeInfo(name=n["Name"], hostname=n["Hostname"], address=n["Address"])
            for name, n in (data.get("node") or {}).items()
        })
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise KubeError(f"invalid mon mapping: {e}") from e


class ConfigMapStore:
    """
    Persists the mon membership to ConfigMaps:
      - rook-ceph-mon-endpoints: endpoints, max mon id, node mapping
      - rook-ceph-config: the connection config handed to clients
    """

    def __init__(self, api_client: client.ApiClient, *, namespace: str):
        self.core = client.CoreV1Api(api_client)
        self.namespace = namespace

    def _upsert(self, name: str, data: Dict[str, str]) -> None:
        body = client.V1ConfigMap(
            metadata=client.V1ObjectMeta(name=name, namespace=self.namespace),
            data=data,
        )
        try:
            self.core.replace_namespaced_config_map(name=name, namespace=self.namespace, body=body)
            return
        except ApiException as e:
            if not is_not_found(e):
                raise KubeError(f"failed to update configmap {name}: {e.reason}") from e
        try:
            self.core.create_namespaced_config_map(namespace=self.namespace, body=body)
        except ApiException as e:
            raise KubeError(f"failed to create configmap {name}: {e.reason}") from e

    def save_mon_config(self, info: ClusterInfo, mapping: Mapping, max_mon_id: int) -> None:
        self._upsert(ENDPOINTS_CONFIGMAP, {
            ENDPOINT_DATA_KEY: format_endpoints(info),
            MAX_MON_ID_KEY: str(max_mon_id),
            MAPPING_KEY: _mapping_to_json(mapping),
        })
        log.debug("saved mon endpoints %s (maxMonId=%d)", format_endpoints(info), max_mon_id)

    def write_connection_config(self, info: ClusterInfo) -> None:
        self._upsert(CONNECTION_CONFIGMAP, {CONNECTION_KEY: render_connection_config(info)})
        log.debug("wrote connection config for mons %s", sorted(info.monitors))

    def load(self, cluster_name: str) -> Tuple[ClusterInfo, Mapping, int]:
        """
        Reload the persisted membership. A missing ConfigMap means a cluster
        with no mons yet (max mon id -1).
        """
        info = ClusterInfo(name=cluster_name, namespace=self.namespace)
        try:
            cm = self.core.read_namespaced_config_map(name=ENDPOINTS_CONFIGMAP, namespace=self.namespace)
        except ApiException as e:
            if is_not_found(e):
                log.info("no persisted mon config in namespace %s", self.namespace)
                return info, Mapping(), -1
            raise KubeError(f"failed to read configmap {ENDPOINTS_CONFIGMAP}: {e.reason}") from e

        data = cm.data or {}
        info.monitors = parse_endpoints(data.get(ENDPOINT_DATA_KEY, ""))
        try:
            max_mon_id = int(data.get(MAX_MON_ID_KEY, "-1"))
        except ValueError as e:
            raise KubeError(f"invalid {MAX_MON_ID_KEY}: {e}") from e
        return info, _mapping_from_json(data.get(MAPPING_KEY, "")), max_mon_id
