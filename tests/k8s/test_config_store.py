# tests/k8s/test_config_store.py
from __future__ import annotations

import json
from types import SimpleNamespace

import pytest
from kubernetes.client.rest import ApiException

from monkeeper.errors import KubeError
from monkeeper.k8s.config_store import (
    CONNECTION_CONFIGMAP,
    ENDPOINTS_CONFIGMAP,
    ConfigMapStore,
    parse_endpoints,
    render_connection_config,
)
from monkeeper.mon.models import ClusterInfo, Mapping, MonInfo, NodeInfo


class FakeCore:
    def __init__(self):
        self.configmaps = {}
        self.calls = []

    def replace_namespaced_config_map(self, name, namespace, body):
        self.calls.append(("replace", name))
        if name not in self.configmaps:
            raise ApiException(status=404, reason="Not Found")
        self.configmaps[name] = dict(body.data)

    def create_namespaced_config_map(self, namespace, body):
        self.calls.append(("create", body.metadata.name))
        self.configmaps[body.metadata.name] = dict(body.data)

    def read_namespaced_config_map(self, name, namespace):
        if name not in self.configmaps:
            raise ApiException(status=404, reason="Not Found")
        return SimpleNamespace(data=self.configmaps[name])


def _store():
    store = ConfigMapStore(object(), namespace="rook-ceph")
    store.core = FakeCore()
    return store


def _info():
    return ClusterInfo(
        name="ceph",
        namespace="rook-ceph",
        monitors={
            "b": MonInfo("b", "10.96.0.11:6789"),
            "a": MonInfo("a", "10.96.0.10:6789"),
        },
    )


def test_save_creates_then_replaces_endpoints():
    store = _store()
    mapping = Mapping(node={"a": NodeInfo("node-1", "host-1", "192.168.0.1")})

    store.save_mon_config(_info(), mapping, 4)
    store.save_mon_config(_info(), mapping, 5)

    data = store.core.configmaps[ENDPOINTS_CONFIGMAP]
    assert data["data"] == "a=10.96.0.10:6789,b=10.96.0.11:6789"
    assert data["maxMonId"] == "5"
    assert json.loads(data["mapping"]) == {
        "node": {"a": {"Name": "node-1", "Hostname": "host-1", "Address": "192.168.0.1"}}
    }
    assert [c[0] for c in store.core.calls] == ["replace", "create", "replace"]


def test_connection_config_lists_current_mons():
    store = _store()
    store.write_connection_config(_info())

    text = store.core.configmaps[CONNECTION_CONFIGMAP]["config"]
    assert "mon host = 10.96.0.10:6789,10.96.0.11:6789" in text
    assert "mon initial members = a b" in text
    assert text == render_connection_config(_info())


def test_load_round_trips_saved_state():
    store = _store()
    mapping = Mapping(node={"b": NodeInfo("node-2", "host-2", "192.168.0.2")})
    store.save_mon_config(_info(), mapping, 7)

    info, loaded_mapping, max_id = store.load("ceph")

    assert info.monitors == _info().monitors
    assert loaded_mapping == mapping
    assert max_id == 7


def test_load_without_configmap_is_empty():
    info, mapping, max_id = _store().load("ceph")
    assert info.monitors == {}
    assert mapping.node == {}
    assert max_id == -1


def test_parse_endpoints_rejects_garbage():
    assert parse_endpoints("") == {}
    assert parse_endpoints("a=1.2.3.4:6789, ")["a"].endpoint == "1.2.3.4:6789"
    with pytest.raises(KubeError):
        parse_endpoints("a1.2.3.4")
