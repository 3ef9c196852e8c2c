# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/k8s/statefulset.py
from __future__ import annotations

import logging
from typing import Callable, Dict

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..errors import KubeError
from ..rollout import Intent, ReplicaSetState, update_and_wait
from .client import is_conflict

log = logging.getLogger("monkeeper")


class StatefulSetResource:
    """AppsV1Api-backed ReplicaSetResource for the rolling update protocol."""

    def __init__(self, api_client: client.ApiClient, *, namespace: str):
        self.apps = client.AppsV1Api(api_client)
        self.namespace = namespace

    def get(self, name: str) -> ReplicaSetState:
        sts = self.apps.read_namespaced_stateful_set(name=name, namespace=self.namespace)
        strategy = sts.spec.update_strategy.type if sts.spec.update_strategy else None
        status = sts.status
        return ReplicaSetState(
            name=name,
            # the API server defaults an unset strategy to RollingUpdate
            strategy_type=strategy or "RollingUpdate",
            observed_generation=(status.observed_generation or 0) if status else 0,
            updated_replicas=(status.updated_replicas or 0) if status else 0,
            ready_replicas=(status.ready_replicas or 0) if status else 0,
        )

    def update(self, spec: client.V1StatefulSet) -> None:
        self.apps.replace_namespaced_stateful_set(
            name=spec.metadata.name, namespace=self.namespace, body=spec,
        )


def _headless_service(name: str, namespace: str, labels: Dict[str, str]) -> client.V1Service:
    return client.V1Service(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace, labels=labels),
        spec=client.V1ServiceSpec(
            cluster_ip="None",
            selector=labels,
            ports=[client.V1ServicePort(name="dummy", port=1234)],
        ),
    )


def create_statefulset(
    api_client: client.ApiClient,
    namespace: str,
    app_name: str,
    sts: client.V1StatefulSet,
) -> client.V1Service:
    """
    Create the headless service named *app_name* and the StatefulSet behind
    it. Both calls tolerate existing objects; an existing StatefulSet is
    updated in place.
    """
    core = client.CoreV1Api(api_client)
    apps = client.AppsV1Api(api_client)
    name = sts.metadata.name
    labels = sts.metadata.labels or {}

    svc = _headless_service(app_name, namespace, labels)
    try:
        core.create_namespaced_service(namespace=namespace, body=svc)
    except ApiException as e:
        if not is_conflict(e):
            raise KubeError(f"failed to create {app_name} headless service: {e.reason}") from e

    try:
        apps.create_namespaced_stateful_set(namespace=namespace, body=sts)
    except ApiException as e:
        if not is_conflict(e):
            raise KubeError(f"failed to start {name} statefulset: {e.reason}") from e
        try:
            apps.replace_namespaced_stateful_set(name=name, namespace=namespace, body=sts)
        except ApiException as e2:
            raise KubeError(f"failed to update {name} statefulset: {e2.reason}") from e2
    log.info("statefulset %s/%s created", namespace, name)
    return svc


def update_statefulset_and_wait(
    api_client: client.ApiClient,
    namespace: str,
    sts: client.V1StatefulSet,
    verify: Callable[[Intent], None],
    **kwargs,
) -> client.V1StatefulSet:
    """
    Roll *sts* out with the safe rolling update protocol; the StatefulSet
    must use the RollingUpdate strategy (OnDelete is refused).
    """
    resource = StatefulSetResource(api_client, namespace=namespace)
    return update_and_wait(resource, sts.metadata.name, sts, verify, **kwargs)
