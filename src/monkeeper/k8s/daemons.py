# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/k8s/daemons.py
from __future__ import annotations

import logging
import time
from typing import Callable, Dict

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..errors import KubeError
from ..mon.models import APP_NAME, MonConfig, NodeInfo, resource_name
from ..utils.retry import RetryPolicy
from .client import is_conflict, is_not_found, wait_for_deletion, wait_for_deployment

log = logging.getLogger("monkeeper")

START_POLICY = RetryPolicy(attempts=60, delay=5)
DELETE_POLICY = RetryPolicy(attempts=60, delay=2)


class KubeDaemonOps:
    """
    Creates and deletes the Deployment and Service of individual mons.
    """

    def __init__(
        self,
        api_client: client.ApiClient,
        *,
        namespace: str,
        cluster_name: str,
        image: str,
        host_network: bool = False,
        start_policy: RetryPolicy = START_POLICY,
        delete_policy: RetryPolicy = DELETE_POLICY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.core = client.CoreV1Api(api_client)
        self.apps = client.AppsV1Api(api_client)
        self.namespace = namespace
        self.cluster_name = cluster_name
        self.image = image
        self.host_network = host_network
        self.start_policy = start_policy
        self.delete_policy = delete_policy
        self._sleep = sleep

    def labels(self, daemon_name: str) -> Dict[str, str]:
        return {"app": APP_NAME, "mon": daemon_name, "mon_cluster": self.namespace}

    # ------------- service -------------

    def create_service(self, mon: MonConfig) -> str:
        svc = client.V1Service(
            metadata=client.V1ObjectMeta(
                name=mon.resource_name,
                namespace=self.namespace,
                labels=self.labels(mon.daemon_name),
            ),
            spec=client.V1ServiceSpec(
                selector=self.labels(mon.daemon_name),
                ports=[client.V1ServicePort(name="msgr1", port=mon.port, target_port=mon.port, protocol="TCP")],
            ),
        )
        try:
            created = self.core.create_namespaced_service(namespace=self.namespace, body=svc)
        except ApiException as e:
            if not is_conflict(e):
                raise KubeError(f"failed to create service {mon.resource_name}: {e.reason}") from e
            log.info("service %s already exists", mon.resource_name)
            try:
                created = self.core.read_namespaced_service(name=mon.resource_name, namespace=self.namespace)
            except ApiException as e2:
                raise KubeError(f"failed to read service {mon.resource_name}: {e2.reason}") from e2

        ip = created.spec.cluster_ip
        if not ip or ip == "None":
            raise KubeError(f"service {mon.resource_name} has no cluster IP")
        log.info("mon %s endpoint is %s:%d", mon.daemon_name, ip, mon.port)
        return ip

    def delete_service(self, name: str) -> bool:
        svc = resource_name(name)
        try:
            self.core.delete_namespaced_service(name=svc, namespace=self.namespace)
        except ApiException as e:
            if is_not_found(e):
                return False
            raise KubeError(f"failed to delete service {svc}: {e.reason}") from e
        return True

    # ------------- deployment -------------

    def _deployment(self, mon: MonConfig, node: NodeInfo) -> client.V1Deployment:
        labels = self.labels(mon.daemon_name)
        container = client.V1Container(
            name="mon",
            image=self.image,
            command=["ceph-mon"],
            args=[
                "--foreground",
                f"--cluster={self.cluster_name}",
                f"--id={mon.daemon_name}",
                f"--public-addr={mon.endpoint}",
                "--setuser=ceph",
                "--setgroup=ceph",
            ],
            ports=[client.V1ContainerPort(name="msgr1", container_port=mon.port, protocol="TCP")],
        )
        pod = client.V1PodSpec(
            containers=[container],
            node_selector={"kubernetes.io/hostname": node.hostname},
            host_network=self.host_network,
            dns_policy="ClusterFirstWithHostNet" if self.host_network else None,
            restart_policy="Always",
        )
        return client.V1Deployment(
            metadata=client.V1ObjectMeta(
                name=mon.resource_name,
                namespace=self.namespace,
                labels=labels,
            ),
            spec=client.V1DeploymentSpec(
                replicas=1,
                selector=client.V1LabelSelector(match_labels=labels),
                strategy=client.V1DeploymentStrategy(type="Recreate"),
                template=client.V1PodTemplateSpec(
                    metadata=client.V1ObjectMeta(name=mon.resource_name, labels=labels),
                    spec=pod,
                ),
            ),
        )

    def start_and_confirm(self, mon: MonConfig, node: NodeInfo) -> None:
        body = self._deployment(mon, node)
        log.info("starting mon %s on node %s", mon.daemon_name, node.name)
        try:
            self.apps.create_namespaced_deployment(namespace=self.namespace, body=body)
        except ApiException as e:
            if not is_conflict(e):
                raise KubeError(f"failed to create deployment {mon.resource_name}: {e.reason}") from e
            log.info("deployment %s already exists, updating", mon.resource_name)
            try:
                self.apps.replace_namespaced_deployment(
                    name=mon.resource_name, namespace=self.namespace, body=body,
                )
            except ApiException as e2:
                raise KubeError(f"failed to update deployment {mon.resource_name}: {e2.reason}") from e2

        wait_for_deployment(self.apps, self.namespace, mon.resource_name, self.start_policy, sleep=self._sleep)
        log.info("mon %s is running", mon.daemon_name)

    def delete_deployment(self, name: str) -> bool:
        """
        Foreground delete with no grace period; returns once the deployment
        and its pods are gone. False when there was nothing to delete.
        """
        dep = resource_name(name)
        options = client.V1DeleteOptions(grace_period_seconds=0, propagation_policy="Foreground")
        try:
            self.apps.delete_namespaced_deployment(name=dep, namespace=self.namespace, body=options)
        except ApiException as e:
            if is_not_found(e):
                return False
            raise KubeError(f"failed to delete deployment {dep}: {e.reason}") from e

        wait_for_deletion(
            lambda: self.apps.read_namespaced_deployment(name=dep, namespace=self.namespace),
            f"deployment {dep}",
            self.delete_policy,
            sleep=self._sleep,
        )
        return True
