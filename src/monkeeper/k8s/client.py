# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/k8s/client.py
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from ..errors import KubeError
from ..utils.retry import RetryError, RetryPolicy, poll_until

log = logging.getLogger("monkeeper")

NOT_FOUND = 404
CONFLICT = 409


def load_api_client(kube_context: Optional[str] = None) -> client.ApiClient:
    """
    Build an API client from the kubeconfig (optionally for *kube_context*),
    falling back to the in-cluster service account when there is none.
    """
    try:
        if kube_context:
            config.load_kube_config(context=kube_context)
        else:
            config.load_kube_config()
    except (ConfigException, FileNotFoundError) as e:
        if kube_context:
            raise KubeError(f"cannot load kube context {kube_context}: {e}") from e
        log.debug("no kubeconfig (%s), using in-cluster config", e)
        try:
            config.load_incluster_config()
        except ConfigException as e2:
            raise KubeError(f"no kubeconfig and not running in a cluster: {e2}") from e2
    return client.ApiClient()


def is_not_found(exc: BaseException) -> bool:
    return isinstance(exc, ApiException) and exc.status == NOT_FOUND


def is_conflict(exc: BaseException) -> bool:
    return isinstance(exc, ApiException) and exc.status == CONFLICT


def wait_for_deployment(
    apps: client.AppsV1Api,
    namespace: str,
    name: str,
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Wait until Deployment *name* has all of its desired replicas available.
    """
    def available(d) -> bool:
        desired = d.spec.replicas or 0
        return (d.status.available_replicas or 0) >= max(desired, 1)

    try:
        poll_until(
            lambda: apps.read_namespaced_deployment(name=name, namespace=namespace),
            available,
            policy,
            sleep=sleep,
        )
    except RetryError as e:
        raise KubeError(f"timeout waiting for deployment {namespace}/{name} to be available") from e
    except ApiException as e:
        raise KubeError(f"failed to read deployment {namespace}/{name}: {e.reason}") from e


def wait_for_deletion(
    read: Callable[[], object],
    what: str,
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Wait until *read* raises a 404, i.e. the object is gone.
    """
    def probe() -> bool:
        try:
            read()
        except ApiException as e:
            if is_not_found(e):
                return True
            raise KubeError(f"failed to read {what}: {e.reason}") from e
        return False

    try:
        poll_until(probe, bool, policy, sleep=sleep)
    except RetryError as e:
        raise KubeError(f"timeout waiting for {what} to be deleted") from e
