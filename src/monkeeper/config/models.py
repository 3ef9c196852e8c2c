# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/config/models.py

from typing import Optional
from pydantic import BaseModel, Field


class MonSpec(BaseModel):
    count: int = Field(default=3, ge=1)       # desired number of mons
    port: int = 6789
    image: str = "quay.io/ceph/ceph:v18.2.1"


class HealthSpec(BaseModel):
    interval_seconds: float = Field(default=45.0, gt=0)
    out_timeout_seconds: float = Field(default=600.0, ge=0)  # out of quorum before failover


class CephSpec(BaseModel):
    binary: str = "ceph"
    config_path: str = "/etc/ceph/ceph.conf"
    keyring: str = "/etc/ceph/keyring"
    timeout_seconds: int = 30


class ClusterConfig(BaseModel):
    cluster_name: str = "rook-ceph"
    namespace: str = "rook-ceph"
    context: Optional[str] = None       # Kubernetes context to use
    host_network: bool = False
    mon: MonSpec = MonSpec()
    health: HealthSpec = HealthSpec()
    ceph: CephSpec = CephSpec()
