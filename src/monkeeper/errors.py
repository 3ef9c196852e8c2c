# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/errors.py
class MonkeeperError(RuntimeError):
    """Base class for monkeeper failures."""


class ConfigError(MonkeeperError):
    """Raised when the cluster config file is missing or invalid."""


class CephCommandError(MonkeeperError):
    """Raised when a ceph CLI call fails or returns unparsable output."""


class KubeError(MonkeeperError):
    """Raised for Kubernetes API failures other than 'not found'."""


class MonError(MonkeeperError):
    """Raised when a mon failover, removal or scale-up fails."""


class RolloutError(MonkeeperError):
    """Raised when a rolling update fails. `phase` names the failing step."""

    def __init__(self, phase: str, message: str):
        super().__init__(message)
        self.phase = phase
