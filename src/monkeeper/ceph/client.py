# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/monkeeper/ceph/client.py
from __future__ import annotations

import json
import logging
import subprocess
from typing import List

from ..config.models import CephSpec
from ..errors import CephCommandError
from ..mon.models import MonMapEntry, MonStatus

log = logging.getLogger("monkeeper")


class CephClient:
    """
    A thin wrapper around the `ceph` CLI.
    - Reads the mon map and quorum (`mon_status`), removes mons (`mon remove`).
    - Testable by mocking subprocess.run.
    """

    def __init__(self, spec: CephSpec | None = None):
        self.spec = spec or CephSpec()

    # ------------------------- internal helpers -------------------------

    def _base(self, cluster_name: str) -> list[str]:
        return [
            self.spec.binary,
            "--cluster", cluster_name,
            "--conf", self.spec.config_path,
            "--keyring", self.spec.keyring,
            "--connect-timeout", str(self.spec.timeout_seconds),
            "--format", "json",
        ]

    def _run(self, cluster_name: str, args: List[str]) -> str:
        argv = self._base(cluster_name) + args
        log.debug("running %s", " ".join(argv))
        try:
            cp = subprocess.run(
                argv,
                check=False,
                text=True,
                capture_output=True,
                timeout=self.spec.timeout_seconds + 5,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise CephCommandError(f"ceph {' '.join(args)} could not run: {e}") from e

        if cp.returncode != 0:
            stderr = (cp.stderr or "").strip()
            raise CephCommandError(f"ceph {' '.join(args)} failed (rc={cp.returncode}): {stderr}")
        return cp.stdout or ""

    # ------------------------- public API -------------------------

    def get_mon_status(self, cluster_name: str) -> MonStatus:
        out = self._run(cluster_name, ["mon_status"])
        try:
            data = json.loads(out)
            mons = [
                MonMapEntry(
                    name=m["name"],
                    rank=int(m["rank"]),
                    public_addr=m.get("public_addr") or m.get("addr", ""),
                )
                for m in data["monmap"]["mons"]
            ]
            quorum = [int(r) for r in data.get("quorum", [])]
        except (ValueError, KeyError, TypeError) as e:
            raise CephCommandError(f"unexpected mon_status output: {e}") from e
        return MonStatus(mons=mons, quorum=quorum)

    def remove_mon(self, cluster_name: str, name: str) -> None:
        log.debug("removing monitor %s", name)
        self._run(cluster_name, ["mon", "remove", name])
        log.info("removed monitor %s", name)
