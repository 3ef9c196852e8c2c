# src/monkeeper/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, ClassVar, Dict, List, Optional
from datetime import datetime, timezone
import logging
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events of one monkeeper process
    cluster: str      # ceph cluster name

    level: ClassVar[int] = logging.INFO

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(cluster: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "cluster": cluster,
    }


# ---------------------------------------------------------------------
# Mon health
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class HealthCheckFailed(BaseEvent):
    error: str

    level: ClassVar[int] = logging.WARNING

@dataclass(frozen=True)
class MonOutOfQuorum(BaseEvent):
    name: str
    out_for_s: float

    level: ClassVar[int] = logging.WARNING

@dataclass(frozen=True)
class MonBackInQuorum(BaseEvent):
    name: str


# ---------------------------------------------------------------------
# Mon remediation
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class MonFailoverStarted(BaseEvent):
    name: str
    replacement: str

@dataclass(frozen=True)
class MonFailedOver(BaseEvent):
    name: str
    replacement: str

@dataclass(frozen=True)
class MonRemoved(BaseEvent):
    name: str

@dataclass(frozen=True)
class MonsScaledUp(BaseEvent):
    added: List[str]
    count: int

@dataclass(frozen=True)
class RemediationFailed(BaseEvent):
    action: str
    name: str
    error: str

    level: ClassVar[int] = logging.ERROR


# ---------------------------------------------------------------------
# Rolling updates
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RolloutPhase(BaseEvent):
    name: str
    phase: str

    level: ClassVar[int] = logging.DEBUG

@dataclass(frozen=True)
class RolloutSucceeded(BaseEvent):
    name: str

@dataclass(frozen=True)
class RolloutFailed(BaseEvent):
    name: str
    phase: str
    error: str

    level: ClassVar[int] = logging.ERROR
