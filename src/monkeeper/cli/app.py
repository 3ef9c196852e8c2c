# src/monkeeper/cli/app.py
from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Optional

import typer

from monkeeper.ceph.client import CephClient
from monkeeper.config.loader import load_config
from monkeeper.config.models import ClusterConfig
from monkeeper.errors import ConfigError, MonkeeperError
from monkeeper.k8s.client import load_api_client
from monkeeper.k8s.config_store import ConfigMapStore
from monkeeper.k8s.daemons import KubeDaemonOps
from monkeeper.k8s.placement import NodePlacement
from monkeeper.logging.log import init_logging
from monkeeper.mon.cluster import MonCluster, OrchestrationLock
from monkeeper.mon.health import HealthChecker
from monkeeper.observers.dispatcher import EventBus
from monkeeper.observers.events import new_ctx
from monkeeper.observers.jsonfile import JsonFileObserver
from monkeeper.observers.logger import LoggerObserver


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Ceph mon quorum keeper")


class DesiredMonCount:
    """
    Re-reads mon.count from the config file on every call so edits are
    picked up by the next health check. Keeps the last good value when the
    file is temporarily invalid.
    """

    def __init__(self, path: Path, initial: int, logger):
        self.path = path
        self.value = initial
        self.logger = logger

    def __call__(self) -> int:
        try:
            self.value = load_config(self.path).mon.count
        except ConfigError as e:
            self.logger.warning("keeping mon count %d, config reload failed: %s", self.value, e)
        return self.value


def _build_checker(config: Path, verbose: bool, events: Optional[Path]) -> HealthChecker:
    logger, run_id, _ = init_logging(verbose=verbose)
    try:
        cfg: ClusterConfig = load_config(config)
    except ConfigError as e:
        logger.error("%s", e)
        raise typer.Exit(code=2)

    observers = [LoggerObserver(logger)]
    if events:
        observers.append(JsonFileObserver(events))
    bus = EventBus(observers=observers)

    api = load_api_client(cfg.context)
    store = ConfigMapStore(api, namespace=cfg.namespace)
    info, mapping, max_mon_id = store.load(cfg.cluster_name)
    logger.info(
        "cluster %s: %d mons in membership, max mon id %d",
        cfg.cluster_name, len(info.monitors), max_mon_id,
    )

    ceph = CephClient(cfg.ceph)
    cluster = MonCluster(
        info,
        lock=OrchestrationLock(cfg.cluster_name),
        status_source=ceph,
        quorum=ceph,
        daemons=KubeDaemonOps(
            api,
            namespace=cfg.namespace,
            cluster_name=cfg.cluster_name,
            image=cfg.mon.image,
            host_network=cfg.host_network,
        ),
        store=store,
        placement=NodePlacement(api),
        mapping=mapping,
        max_mon_id=max_mon_id,
        host_network=cfg.host_network,
        port=cfg.mon.port,
        bus=bus,
        run_ctx=new_ctx(cluster=cfg.cluster_name, run_id=run_id),
    )
    return HealthChecker(
        cluster,
        DesiredMonCount(config, cfg.mon.count, logger),
        interval=cfg.health.interval_seconds,
        out_timeout=cfg.health.out_timeout_seconds,
    )


@app.command()
def check(
    config: Path = typer.Option(..., "--config", "-c", help="Cluster config YAML"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    events: Optional[Path] = typer.Option(None, "--events", help="Append events as JSON lines"),
):
    """Run a single mon health check."""
    try:
        checker = _build_checker(config, verbose, events)
    except MonkeeperError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)

    result = checker.check()
    typer.echo(f"action={result.action.value} target={result.target or '-'}")
    if result.remediation_error:
        typer.echo(f"warning: {result.action.value} failed: {result.remediation_error}", err=True)
    if not result.ok:
        typer.echo(f"error: {result.error}", err=True)
        raise typer.Exit(code=1)


@app.command()
def watch(
    config: Path = typer.Option(..., "--config", "-c", help="Cluster config YAML"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    events: Optional[Path] = typer.Option(None, "--events", help="Append events as JSON lines"),
):
    """Check mon health periodically until interrupted."""
    try:
        checker = _build_checker(config, verbose, events)
    except MonkeeperError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)

    stop = threading.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, lambda *_: stop.set())
    checker.run_forever(stop)


if __name__ == "__main__":
    app()
