"""Process entry point: wire everything up, wait for the initial sync, then serve until signalled."""

import signal
import sys
import threading
from typing import Mapping

from kubernetes import client

from .classifier import EventClassifier
from .config import ScalerConfig, load_config
from .errors import ScalerError, SyncError
from .event_source import EventSource
from .health import HealthServer
from .kube import build_clients
from .patcher import ResourcePatcher
from .reconciler import ReconciliationLoop
from .scaler_logger import ScalerLogger, configure_logging


logger = ScalerLogger("main").logger


def build_loop(cfg: ScalerConfig, apps: client.AppsV1Api) -> ReconciliationLoop:
    classifier = EventClassifier(
        targets=cfg.targets,
        watched_apps=cfg.watched_apps,
        strip_suffix=cfg.strip_suffix,
    )
    return ReconciliationLoop(classifier, ResourcePatcher(apps, timeout=cfg.patch_timeout))


def start_health(port: int) -> HealthServer | None:
    if not port:
        return None
    try:
        server = HealthServer(port)
    except OSError as e:
        logger.error(f"HTTP server error: {e}")
        return None
    server.start()
    return server


def run(environ: Mapping[str, str] | None = None, shutdown: threading.Event | None = None) -> int:
    shutdown = shutdown or threading.Event()
    cfg = load_config(environ)
    configure_logging(cfg.log_level, cfg.log_file, force=True)

    if cfg.watch_all_namespaces:
        logger.info("TARGET_NAMESPACES is empty, watching events in all namespaces")
    if not cfg.watched_apps:
        logger.info("WATCHED_APPS is empty, acting on every KEDA scale target")

    core, apps = build_clients(cfg.kubeconfig)
    loop = build_loop(cfg, apps)

    source = EventSource(core, cfg.target_namespaces, loop.handle_object)
    source.start()
    try:
        source.wait_for_sync(cfg.sync_timeout)
    except SyncError:
        source.stop()
        raise
    loop.arm()

    scopes = ", ".join(cfg.target_namespaces) or "all namespaces"
    targets = ", ".join(f"{t.kind}:{t.name_template}" for t in cfg.targets)
    logger.info(f"Informers synced, watching for new events in {scopes} (targets: {targets})")

    health = start_health(cfg.health_port)

    shutdown.wait()
    logger.info("Shutting down")
    source.stop()
    if health is not None:
        health.stop()
    return 0


def main() -> int:
    shutdown = threading.Event()

    def on_signal(signum, _frame):
        logger.info(f"Received signal {signal.Signals(signum).name}")
        shutdown.set()

    signal.signal(signal.SIGTERM, on_signal)
    signal.signal(signal.SIGINT, on_signal)

    try:
        return run(shutdown=shutdown)
    except ScalerError as e:
        sys.stderr.write(f"{e}\n")
        return 1
