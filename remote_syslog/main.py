#!/usr/bin/env python3
"""remote_syslog: entry point."""

import functools
import logging
import queue
import signal
import sys
import threading

from remote_syslog.client import SyslogClient
from remote_syslog.config import Config, ConfigError, load_config
from remote_syslog.metrics import Metrics, MetricsReporter
from remote_syslog.notifier import ChangeNotifier
from remote_syslog.registry import WorkerRegistry
from remote_syslog.scanner import GlobScanner
from remote_syslog.tailer import FileTail
from remote_syslog.tls_context import create_client_context
from remote_syslog.worker import ForwardSettings

LOG_FORMAT = "%(asctime)s [REMOTE_SYSLOG] %(levelname)s %(name)s %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


def build_client(config: Config) -> SyslogClient:
    ssl_context = None
    if config.dest_protocol == "tls":
        ssl_context = create_client_context(config.ca_file, verify=config.tls_verify)
    return SyslogClient(
        config.dest_host,
        config.dest_port,
        protocol=config.dest_protocol,
        client_hostname=config.hostname,
        ssl_context=ssl_context,
        connect_timeout=config.connect_timeout,
        write_timeout=config.write_timeout,
        tcp_max_line_length=config.tcp_max_line_length,
        buffer_size=config.buffer_size,
    )


def build_scanner(
    config: Config,
    client: SyslogClient,
    shutdown_event: threading.Event,
    notifier: ChangeNotifier | None = None,
    metrics: Metrics | None = None,
) -> GlobScanner:
    tail_factory = functools.partial(
        FileTail,
        shutdown_event=shutdown_event,
        poll=config.poll,
        notifier=notifier,
    )
    settings = ForwardSettings(
        severity=config.severity,
        facility=config.facility,
        hostname=client.client_hostname,
        exclude_patterns=config.exclude_patterns,
    )
    return GlobScanner(
        config.files,
        config.exclude_files,
        WorkerRegistry(),
        client.packets,
        settings,
        tail_factory,
        metrics=metrics,
    )


def drain_errors(client: SyslogClient, shutdown_event: threading.Event):
    """Log transport errors until shutdown. Errors never stop forwarding."""
    while not shutdown_event.is_set():
        try:
            err = client.errors.get(timeout=0.5)
        except queue.Empty:
            continue
        logger.error("Syslog error: %s", err)


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        config = load_config(argv)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 1
    configure_logging(config.log_level)

    shutdown_event = threading.Event()

    def _signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    notifier = None
    if not config.poll:
        notifier = ChangeNotifier()
        notifier.start()

    metrics = Metrics()
    client = build_client(config)
    logger.info("Connecting to %s over %s", client.address, config.dest_protocol)
    client.start()

    scanner = build_scanner(config, client, shutdown_event, notifier, metrics)
    rescan = threading.Thread(
        target=scanner.run,
        args=(config.refresh_interval, shutdown_event),
        name="rescan",
        daemon=True,
    )
    rescan.start()

    reporter = None
    if config.metrics_interval > 0:
        reporter = MetricsReporter(
            metrics, config.metrics_interval, shutdown_event, active_workers=lambda: len(scanner.registry),
        )
        reporter.start()

    try:
        drain_errors(client, shutdown_event)
    except KeyboardInterrupt:
        shutdown_event.set()

    logger.info("Shutting down...")
    rescan.join(timeout=5)
    if notifier:
        notifier.stop()
    for worker in scanner.workers:
        worker.join(timeout=2)
    if reporter:
        reporter.stop()
    client.close()
    logger.info("Forwarded %d packets", client.sent)
    return 0


if __name__ == "__main__":
    sys.exit(main())
