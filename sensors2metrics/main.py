from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading

from prometheus_client import CollectorRegistry, generate_latest, start_http_server

from sensors2metrics.collector import SensorCollector, register_boot_time
from sensors2metrics.config import AppConfig, apply_overrides, load_config
from sensors2metrics.hardware import HardwareAccessError
from sensors2metrics.labels import LabelBuilder
from sensors2metrics.logging_utils import configure_logging, resolve_log_level
from sensors2metrics.metrics import MetricSink
from sensors2metrics.providers import HardwareProvider, build_provider
from sensors2metrics.schema import load_static_labels


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hardware sensor Prometheus exporter")
    parser.add_argument(
        "--config",
        help="Path to CFG configuration file",
    )
    parser.add_argument("--host", help="Address to listen on (default 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Port to listen on (default 6272)")
    parser.add_argument(
        "--labels",
        dest="labels_file",
        help="JSON file of static labels applied to every series (default labels.json)",
    )
    parser.add_argument(
        "--label-mode",
        choices=["verbose", "compact"],
        help="Always include sensor_name (verbose) or drop it when decomposed (compact)",
    )
    parser.add_argument(
        "--source",
        choices=["lhm", "psutil"],
        help="Hardware source: LibreHardwareMonitor web server or psutil hwmon",
    )
    parser.add_argument(
        "--lhm-url",
        dest="librehardwaremonitor_url",
        help="LibreHardwareMonitor data.json URL",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable debug logging (-v) or trace logging (-vv)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Collect once, print the exposition text and exit",
    )
    return parser


def build_registry(
    config: AppConfig, provider: HardwareProvider
) -> tuple[CollectorRegistry, SensorCollector]:
    sink = MetricSink(load_static_labels(config.exporter.labels_file))
    register_boot_time(sink)
    collector = SensorCollector(sink, LabelBuilder(config.exporter.label_mode))
    collector.attach(provider.computer)
    registry = CollectorRegistry()
    registry.register(sink)
    return registry, collector


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(resolve_log_level(args.verbose, args.log_level))
    logger = logging.getLogger("sensors2metrics")
    config = apply_overrides(
        load_config(args.config),
        host=args.host,
        port=args.port,
        labels_file=args.labels_file,
        label_mode=args.label_mode,
        source=args.source,
        librehardwaremonitor_url=args.librehardwaremonitor_url,
    )

    provider = build_provider(config.hardware)
    try:
        provider.open()
    except HardwareAccessError as exc:
        logger.error("Unable to open hardware (%s source): %s", config.hardware.source, exc)
        return 1

    registry, collector = build_registry(config, provider)

    if args.once:
        try:
            sys.stdout.write(generate_latest(registry).decode("utf-8"))
        finally:
            collector.close()
            provider.close()
        return 0

    # Warm up the tree before the first scrape arrives.
    collector.collect(provider.computer)

    server, _thread = start_http_server(
        config.exporter.port, addr=config.exporter.host, registry=registry
    )
    logger.info(
        "Serving metrics on http://%s:%s/metrics. Press Ctrl+C to exit.",
        config.exporter.host,
        config.exporter.port,
    )

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: stop.set())
    try:
        while not stop.wait(1):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        logger.info("Stopping exporter.")
        server.shutdown()
        server.server_close()
        collector.close()
        provider.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
