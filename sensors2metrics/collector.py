from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
import time

import psutil

from sensors2metrics.classifier import PREFIX, classify
from sensors2metrics.hardware import (
    Computer,
    HardwareNode,
    HardwareRefreshError,
    Sensor,
)
from sensors2metrics.labels import LabelBuilder, child_path
from sensors2metrics.metrics import MetricSink

BOOT_TIMESTAMP_METRIC = f"{PREFIX}system_boot_timestamp_seconds"

# Value emitted for a sensor that currently has no reading.
ABSENT_VALUE = 0.0


@dataclass
class CollectionStats:
    devices: int = 0
    failed_devices: int = 0
    emitted: int = 0
    excluded: int = 0
    unhandled: int = 0
    duration_s: float = 0.0


class SensorCollector:
    """Walks the hardware tree and writes classified sensors into a MetricSink.

    A lock guarantees at most one traversal at a time; concurrent scrapes
    wait for the running one to finish.
    """

    def __init__(self, sink: MetricSink, labels: LabelBuilder | None = None) -> None:
        self.sink = sink
        self.labels = labels or LabelBuilder()
        self.logger = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._closed = False

    def attach(self, computer: Computer) -> None:
        """Run a traversal of ``computer`` before every sink collection."""
        self.sink.add_before_collect_callback(lambda: self.collect(computer))

    def collect(self, computer: Computer) -> CollectionStats:
        with self._lock:
            if self._closed:
                self.logger.debug("Collector closed; skipping collection.")
                return CollectionStats()
            self.logger.debug("Collecting metrics...")
            started = time.monotonic()
            stats = CollectionStats()
            self.sink.begin_cycle()
            try:
                computer.update()
            except HardwareRefreshError as exc:
                self.logger.warning("Hardware refresh failed: %s", exc)
            else:
                for hardware in computer.hardware:
                    self._visit(hardware, None, stats)
            finally:
                self.sink.end_cycle()
            stats.duration_s = time.monotonic() - started
            self.logger.debug(
                "Metrics collected: %s device(s), %s failed, %s emitted, %s excluded, "
                "%s unhandled in %.3fs.",
                stats.devices,
                stats.failed_devices,
                stats.emitted,
                stats.excluded,
                stats.unhandled,
                stats.duration_s,
            )
            return stats

    def _visit(
        self, hardware: HardwareNode, parent_path: str | None, stats: CollectionStats
    ) -> None:
        stats.devices += 1
        try:
            hardware.update()
        except HardwareRefreshError as exc:
            stats.failed_devices += 1
            self.logger.warning(
                "Skipping %s (%s) and its sub-hardware: %s",
                hardware.name,
                hardware.hardware_type.value,
                exc,
            )
            return
        except Exception:
            stats.failed_devices += 1
            self.logger.exception(
                "Unexpected error refreshing %s (%s); skipping it and its sub-hardware.",
                hardware.name,
                hardware.hardware_type.value,
            )
            return
        path = child_path(parent_path, hardware)
        for sensor in hardware.sensors:
            self._emit(hardware, sensor, path, stats)
        for child in hardware.sub_hardware:
            self._visit(child, path, stats)

    def _emit(
        self, hardware: HardwareNode, sensor: Sensor, path: str, stats: CollectionStats
    ) -> None:
        descriptor = classify(hardware.hardware_type, sensor.sensor_type, sensor.name)
        if descriptor is None:
            stats.unhandled += 1
            self.logger.info(
                "[SKIPPED SENSOR] %s: %s (%s): %s",
                hardware.hardware_type.value,
                sensor.name,
                sensor.sensor_type.value,
                sensor.value if sensor.value is not None else ABSENT_VALUE,
            )
            return
        if descriptor.excluded:
            stats.excluded += 1
            return
        raw = sensor.value if sensor.value is not None else ABSENT_VALUE
        labels = self.labels.build(sensor, path=path, decompose_cpu=descriptor.cpu_labels)
        self.sink.gauge(descriptor.name, descriptor.documentation, labels).set(
            descriptor.convert(raw)
        )
        stats.emitted += 1

    def close(self) -> None:
        """Wait for any in-flight traversal to finish."""
        with self._lock:
            self._closed = True
            self.logger.debug("Collector closed.")


def register_boot_time(sink: MetricSink) -> float:
    boot = float(int(psutil.boot_time()))
    sink.gauge(
        BOOT_TIMESTAMP_METRIC, "System boot timestamp in seconds", static=True
    ).set(boot)
    return boot
