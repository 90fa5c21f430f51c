from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Callable, Iterable

from prometheus_client.metrics_core import Metric

from sensors2metrics.logging_utils import TRACE_LEVEL

SeriesKey = tuple[str, frozenset[tuple[str, str]]]


@dataclass
class GaugeSeries:
    name: str
    documentation: str
    labels: dict[str, str]
    value: float = 0.0
    static: bool = False
    generation: int = field(default=0, repr=False)

    def set(self, value: float) -> None:
        self.value = float(value)


class MetricSink:
    """Gauge storage keyed by (name, label set), exposed as a prometheus collector.

    Series written during a cycle replace those of the previous cycle; any
    non-static series not touched by the latest cycle is dropped so that a
    failing device never serves old readings.
    """

    def __init__(self, static_labels: dict[str, str] | None = None) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        self._series: dict[SeriesKey, GaugeSeries] = {}
        self._static_labels: dict[str, str] = dict(static_labels or {})
        self._callbacks: list[Callable[[], None]] = []
        self._generation = 0
        self._lock = threading.RLock()

    @staticmethod
    def series_key(name: str, labels: dict[str, str]) -> SeriesKey:
        return name, frozenset(labels.items())

    @property
    def static_labels(self) -> dict[str, str]:
        return dict(self._static_labels)

    def set_static_labels(self, labels: dict[str, str]) -> None:
        with self._lock:
            self._static_labels = dict(labels)

    def add_before_collect_callback(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def begin_cycle(self) -> None:
        with self._lock:
            self._generation += 1

    def end_cycle(self) -> None:
        with self._lock:
            stale = [
                key
                for key, series in self._series.items()
                if not series.static and series.generation != self._generation
            ]
            for key in stale:
                del self._series[key]
        if stale:
            self.logger.debug("Dropped %s series not refreshed this cycle.", len(stale))

    def gauge(
        self,
        name: str,
        documentation: str,
        labels: dict[str, str] | None = None,
        static: bool = False,
    ) -> GaugeSeries:
        """Create the series on first use, otherwise return the existing one."""
        labels = dict(labels or {})
        key = self.series_key(name, labels)
        with self._lock:
            series = self._series.get(key)
            if series is None:
                series = GaugeSeries(name, documentation, labels, static=static)
                self._series[key] = series
                self.logger.log(TRACE_LEVEL, "Registered series %s %s", name, labels)
            series.generation = self._generation
            return series

    def series(self) -> list[GaugeSeries]:
        with self._lock:
            return list(self._series.values())

    def describe(self) -> Iterable[Metric]:
        return []

    def collect(self) -> Iterable[Metric]:
        for callback in self._callbacks:
            callback()
        families: dict[str, Metric] = {}
        with self._lock:
            static_labels = self._static_labels
            for series in self._series.values():
                family = families.get(series.name)
                if family is None:
                    family = Metric(series.name, series.documentation, "gauge")
                    families[series.name] = family
                family.add_sample(series.name, {**series.labels, **static_labels}, series.value)
        return list(families.values())
