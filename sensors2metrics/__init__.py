"""Hardware sensor to Prometheus metrics exporter."""

from sensors2metrics.classifier import MetricDescriptor, classify
from sensors2metrics.collector import SensorCollector
from sensors2metrics.config import AppConfig, load_config
from sensors2metrics.labels import LabelBuilder
from sensors2metrics.metrics import MetricSink
from sensors2metrics.providers import (
    LibreHardwareMonitorProvider,
    PsutilProvider,
    build_provider,
)

__all__ = [
    "AppConfig",
    "LabelBuilder",
    "LibreHardwareMonitorProvider",
    "MetricDescriptor",
    "MetricSink",
    "PsutilProvider",
    "SensorCollector",
    "build_provider",
    "classify",
    "load_config",
]
