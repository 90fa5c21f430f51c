"""Map (hardware type, sensor type, sensor name) to a metric descriptor.

New combinations are added to ``METRIC_TABLE``; the traversal code never
changes for them.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

from sensors2metrics.hardware import HardwareType, SensorType

PREFIX = "lhm_"

Transform = Callable[[float], float]


def identity(value: float) -> float:
    return value


def percent_to_ratio(value: float) -> float:
    return value / 100


@dataclass(frozen=True)
class MetricDescriptor:
    name: str
    documentation: str
    transform: Transform = identity
    cpu_labels: bool = False
    excluded: bool = False

    def convert(self, value: float) -> float:
        return float(self.transform(value))


def _cpu(suffix: str, documentation: str, transform: Transform = identity) -> MetricDescriptor:
    return MetricDescriptor(f"{PREFIX}cpu_{suffix}", documentation, transform, cpu_labels=True)


def _metric(suffix: str, documentation: str, transform: Transform = identity) -> MetricDescriptor:
    return MetricDescriptor(f"{PREFIX}{suffix}", documentation, transform)


_GPU_TYPES = (HardwareType.GPU_NVIDIA, HardwareType.GPU_AMD, HardwareType.GPU_INTEL)

_GPU_METRICS: dict[SensorType, MetricDescriptor] = {
    SensorType.TEMPERATURE: _metric("gpu_temp_celsius", "GPU Temperature"),
    SensorType.LOAD: _metric("gpu_load_ratio", "GPU Load", percent_to_ratio),
    SensorType.CLOCK: _metric("gpu_clock_mhz", "GPU Clock"),
    SensorType.POWER: _metric("gpu_power_watts", "GPU Power"),
    SensorType.FAN: _metric("gpu_fan_rpm", "GPU Fan"),
    SensorType.CONTROL: _metric("gpu_control", "GPU Fan Control", percent_to_ratio),
}

METRIC_TABLE: dict[tuple[HardwareType, SensorType], MetricDescriptor] = {
    (HardwareType.CPU, SensorType.TEMPERATURE): _cpu("temp_celsius", "CPU Temperature"),
    (HardwareType.CPU, SensorType.LOAD): _cpu("load_ratio", "CPU Load", percent_to_ratio),
    (HardwareType.CPU, SensorType.POWER): _cpu("power_watts", "CPU Power"),
    (HardwareType.CPU, SensorType.CLOCK): _cpu("clock_mhz", "CPU Clock"),
    (HardwareType.CPU, SensorType.VOLTAGE): _cpu("voltage_volts", "CPU Voltage"),
    (HardwareType.CPU, SensorType.CURRENT): _cpu("current_amperes", "CPU Current"),
    (HardwareType.CPU, SensorType.FACTOR): _cpu("factor", "CPU Factor"),
    (HardwareType.SUPER_IO, SensorType.VOLTAGE): _metric("superio_voltage_volts", "SuperIO Voltage"),
    # Fan duty percentage
    (HardwareType.SUPER_IO, SensorType.CONTROL): _metric(
        "superio_control", "SuperIO Control", percent_to_ratio
    ),
    (HardwareType.SUPER_IO, SensorType.TEMPERATURE): _metric(
        "superio_temp_celsius", "SuperIO Temperature"
    ),
    (HardwareType.SUPER_IO, SensorType.FAN): _metric("superio_fan_rpm", "SuperIO Fan"),
    (HardwareType.MEMORY, SensorType.LOAD): _metric(
        "memory_load_ratio", "Memory Load", percent_to_ratio
    ),
    (HardwareType.MEMORY, SensorType.DATA): _metric("memory_data_gigabytes", "Memory Data"),
    (HardwareType.STORAGE, SensorType.TEMPERATURE): _metric(
        "storage_temp_celsius", "Storage Temperature"
    ),
}
METRIC_TABLE.update(
    {
        (hardware_type, sensor_type): descriptor
        for hardware_type in _GPU_TYPES
        for sensor_type, descriptor in _GPU_METRICS.items()
    }
)

# Substrings of sensor names that are never emitted for an otherwise handled pair.
NAME_EXCLUSIONS: dict[tuple[HardwareType, SensorType], tuple[str, ...]] = {
    # Intel reports headroom to the thermal limit as a temperature.
    (HardwareType.CPU, SensorType.TEMPERATURE): ("Distance to TjMax",),
}


def classify(
    hardware_type: HardwareType, sensor_type: SensorType, sensor_name: str
) -> MetricDescriptor | None:
    """Return the descriptor for a sensor, or None if the pair is unhandled.

    An excluded sensor still gets a descriptor (with ``excluded=True``), so
    callers can tell a deliberate suppression from an unsupported pair.
    """
    key = (hardware_type, sensor_type)
    descriptor = METRIC_TABLE.get(key)
    if descriptor is None:
        return None
    for marker in NAME_EXCLUSIONS.get(key, ()):
        if marker in (sensor_name or ""):
            return replace(descriptor, excluded=True)
    return descriptor
