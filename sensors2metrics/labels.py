from __future__ import annotations

import re

from sensors2metrics.hardware import HardwareNode, HardwareType, Sensor

PATH_SEPARATOR = " › "

LABEL_MODES = ("verbose", "compact")

# Label names produced by the builder; static labels may not reuse them.
ENGINE_LABELS = frozenset(
    {
        "sensor_type",
        "hardware_type",
        "hardware_name",
        "sensor_name",
        "cpu",
        "cpu_core",
        "cpu_thread",
        "manufacturer",
    }
)

# Best effort: these follow the display names LibreHardwareMonitor uses
# ("CPU Core #3", "Core #3 Thread #1") and break if upstream renames them.
_CORE_RE = re.compile(r"Core #(\d+)")
_THREAD_RE = re.compile(r"Thread #(\d+)")
_CPU_TOKEN_RE = re.compile(r"^\s*CPU\b")


def device_path(hardware: HardwareNode) -> str:
    names = [hardware.name]
    parent = hardware.parent
    while parent is not None:
        names.append(parent.name)
        parent = parent.parent
    return PATH_SEPARATOR.join(reversed(names))


def child_path(parent_path: str | None, hardware: HardwareNode) -> str:
    if not parent_path:
        return hardware.name
    return f"{parent_path}{PATH_SEPARATOR}{hardware.name}"


def cpu_labels(sensor_name: str) -> tuple[dict[str, str], bool]:
    """Split a CPU sensor name into core/thread labels.

    Returns the labels and whether the name was fully decomposed by them.
    """
    core = _CORE_RE.search(sensor_name)
    if core is None:
        return {"cpu": "package"}, False
    labels = {"cpu": "core", "cpu_core": core.group(1)}
    remainder = _CORE_RE.sub("", sensor_name)
    thread = _THREAD_RE.search(sensor_name)
    if thread is not None:
        labels["cpu_thread"] = thread.group(1)
        remainder = _THREAD_RE.sub("", remainder)
    remainder = _CPU_TOKEN_RE.sub("", remainder)
    return labels, not remainder.strip()


class LabelBuilder:
    def __init__(self, mode: str = "verbose") -> None:
        if mode not in LABEL_MODES:
            raise ValueError(f"Unknown label mode: {mode}")
        self.mode = mode

    def build(
        self,
        sensor: Sensor,
        path: str | None = None,
        decompose_cpu: bool | None = None,
    ) -> dict[str, str]:
        hardware = sensor.hardware
        if hardware is None:
            raise ValueError(f"Sensor {sensor.identifier} has no owning hardware")
        if path is None:
            path = device_path(hardware)
        if decompose_cpu is None:
            decompose_cpu = hardware.hardware_type is HardwareType.CPU

        labels = {
            "sensor_type": sensor.sensor_type.value,
            "hardware_type": hardware.hardware_type.value,
            "hardware_name": path,
        }
        structured: dict[str, str] = {}
        decomposed = False
        if decompose_cpu:
            structured, decomposed = cpu_labels(sensor.name)
            if hardware.vendor:
                structured["manufacturer"] = hardware.vendor

        if self.mode == "verbose" or not decomposed:
            labels["sensor_name"] = sensor.name
        labels.update(structured)
        return labels
