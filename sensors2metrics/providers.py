from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
import platform
import re
from typing import Any, Iterable, Iterator
from urllib.request import urlopen

import psutil

from sensors2metrics.config import HardwareConfig
from sensors2metrics.hardware import (
    Computer,
    HardwareAccessError,
    HardwareNode,
    HardwareRefreshError,
    HardwareType,
    Sensor,
    SensorType,
)
from sensors2metrics.logging_utils import TRACE_LEVEL


@dataclass
class SensorReading:
    identifier: str
    sensor_type: SensorType
    name: str
    value: float | None


@dataclass
class HardwareSnapshot:
    identifier: str
    hardware_type: HardwareType
    name: str
    vendor: str | None = None
    sensors: list[SensorReading] = field(default_factory=list)
    children: list[HardwareSnapshot] = field(default_factory=list)

    def walk(self) -> Iterator[HardwareSnapshot]:
        yield self
        for child in self.children:
            yield from child.walk()


class HardwareProvider:
    """Owns the device forest and refreshes it from periodic snapshots.

    The root refresh reads one snapshot per cycle; each device refresh then
    copies that snapshot's values into the device's sensors.
    """

    def __init__(self, enabled: Iterable[HardwareType]) -> None:
        self.enabled = frozenset(enabled)
        self.logger = logging.getLogger(self.__class__.__name__)
        self.computer = Computer(_refresh=self._refresh_computer)
        self._readings: dict[str, dict[str, float | None]] = {}
        self._signature: tuple[Any, ...] | None = None

    def open(self) -> Computer:
        try:
            snapshot = self._read()
        except HardwareRefreshError as exc:
            raise HardwareAccessError(str(exc)) from exc
        self._apply(snapshot)
        self.logger.info(
            "Hardware opened: %s device(s).", sum(1 for _ in self.computer.walk())
        )
        return self.computer

    def close(self) -> None:
        self.computer.hardware = []
        self._readings = {}
        self._signature = None
        self.logger.info("Hardware closed.")

    def _read(self) -> list[HardwareSnapshot]:
        raise NotImplementedError

    def _refresh_computer(self, computer: Computer) -> None:
        self._apply(self._read())

    def _refresh_hardware(self, hardware: HardwareNode) -> None:
        readings = self._readings.get(hardware.identifier)
        if readings is None:
            raise HardwareRefreshError(
                f"{hardware.name} ({hardware.identifier}) missing from latest snapshot"
            )
        for sensor in hardware.sensors:
            sensor.value = readings.get(sensor.identifier)

    def _apply(self, snapshot: list[HardwareSnapshot]) -> None:
        snapshot = [item for item in snapshot if item.hardware_type in self.enabled]
        signature = tuple(_signature(item) for item in snapshot)
        if signature != self._signature:
            if self._signature is not None:
                self.logger.info("Hardware tree changed; rebuilding.")
            self.computer.hardware = [self._build(item) for item in snapshot]
            self._signature = signature
        self._readings = {
            hardware.identifier: {s.identifier: s.value for s in hardware.sensors}
            for item in snapshot
            for hardware in item.walk()
        }

    def _build(self, snapshot: HardwareSnapshot) -> HardwareNode:
        node = HardwareNode(
            identifier=snapshot.identifier,
            hardware_type=snapshot.hardware_type,
            name=snapshot.name,
            vendor=snapshot.vendor,
            _refresh=self._refresh_hardware,
        )
        for reading in snapshot.sensors:
            node.add_sensor(
                Sensor(reading.identifier, reading.sensor_type, reading.name, reading.value)
            )
        for child in snapshot.children:
            node.add_sub_hardware(self._build(child))
        return node


def _signature(snapshot: HardwareSnapshot) -> tuple[Any, ...]:
    return (
        snapshot.identifier,
        snapshot.hardware_type,
        snapshot.name,
        tuple((s.identifier, s.sensor_type, s.name) for s in snapshot.sensors),
        tuple(_signature(child) for child in snapshot.children),
    )


_NUMBER_RE = re.compile(r"^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")

_HARDWARE_ALIASES = {
    "mainboard": HardwareType.MOTHERBOARD,
    "gpuati": HardwareType.GPU_AMD,
    "hdd": HardwareType.STORAGE,
    "ram": HardwareType.MEMORY,
    "heatmaster": HardwareType.COOLER,
    "tbalancer": HardwareType.COOLER,
    "aquacomputer": HardwareType.COOLER,
}

_ID_PREFIXES = {
    "motherboard": HardwareType.MOTHERBOARD,
    "mainboard": HardwareType.MOTHERBOARD,
    "lpc": HardwareType.SUPER_IO,
    "amdcpu": HardwareType.CPU,
    "intelcpu": HardwareType.CPU,
    "cpu": HardwareType.CPU,
    "ram": HardwareType.MEMORY,
    "memory": HardwareType.MEMORY,
    "gpu-nvidia": HardwareType.GPU_NVIDIA,
    "nvidiagpu": HardwareType.GPU_NVIDIA,
    "gpu-amd": HardwareType.GPU_AMD,
    "atigpu": HardwareType.GPU_AMD,
    "gpu-intel": HardwareType.GPU_INTEL,
    "gpu-intel-integrated": HardwareType.GPU_INTEL,
    "nvme": HardwareType.STORAGE,
    "hdd": HardwareType.STORAGE,
    "ssd": HardwareType.STORAGE,
    "nic": HardwareType.NETWORK,
    "battery": HardwareType.BATTERY,
    "psu": HardwareType.PSU,
}

_IMAGE_NAMES = {
    "mainboard": HardwareType.MOTHERBOARD,
    "chip": HardwareType.SUPER_IO,
    "cpu": HardwareType.CPU,
    "ram": HardwareType.MEMORY,
    "nvidia": HardwareType.GPU_NVIDIA,
    "ati": HardwareType.GPU_AMD,
    "amd": HardwareType.GPU_AMD,
    "intel": HardwareType.GPU_INTEL,
    "hdd": HardwareType.STORAGE,
    "nic": HardwareType.NETWORK,
    "battery": HardwareType.BATTERY,
    "psu": HardwareType.PSU,
}

_CPU_VENDORS = {
    "amdcpu": "AMD",
    "intelcpu": "Intel",
    "GenuineIntel": "Intel",
    "AuthenticAMD": "AMD",
}


def parse_value(value: Any) -> float | None:
    """Parse an LHM value: a number or a unit-suffixed string like ``"65.0 °C"``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).replace(",", "").strip()
    match = _NUMBER_RE.match(text)
    if match is None:
        return None
    return float(match.group(0))


def _id_prefix(identifier: str) -> str:
    return identifier.strip("/").split("/", 1)[0].lower()


def _is_sensor_node(node: dict[str, Any]) -> bool:
    if node.get("Type") == "Sensor":
        return True
    return bool(node.get("SensorId")) and node.get("Type") not in (None, "", "Hardware")


def _hardware_id(node: dict[str, Any]) -> str | None:
    # Some LHM builds tag hardware nodes with SensorId instead of HardwareId.
    return node.get("HardwareId") or node.get("SensorId") or None


class LibreHardwareMonitorProvider(HardwareProvider):
    """Reads the device tree from the LibreHardwareMonitor web server (data.json)."""

    def __init__(
        self, url: str, enabled: Iterable[HardwareType], timeout: float = 2.0
    ) -> None:
        super().__init__(enabled)
        self.url = url
        self.timeout = timeout

    def _read(self) -> list[HardwareSnapshot]:
        try:
            with urlopen(self.url, timeout=self.timeout) as response:
                payload = response.read().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise HardwareRefreshError(
                f"Failed to fetch LibreHardwareMonitor JSON from {self.url}: {exc}"
            ) from exc
        if self.logger.isEnabledFor(TRACE_LEVEL):
            self.logger.log(TRACE_LEVEL, "LibreHardwareMonitor raw payload: %s", payload)
        try:
            raw = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise HardwareRefreshError(
                f"Failed to parse LibreHardwareMonitor JSON: {exc}"
            ) from exc
        if not isinstance(raw, dict):
            raise HardwareRefreshError("LibreHardwareMonitor JSON root is not an object")
        return self.parse(raw)

    def parse(self, raw: dict[str, Any]) -> list[HardwareSnapshot]:
        roots: list[HardwareSnapshot] = []

        def walk(node: dict[str, Any], owner: HardwareSnapshot | None) -> None:
            name = (node.get("Text") or "").replace("\x00", "").strip()
            children = [child for child in (node.get("Children") or []) if isinstance(child, dict)]

            hardware_type = self._hardware_type(node)
            if hardware_type is not None:
                siblings = owner.children if owner is not None else roots
                identifier = _hardware_id(node) or self._fallback_id(
                    owner, hardware_type.value.lower(),
                    sum(1 for s in siblings if s.hardware_type is hardware_type),
                )
                hardware = HardwareSnapshot(
                    identifier=identifier,
                    hardware_type=hardware_type,
                    name=name or hardware_type.value,
                    vendor=_CPU_VENDORS.get(_id_prefix(identifier)),
                )
                siblings.append(hardware)
                for child in children:
                    walk(child, hardware)
                return

            if _is_sensor_node(node):
                sensor_type = self._sensor_type(node)
                if sensor_type is None:
                    self.logger.debug(
                        "Ignoring sensor %s with unknown type %s.",
                        name,
                        node.get("SensorType") or node.get("Type"),
                    )
                    return
                if owner is None:
                    self.logger.debug("Ignoring sensor %s outside any hardware.", name)
                    return
                identifier = node.get("SensorId") or self._fallback_id(
                    owner, sensor_type.value.lower(),
                    sum(1 for s in owner.sensors if s.sensor_type is sensor_type),
                )
                owner.sensors.append(
                    SensorReading(identifier, sensor_type, name, parse_value(node.get("Value")))
                )
                return

            for child in children:
                walk(child, owner)

        walk(raw, None)
        return roots

    @staticmethod
    def _fallback_id(owner: HardwareSnapshot | None, kind: str, index: int) -> str:
        base = owner.identifier if owner is not None else ""
        return f"{base}/{kind}/{index}"

    @staticmethod
    def _hardware_type(node: dict[str, Any]) -> HardwareType | None:
        if node.get("Type") == "Hardware":
            text = node.get("HardwareType") or ""
            return HardwareType.parse(text) or _HARDWARE_ALIASES.get(text.lower())
        if _is_sensor_node(node):
            return None
        hardware_id = _hardware_id(node)
        if hardware_id:
            prefix = _id_prefix(hardware_id)
            if prefix in _ID_PREFIXES:
                return _ID_PREFIXES[prefix]
        image = node.get("ImageURL") or ""
        stem = image.rsplit("/", 1)[-1].rsplit(".", 1)[0].lower()
        return _IMAGE_NAMES.get(stem)

    @staticmethod
    def _sensor_type(node: dict[str, Any]) -> SensorType | None:
        if node.get("Type") == "Sensor":
            return SensorType.parse(node.get("SensorType"))
        if node.get("SensorId"):
            return SensorType.parse(node.get("Type"))
        return None


_CHIP_TYPES = {
    "coretemp": HardwareType.CPU,
    "k10temp": HardwareType.CPU,
    "zenpower": HardwareType.CPU,
    "cpu_thermal": HardwareType.CPU,
    "nvme": HardwareType.STORAGE,
    "drivetemp": HardwareType.STORAGE,
    "amdgpu": HardwareType.GPU_AMD,
    "radeon": HardwareType.GPU_AMD,
    "nouveau": HardwareType.GPU_NVIDIA,
    "i915": HardwareType.GPU_INTEL,
}

_CORETEMP_CORE_RE = re.compile(r"^Core (\d+)$")
_CORETEMP_PACKAGE_RE = re.compile(r"^Package id (\d+)$")


class PsutilProvider(HardwareProvider):
    """Builds the device tree from Linux hwmon data exposed by psutil."""

    def __init__(
        self,
        enabled: Iterable[HardwareType],
        dmi_path: str = "/sys/class/dmi/id",
        cpuinfo_path: str = "/proc/cpuinfo",
    ) -> None:
        super().__init__(enabled)
        self.dmi_path = Path(dmi_path)
        self.cpuinfo_path = Path(cpuinfo_path)
        self._cpu_name = "CPU"
        self._cpu_vendor: str | None = None
        self._board_name = "Motherboard"

    def open(self) -> Computer:
        if not hasattr(psutil, "sensors_temperatures"):
            raise HardwareAccessError(
                f"psutil has no hardware sensor support on {platform.system()}"
            )
        self._cpu_name, self._cpu_vendor = self._read_cpuinfo()
        self._board_name = self._read_sysfs_file(self.dmi_path / "board_name") or "Motherboard"
        # The first cpu_percent(interval=None) call only primes the counters.
        psutil.cpu_percent(interval=None)
        return super().open()

    def _read(self) -> list[HardwareSnapshot]:
        try:
            temperatures = psutil.sensors_temperatures()
            fans = psutil.sensors_fans() if hasattr(psutil, "sensors_fans") else {}
            frequencies = psutil.cpu_freq(percpu=True) or []
            load = psutil.cpu_percent(interval=None)
        except OSError as exc:
            raise HardwareRefreshError(f"Failed to read hwmon sensors: {exc}") from exc
        if self.logger.isEnabledFor(TRACE_LEVEL):
            self.logger.log(TRACE_LEVEL, "psutil temperatures: %s fans: %s", temperatures, fans)

        cpu = HardwareSnapshot("/cpu/0", HardwareType.CPU, self._cpu_name, self._cpu_vendor)
        motherboard = HardwareSnapshot("/motherboard", HardwareType.MOTHERBOARD, self._board_name)
        devices: list[HardwareSnapshot] = []

        for chip in list(dict.fromkeys([*temperatures, *fans])):
            chip_type = _CHIP_TYPES.get(chip, HardwareType.SUPER_IO)
            if chip_type is HardwareType.CPU:
                for index, entry in enumerate(temperatures.get(chip, [])):
                    cpu.sensors.append(
                        SensorReading(
                            f"/cpu/0/temperature/{len(cpu.sensors)}",
                            SensorType.TEMPERATURE,
                            self._cpu_temperature_name(entry.label, index),
                            entry.current,
                        )
                    )
                continue
            if chip_type is HardwareType.SUPER_IO:
                device = HardwareSnapshot(f"/lpc/{chip}/0", chip_type, chip)
                motherboard.children.append(device)
            else:
                device = HardwareSnapshot(f"/{chip}/0", chip_type, chip)
                devices.append(device)
            for index, entry in enumerate(temperatures.get(chip, [])):
                device.sensors.append(
                    SensorReading(
                        f"{device.identifier}/temperature/{index}",
                        SensorType.TEMPERATURE,
                        entry.label or f"Temperature #{index + 1}",
                        entry.current,
                    )
                )
            for index, entry in enumerate(fans.get(chip, [])):
                device.sensors.append(
                    SensorReading(
                        f"{device.identifier}/fan/{index}",
                        SensorType.FAN,
                        entry.label or f"Fan #{index + 1}",
                        entry.current,
                    )
                )

        cpu.sensors.append(SensorReading("/cpu/0/load/0", SensorType.LOAD, "CPU Total", load))
        for index, frequency in enumerate(frequencies):
            cpu.sensors.append(
                SensorReading(
                    f"/cpu/0/clock/{index}",
                    SensorType.CLOCK,
                    f"CPU #{index + 1}",
                    frequency.current,
                )
            )
        return [cpu, motherboard, *devices]

    @staticmethod
    def _cpu_temperature_name(label: str, index: int) -> str:
        if match := _CORETEMP_CORE_RE.match(label):
            return f"Core #{int(match.group(1)) + 1}"
        if match := _CORETEMP_PACKAGE_RE.match(label):
            package = int(match.group(1))
            return "CPU Package" if package == 0 else f"CPU Package {package}"
        return label or f"Temperature #{index + 1}"

    def _read_cpuinfo(self) -> tuple[str, str | None]:
        text = self._read_sysfs_file(self.cpuinfo_path)
        name = platform.processor() or "CPU"
        vendor = None
        if not text:
            return name, vendor
        fields: dict[str, str] = {}
        for line in text.splitlines():
            key, _, value = line.partition(":")
            # Only the first processor block is needed.
            fields.setdefault(key.strip(), value.strip())
        if fields.get("model name"):
            name = fields["model name"]
        if fields.get("vendor_id"):
            vendor = _CPU_VENDORS.get(fields["vendor_id"], fields["vendor_id"])
        return name, vendor

    def _read_sysfs_file(self, path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError:
            self.logger.debug("Unable to read %s", path)
            return None


def build_provider(config: HardwareConfig) -> HardwareProvider:
    if config.source == "psutil":
        return PsutilProvider(config.enabled)
    return LibreHardwareMonitorProvider(
        config.librehardwaremonitor_url, config.enabled, timeout=config.timeout_s
    )
