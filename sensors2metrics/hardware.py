from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator
import weakref


class HardwareAccessError(RuntimeError):
    """Raised when the hardware source cannot be opened at all."""


class HardwareRefreshError(RuntimeError):
    """Raised when a single device (or the whole snapshot) cannot be refreshed."""


class _ParsableEnum(Enum):
    @classmethod
    def parse(cls, text: str | None):
        if not text:
            return None
        lowered = text.strip().lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        return None


class HardwareType(_ParsableEnum):
    MOTHERBOARD = "Motherboard"
    SUPER_IO = "SuperIO"
    CPU = "Cpu"
    MEMORY = "Memory"
    GPU_NVIDIA = "GpuNvidia"
    GPU_AMD = "GpuAmd"
    GPU_INTEL = "GpuIntel"
    STORAGE = "Storage"
    NETWORK = "Network"
    COOLER = "Cooler"
    EMBEDDED_CONTROLLER = "EmbeddedController"
    PSU = "Psu"
    BATTERY = "Battery"


class SensorType(_ParsableEnum):
    VOLTAGE = "Voltage"
    CURRENT = "Current"
    POWER = "Power"
    CLOCK = "Clock"
    TEMPERATURE = "Temperature"
    LOAD = "Load"
    FREQUENCY = "Frequency"
    FAN = "Fan"
    FLOW = "Flow"
    CONTROL = "Control"
    LEVEL = "Level"
    FACTOR = "Factor"
    DATA = "Data"
    SMALL_DATA = "SmallData"
    THROUGHPUT = "Throughput"
    TIME_SPAN = "TimeSpan"
    ENERGY = "Energy"
    NOISE = "Noise"
    CONDUCTIVITY = "Conductivity"
    HUMIDITY = "Humidity"
    TIMING = "Timing"


@dataclass(eq=False)
class Sensor:
    identifier: str
    sensor_type: SensorType
    name: str
    value: float | None = None
    _hardware: weakref.ref[HardwareNode] | None = field(default=None, repr=False)

    @property
    def hardware(self) -> HardwareNode | None:
        return self._hardware() if self._hardware is not None else None


@dataclass(eq=False)
class HardwareNode:
    identifier: str
    hardware_type: HardwareType
    name: str
    vendor: str | None = None
    sub_hardware: list[HardwareNode] = field(default_factory=list)
    sensors: list[Sensor] = field(default_factory=list)
    _parent: weakref.ref[HardwareNode] | None = field(default=None, repr=False)
    _refresh: Callable[[HardwareNode], None] | None = field(default=None, repr=False)

    @property
    def parent(self) -> HardwareNode | None:
        return self._parent() if self._parent is not None else None

    def add_sensor(self, sensor: Sensor) -> Sensor:
        sensor._hardware = weakref.ref(self)
        self.sensors.append(sensor)
        return sensor

    def add_sub_hardware(self, child: HardwareNode) -> HardwareNode:
        child._parent = weakref.ref(self)
        self.sub_hardware.append(child)
        return child

    def update(self) -> None:
        """Refresh sensor values in place. May raise HardwareRefreshError."""
        if self._refresh is not None:
            self._refresh(self)

    def walk(self) -> Iterator[HardwareNode]:
        yield self
        for child in self.sub_hardware:
            yield from child.walk()


@dataclass(eq=False)
class Computer:
    """Root container of the device forest. Not itself a device."""

    hardware: list[HardwareNode] = field(default_factory=list)
    _refresh: Callable[[Computer], None] | None = field(default=None, repr=False)

    def update(self) -> None:
        if self._refresh is not None:
            self._refresh(self)

    def walk(self) -> Iterator[HardwareNode]:
        for node in self.hardware:
            yield from node.walk()
