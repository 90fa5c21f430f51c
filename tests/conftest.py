"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import pytest

from sensors2metrics.hardware import (
    Computer,
    HardwareNode,
    HardwareType,
    Sensor,
    SensorType,
)
from sensors2metrics.metrics import MetricSink


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "windows: mark test as LibreHardwareMonitor-specific"
    )
    config.addinivalue_line(
        "markers", "linux: mark test as Linux hwmon (psutil) specific"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


def add_sensors(node: HardwareNode, *specs: tuple[SensorType, str, float | None]) -> None:
    for index, (sensor_type, name, value) in enumerate(specs):
        node.add_sensor(
            Sensor(
                f"{node.identifier}/{sensor_type.value.lower()}/{index}",
                sensor_type,
                name,
                value,
            )
        )


@pytest.fixture
def cpu():
    node = HardwareNode("/intelcpu/0", HardwareType.CPU, "Intel Core i7-12700K", vendor="Intel")
    add_sensors(
        node,
        (SensorType.TEMPERATURE, "CPU Package", 55.0),
        (SensorType.TEMPERATURE, "Core #1", 50.0),
        (SensorType.TEMPERATURE, "Core #1 Distance to TjMax", 50.0),
        (SensorType.LOAD, "CPU Core #1 Thread #1", 37.5),
        (SensorType.LOAD, "CPU Total", 20.0),
        (SensorType.CLOCK, "Core #1", 4700.0),
        (SensorType.VOLTAGE, "CPU Core", 1.25),
        (SensorType.POWER, "CPU Package", 65.0),
    )
    return node


@pytest.fixture
def motherboard():
    board = HardwareNode("/motherboard", HardwareType.MOTHERBOARD, "Motherboard")
    superio = board.add_sub_hardware(
        HardwareNode("/lpc/nct6798d/0", HardwareType.SUPER_IO, "SuperIO")
    )
    add_sensors(
        superio,
        (SensorType.FAN, "Fan1", 1200.0),
        (SensorType.CONTROL, "Fan Control #1", 45.0),
        (SensorType.VOLTAGE, "Vcore", 1.2),
        (SensorType.VOLTAGE, "-12V", -12.1),
        (SensorType.TEMPERATURE, "CPU", 40.0),
    )
    return board


@pytest.fixture
def battery():
    node = HardwareNode("/battery/0", HardwareType.BATTERY, "Battery")
    add_sensors(node, (SensorType.TEMPERATURE, "Temperature", 30.0))
    return node


@pytest.fixture
def computer(cpu, motherboard, battery):
    return Computer(hardware=[motherboard, cpu, battery])


@pytest.fixture
def sink():
    return MetricSink()
