from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
import configparser

from sensors2metrics.hardware import HardwareType

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6272
DEFAULT_LHM_URL = "http://localhost:8085/data.json"
DEFAULT_ENABLED = [HardwareType.CPU, HardwareType.MOTHERBOARD]


@dataclass(frozen=True)
class ExporterConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    labels_file: str | None = "labels.json"
    label_mode: str = "verbose"


@dataclass(frozen=True)
class HardwareConfig:
    source: str = "lhm"
    librehardwaremonitor_url: str = DEFAULT_LHM_URL
    timeout_s: float = 2.0
    enabled: tuple[HardwareType, ...] = tuple(DEFAULT_ENABLED)


@dataclass(frozen=True)
class AppConfig:
    exporter: ExporterConfig = ExporterConfig()
    hardware: HardwareConfig = HardwareConfig()


def _get_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def _get_list(value: str | None) -> list[str]:
    if value is None:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _get_hardware_types(value: str | None) -> tuple[HardwareType, ...]:
    items = _get_list(value)
    if not items:
        return tuple(DEFAULT_ENABLED)
    types = []
    for item in items:
        hardware_type = HardwareType.parse(item)
        if hardware_type is None:
            raise ValueError(f"Unknown hardware type in [hardware] enabled: {item}")
        types.append(hardware_type)
    return tuple(types)


def load_config(path: str | Path | None = None) -> AppConfig:
    if path is None:
        return AppConfig()

    parser = configparser.ConfigParser()
    read_files = parser.read(path, encoding="utf-8")
    if not read_files:
        raise FileNotFoundError(f"Config file not found: {path}")

    label_mode = parser.get("exporter", "label_mode", fallback="verbose").strip().lower()
    if label_mode not in {"verbose", "compact"}:
        raise ValueError(f"Unknown label_mode: {label_mode}")

    exporter = ExporterConfig(
        host=parser.get("exporter", "host", fallback=DEFAULT_HOST),
        port=parser.getint("exporter", "port", fallback=DEFAULT_PORT),
        labels_file=_get_optional(
            parser.get("exporter", "labels_file", fallback="labels.json")
        ),
        label_mode=label_mode,
    )

    source = parser.get("hardware", "source", fallback="lhm").strip().lower()
    if source not in {"lhm", "psutil"}:
        raise ValueError(f"Unknown hardware source: {source}")

    hardware = HardwareConfig(
        source=source,
        librehardwaremonitor_url=parser.get(
            "hardware", "librehardwaremonitor_url", fallback=DEFAULT_LHM_URL
        ),
        timeout_s=parser.getfloat("hardware", "timeout_s", fallback=2.0),
        enabled=_get_hardware_types(parser.get("hardware", "enabled", fallback=None)),
    )

    return AppConfig(exporter=exporter, hardware=hardware)


def apply_overrides(config: AppConfig, **overrides: object) -> AppConfig:
    """Return a copy of ``config`` with non-None CLI values applied."""
    exporter_fields = {"host", "port", "labels_file", "label_mode"}
    exporter = {k: v for k, v in overrides.items() if k in exporter_fields and v is not None}
    hardware = {
        k: v for k, v in overrides.items() if k not in exporter_fields and v is not None
    }
    return AppConfig(
        exporter=replace(config.exporter, **exporter),
        hardware=replace(config.hardware, **hardware),
    )
