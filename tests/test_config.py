"""Tests for configuration loading."""
from __future__ import annotations

import logging

import pytest

from sensors2metrics.config import (
    AppConfig,
    HardwareConfig,
    apply_overrides,
    load_config,
)
from sensors2metrics.hardware import HardwareType
from sensors2metrics.logging_utils import TRACE_LEVEL, resolve_log_level


def write_cfg(tmp_path, text):
    path = tmp_path / "exporter.cfg"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    """Test the CFG loader."""

    def test_defaults_without_file(self):
        config = load_config(None)
        assert config == AppConfig()
        assert config.exporter.host == "127.0.0.1"
        assert config.exporter.port == 6272
        assert config.exporter.labels_file == "labels.json"
        assert config.hardware.enabled == (HardwareType.CPU, HardwareType.MOTHERBOARD)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.cfg")

    def test_full_file(self, tmp_path):
        path = write_cfg(
            tmp_path,
            """
[exporter]
host = 0.0.0.0
port = 9182
labels_file =
label_mode = Compact

[hardware]
source = psutil
librehardwaremonitor_url = http://10.0.0.5:8085/data.json
timeout_s = 1.5
enabled = cpu, motherboard, gpunvidia, storage
""",
        )

        config = load_config(path)

        assert config.exporter.host == "0.0.0.0"
        assert config.exporter.port == 9182
        assert config.exporter.labels_file is None
        assert config.exporter.label_mode == "compact"
        assert config.hardware.source == "psutil"
        assert config.hardware.librehardwaremonitor_url == "http://10.0.0.5:8085/data.json"
        assert config.hardware.timeout_s == 1.5
        assert config.hardware.enabled == (
            HardwareType.CPU,
            HardwareType.MOTHERBOARD,
            HardwareType.GPU_NVIDIA,
            HardwareType.STORAGE,
        )

    def test_missing_sections_use_fallbacks(self, tmp_path):
        path = write_cfg(tmp_path, "[exporter]\nport = 1234\n")
        config = load_config(path)
        assert config.exporter.port == 1234
        assert config.hardware == HardwareConfig()

    @pytest.mark.parametrize(
        "text",
        [
            "[hardware]\nsource = wmi\n",
            "[hardware]\nenabled = cpu, toaster\n",
            "[exporter]\nlabel_mode = loud\n",
        ],
    )
    def test_invalid_values(self, tmp_path, text):
        with pytest.raises(ValueError):
            load_config(write_cfg(tmp_path, text))

    def test_overrides_ignore_none(self):
        config = apply_overrides(
            AppConfig(), host=None, port=9000, source="psutil", librehardwaremonitor_url=None
        )
        assert config.exporter.host == "127.0.0.1"
        assert config.exporter.port == 9000
        assert config.hardware.source == "psutil"


class TestLogLevel:
    """Test verbosity resolution."""

    @pytest.mark.parametrize(
        "verbosity, fallback, expected",
        [
            (0, "INFO", logging.INFO),
            (0, "warning", logging.WARNING),
            (0, "bogus", logging.INFO),
            (0, "trace", TRACE_LEVEL),
            (1, "ERROR", logging.DEBUG),
            (2, "ERROR", TRACE_LEVEL),
        ],
    )
    def test_resolve(self, verbosity, fallback, expected):
        assert resolve_log_level(verbosity, fallback) == expected
