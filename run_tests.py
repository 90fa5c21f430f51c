#!/usr/bin/env python
"""Run the sensors2metrics test suite.

Examples:
    ./run_tests.py                      # everything
    ./run_tests.py --only windows       # LibreHardwareMonitor provider tests
    ./run_tests.py --coverage -- -x -k collector
"""
from __future__ import annotations

import argparse
import subprocess
import sys

MARKERS = {
    "linux": "psutil (Linux hwmon) provider",
    "windows": "LibreHardwareMonitor provider",
    "integration": "end-to-end exporter wiring",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run sensors2metrics tests",
        epilog="Arguments after -- are passed to pytest unchanged.",
    )
    parser.add_argument(
        "--only",
        choices=sorted(MARKERS),
        help="Restrict to one marker: "
        + ", ".join(f"{name} ({what})" for name, what in MARKERS.items()),
    )
    parser.add_argument(
        "--coverage",
        action="store_true",
        help="Report line coverage for the sensors2metrics package",
    )
    parser.add_argument(
        "--setup",
        action="store_true",
        help="pip install the project with its test extra before running",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        default=["tests"],
        help="Test files or directories (default: tests)",
    )
    return parser


def pytest_command(args: argparse.Namespace, passthrough: list[str]) -> list[str]:
    cmd = [sys.executable, "-m", "pytest"]
    if args.only:
        cmd += ["-m", args.only]
    if args.coverage:
        cmd += ["--cov=sensors2metrics", "--cov-report=term-missing"]
    return cmd + passthrough + args.paths


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    passthrough: list[str] = []
    if "--" in argv:
        split = argv.index("--")
        argv, passthrough = argv[:split], argv[split + 1 :]
    args = build_parser().parse_args(argv)

    if args.setup:
        install = [sys.executable, "-m", "pip", "install", "-e", ".[test]"]
        if subprocess.run(install, check=False).returncode != 0:
            print("pip install failed; not running tests", file=sys.stderr)
            return 1

    cmd = pytest_command(args, passthrough)
    print("$", " ".join(cmd))
    return subprocess.run(cmd, check=False).returncode


if __name__ == "__main__":
    sys.exit(main())
