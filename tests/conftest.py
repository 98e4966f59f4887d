"""Shared fixtures: scripted capture helpers and an isolated configuration."""

import os
import time
from dataclasses import dataclass
from pathlib import Path

import pytest

from netextcap.core import config as config_module
from netextcap.core.config import Config, ExtcapConfig
from netextcap.extcap import InterfaceRegistry

HELPER_TEMPLATE = """#!/bin/sh
echo "$@" >> "{log}"
case "$1" in
  --extcap-interfaces)
{interfaces}
    ;;
  --extcap-dlts)
{dlts}
    ;;
  --extcap-config)
{config}
    ;;
  --capture)
    exit 0
    ;;
esac
exit {status}
"""


def _printf(lines: list[str]) -> str:
    if not lines:
        return "    :"
    return "\n".join(f"    printf '%s\\n' '{line}'" for line in lines)


@dataclass
class Helper:
    """A scripted helper program and its invocation log."""

    path: Path
    log: Path

    def calls(self) -> list[str]:
        if not self.log.exists():
            return []
        return [line for line in self.log.read_text().splitlines() if line]

    def wait_for_calls(self, count: int, timeout: float = 5.0) -> list[str]:
        deadline = time.monotonic() + timeout
        while len(self.calls()) < count and time.monotonic() < deadline:
            time.sleep(0.05)
        return self.calls()


@pytest.fixture
def helper_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "extcap"
    directory.mkdir()
    return directory


@pytest.fixture
def make_helper(tmp_path: Path, helper_dir: Path):
    """Factory writing an executable helper that answers protocol verbs."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()

    def _make(
        name: str,
        interfaces: list[tuple[str, str]] | None = None,
        dlts: list[tuple[int, str, str]] | None = None,
        config: list[str] | None = None,
        status: int = 0,
        raw_interfaces: list[str] | None = None,
    ) -> Helper:
        log = log_dir / f"{name}.log"
        interface_lines = [f"interface {{value={call}}}{{display={display}}}" for call, display in interfaces or []]
        dlt_lines = [f"dlt {{number={n}}}{{name={short}}}{{display={display}}}" for n, short, display in dlts or []]

        script = HELPER_TEMPLATE.format(
            log=log,
            interfaces=_printf(interface_lines + list(raw_interfaces or [])),
            dlts=_printf(dlt_lines),
            config=_printf(list(config or [])),
            status=status,
        )
        path = helper_dir / name
        path.write_text(script)
        os.chmod(path, 0o755)
        return Helper(path=path, log=log)

    return _make


@pytest.fixture
def registry() -> InterfaceRegistry:
    return InterfaceRegistry()


@pytest.fixture
def pipe_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "pipes"
    directory.mkdir()
    return directory


@pytest.fixture
def extcap_config(helper_dir: Path, pipe_dir: Path, monkeypatch) -> ExtcapConfig:
    """Install an isolated global configuration for the test."""
    config = Config(extcap=ExtcapConfig(helper_dir=helper_dir, pipe_dir=pipe_dir))
    monkeypatch.setattr(config_module, "_config", config)
    return config.extcap
