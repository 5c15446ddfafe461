from __future__ import annotations

from datetime import datetime

import pytest
from typer.testing import CliRunner

from ibutton.cli import app
from simulator import FakeDs2490, SimulatedBus, SimulatedLogger, build_register

runner = CliRunner()


@pytest.fixture
def cli_logger(install_usb) -> SimulatedLogger:
    device = SimulatedLogger()
    device.load_register(build_register(sample_count=3, mission_start=datetime(2014, 6, 1, 8, 0, 0)))
    device.memory[0x1000:0x1003] = bytes([42, 44, 46])
    install_usb(FakeDs2490(SimulatedBus(logger=device)))
    return device


def test_show_prints_configuration_and_data(cli_logger: SimulatedLogger) -> None:
    result = runner.invoke(app, ["show"])
    assert result.exit_code == 0, result.output
    assert "Device type: DS1922T" in result.output
    assert "Sample count: 3" in result.output
    assert "2014-06-01 08:00:00: " in result.output
    assert "2014-06-01 08:20:00: " in result.output


def test_show_scan(cli_logger: SimulatedLogger) -> None:
    result = runner.invoke(app, ["show", "--scan"])
    assert result.exit_code == 0, result.output
    assert "Found device 7B00000123456741" in result.output
    assert "Device type" not in result.output


def test_configure_writes_settings(cli_logger: SimulatedLogger) -> None:
    result = runner.invoke(
        app, ["configure", "--rate", "5", "--high-res", "--set", "session.commit_delay_s=0"]
    )
    assert result.exit_code == 0, result.output
    assert cli_logger.memory[0x0206] == 5
    assert cli_logger.memory[0x0213] & 0x04


def test_configure_rejects_bad_rate(cli_logger: SimulatedLogger) -> None:
    result = runner.invoke(app, ["configure", "--rate", "0"])
    assert result.exit_code != 0
    assert 0x0F not in cli_logger.commands


def test_mission_start(cli_logger: SimulatedLogger) -> None:
    result = runner.invoke(app, ["mission", "start"])
    assert result.exit_code == 0, result.output
    assert "Mission started" in result.output
    assert cli_logger.commands == [0xCC]


def test_missing_adapter_exits_with_error(install_usb) -> None:
    install_usb(None)
    result = runner.invoke(app, ["show"])
    assert result.exit_code == 1
    assert "No DS2490 found" in result.output
