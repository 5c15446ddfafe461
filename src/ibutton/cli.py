"""Command line interface for the ibutton package."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, NoReturn, Optional

import typer

from .ds1922 import DS1922, StatusRegister
from .errors import IButtonError
from .onewire import UsbBridge, format_rom, load_config, rom_crc_ok

app = typer.Typer(add_completion=False, help="DS1922 iButton logger utilities.")
mission_app = typer.Typer(help="Mission control commands.")
app.add_typer(mission_app, name="mission")

CONFIG_FILE_OPTION = typer.Option(None, "--config-file", "-c", help="JSON configuration file.")
OVERRIDE_OPTION = typer.Option(
    None,
    "--set",
    help="Override config keys, e.g. --set bridge.timeout_ms=2000 --set session.commit_delay_s=2",
)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@contextmanager
def _session(config_file: Optional[Path], override: Optional[list[str]]) -> Iterator[DS1922]:
    try:
        cfg = load_config(config_file, override)
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Failed to load configuration: {exc}") from exc
    with UsbBridge(cfg.bridge) as bridge:
        yield DS1922(bridge, cfg.session)


def _fail(exc: Exception) -> NoReturn:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1) from exc


def _on_off(flag: bool) -> str:
    return "yes" if flag else "no"


def _format_time(moment: Optional[datetime]) -> str:
    return moment.strftime("%Y-%m-%d %H:%M:%S") if moment else "not set"


def _print_config(register: StatusRegister) -> None:
    unit = "s" if register.high_speed_sampling else "min"
    typer.echo(f"Device type: {register.device_type.name}")
    typer.echo(f"Clock enabled: {_on_off(register.rtc_enabled)}")
    typer.echo(f"Clock: {_format_time(register.rtc)}")
    typer.echo(f"Mission in progress: {_on_off(register.mission_in_progress)}")
    typer.echo(f"Sample rate: {register.sample_rate} {unit}")
    typer.echo(f"High resolution: {_on_off(register.high_resolution)}")
    typer.echo(f"Sample count: {register.sample_count}")
    typer.echo(f"Device sample count: {register.device_sample_count}")
    typer.echo(f"Start upon alarm: {_on_off(register.start_upon_alarm)}")
    typer.echo(
        f"Alarm low: {register.alarm_low_threshold:.1f} °C "
        f"(enabled: {_on_off(register.alarm_low_enabled)}, triggered: {_on_off(register.alarm_low)})"
    )
    typer.echo(
        f"Alarm high: {register.alarm_high_threshold:.1f} °C "
        f"(enabled: {_on_off(register.alarm_high_enabled)}, triggered: {_on_off(register.alarm_high)})"
    )
    typer.echo(f"Waiting for alarm: {_on_off(register.waiting_for_alarm)}")
    typer.echo(f"Logging enabled: {_on_off(register.logging_enabled)}")
    typer.echo(f"Rollover: {_on_off(register.rollover)}")
    typer.echo(f"Mission start delay: {register.mission_start_delay} min")
    typer.echo(f"Mission timestamp: {_format_time(register.mission_timestamp)}")
    typer.echo(f"Password enabled: {_on_off(register.password_enabled)}")


def _print_data(device: DS1922, max_samples: Optional[int]) -> None:
    if device.register.sample_count == 0:
        typer.echo("No samples logged")
        return
    timeline = device.timeline()
    # a rolled-over log can only be put in order once all of it is read
    values = device.read_samples(None if timeline.rolled_over else max_samples)
    frame = timeline.arrange(values)
    if max_samples is not None:
        frame = frame.head(max_samples)
    typer.echo("-Data--------------------------------------------")
    for timestamp, temperature in frame.itertuples():
        typer.echo(f"{timestamp:%Y-%m-%d %H:%M:%S}: {temperature:.3f}")


@app.command()
def show(
    scan: bool = typer.Option(False, "--scan", help="List the device identifiers found on the bus."),
    config: bool = typer.Option(False, "--config", help="Show the logger configuration."),
    data: bool = typer.Option(False, "--data", help="Show the logged samples."),
    max_samples: Optional[int] = typer.Option(None, "--max-samples", min=0, help="Limit the samples shown."),
    config_file: Optional[Path] = CONFIG_FILE_OPTION,
    override: Optional[list[str]] = OVERRIDE_OPTION,
) -> None:
    """Read the logger. Without selection flags, shows configuration and data."""

    if not (scan or config or data):
        config = data = True
    try:
        with _session(config_file, override) as device:
            if scan:
                for rom in sorted(device.bridge.enumerate()):
                    suffix = "" if rom_crc_ok(rom) else " (CRC mismatch)"
                    typer.echo(f"Found device {format_rom(rom)}{suffix}")
            if config or data:
                device.read_configuration()
            if config:
                _print_config(device.register)
            if data:
                _print_data(device, max_samples)
    except IButtonError as exc:
        _fail(exc)


@app.command()
def configure(
    sync_clock: bool = typer.Option(False, "--sync-clock", help="Set the device clock to the host time."),
    clock: Optional[bool] = typer.Option(None, "--clock/--no-clock", help="Run the clock oscillator."),
    high_speed: Optional[bool] = typer.Option(
        None, "--high-speed/--no-high-speed", help="Sample rate in seconds instead of minutes."
    ),
    rate: Optional[int] = typer.Option(None, "--rate", help="Sample rate (1..16383)."),
    high_res: Optional[bool] = typer.Option(None, "--high-res/--no-high-res", help="16-bit samples."),
    rollover: Optional[bool] = typer.Option(None, "--rollover/--no-rollover", help="Overwrite old samples."),
    logging_enabled: Optional[bool] = typer.Option(None, "--logging/--no-logging", help="Enable logging."),
    start_on_alarm: Optional[bool] = typer.Option(
        None, "--start-on-alarm/--no-start-on-alarm", help="Start logging on a temperature alarm."
    ),
    alarm_low: Optional[float] = typer.Option(None, "--alarm-low", help="Low alarm threshold (°C)."),
    alarm_high: Optional[float] = typer.Option(None, "--alarm-high", help="High alarm threshold (°C)."),
    alarm_low_enabled: Optional[bool] = typer.Option(None, "--alarm-low-enabled/--alarm-low-disabled"),
    alarm_high_enabled: Optional[bool] = typer.Option(None, "--alarm-high-enabled/--alarm-high-disabled"),
    start_delay: Optional[int] = typer.Option(None, "--start-delay", help="Mission start delay (minutes)."),
    config_file: Optional[Path] = CONFIG_FILE_OPTION,
    override: Optional[list[str]] = OVERRIDE_OPTION,
) -> None:
    """Change logger settings and write them to the device."""

    try:
        with _session(config_file, override) as device:
            device.read_configuration()
            register = device.register
            try:
                if sync_clock:
                    register.rtc = datetime.now().replace(microsecond=0)
                if clock is not None:
                    register.rtc_enabled = clock
                if high_speed is not None:
                    register.high_speed_sampling = high_speed
                if rate is not None:
                    register.sample_rate = rate
                if high_res is not None:
                    register.high_resolution = high_res
                if rollover is not None:
                    register.rollover = rollover
                if logging_enabled is not None:
                    register.logging_enabled = logging_enabled
                if start_on_alarm is not None:
                    register.start_upon_alarm = start_on_alarm
                if alarm_low is not None:
                    register.alarm_low_threshold = alarm_low
                if alarm_high is not None:
                    register.alarm_high_threshold = alarm_high
                if alarm_low_enabled is not None:
                    register.alarm_low_enabled = alarm_low_enabled
                if alarm_high_enabled is not None:
                    register.alarm_high_enabled = alarm_high_enabled
                if start_delay is not None:
                    register.mission_start_delay = start_delay
            except ValueError as exc:
                raise typer.BadParameter(str(exc)) from exc
            device.write_configuration()
    except IButtonError as exc:
        _fail(exc)
    typer.echo("Configuration written")


def _mission(action: str, config_file: Optional[Path], override: Optional[list[str]]) -> None:
    try:
        with _session(config_file, override) as device:
            getattr(device, action)()
    except IButtonError as exc:
        _fail(exc)


@mission_app.command("start")
def mission_start(
    config_file: Optional[Path] = CONFIG_FILE_OPTION,
    override: Optional[list[str]] = OVERRIDE_OPTION,
) -> None:
    """Start a logging mission with the current configuration."""
    _mission("start_mission", config_file, override)
    typer.echo("Mission started")


@mission_app.command("stop")
def mission_stop(
    config_file: Optional[Path] = CONFIG_FILE_OPTION,
    override: Optional[list[str]] = OVERRIDE_OPTION,
) -> None:
    _mission("stop_mission", config_file, override)
    typer.echo("Mission stopped")


@mission_app.command("clear")
def mission_clear(
    config_file: Optional[Path] = CONFIG_FILE_OPTION,
    override: Optional[list[str]] = OVERRIDE_OPTION,
) -> None:
    """Clear the log memory (required before a new mission)."""
    _mission("clear_memory", config_file, override)
    typer.echo("Memory cleared")


def run() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    run()
