from __future__ import annotations

import functools
import logging
import time
from typing import Callable, Optional, TypeVar

import numpy as np

from ..errors import IButtonError, IntegrityError, StateError, TransportError
from ..onewire.bridge import UsbBridge
from ..onewire.config import SessionConfig
from ..onewire.crc import check_crc16
from ..onewire.search import format_rom
from .calibration import CALIBRATION_ADDRESS, Calibration
from .registers import CLOCK_BYTES, PAGE_SIZE, STATUS_REGISTER_ADDRESS, StatusRegister
from .samples import LOG_ADDRESS, SampleDecoder, log_capacity
from .timeline import MissionTimeline

logger = logging.getLogger(__name__)

READ_MEMORY = 0x69
WRITE_SCRATCHPAD = 0x0F
READ_SCRATCHPAD = 0xAA
COPY_SCRATCHPAD = 0x99
START_MISSION = 0xCC
STOP_MISSION = 0x33
CLEAR_MEMORY = 0x96

PASSWORD = bytes(8)  # password protection is not supported; all-zero dummy
DUMMY_BYTE = 0xFF
SCRATCHPAD_HEADER = 3  # TA1, TA2, E/S
COPY_DONE = 0x80  # AA bit in E/S

F = TypeVar("F", bound=Callable)


def _records_error(func: F) -> F:
    """Keep the message of a failed operation in `last_error`."""

    @functools.wraps(func)
    def wrapper(self: "DS1922", *args, **kwargs):
        try:
            result = func(self, *args, **kwargs)
        except IButtonError as exc:
            self.last_error = str(exc)
            raise
        self.last_error = None
        return result

    return wrapper  # type: ignore[return-value]


class DS1922:
    """
    Session with the DS1922 temperature logger on the bridge's bus.

    Holds the status register image and the calibration cache for the lifetime
    of the session. All commands address the bus with skip ROM, so exactly one
    device may be attached.
    """

    def __init__(self, bridge: UsbBridge, config: Optional[SessionConfig] = None):
        self.bridge = bridge
        self.config = config or SessionConfig()
        self.register = StatusRegister()
        self.calibration: Optional[Calibration] = None
        self.last_error: Optional[str] = None
        self._configuration_valid = False

    @property
    def configuration_valid(self) -> bool:
        return self._configuration_valid

    @property
    def calibration_valid(self) -> bool:
        return self.calibration is not None

    def _ensure_open(self) -> None:
        if not self.bridge.is_open:
            self.bridge.open()

    @_records_error
    def ensure_single_device(self) -> int:
        """Enumerate the bus and return the identifier of its only device."""
        self._ensure_open()
        roms = self.bridge.enumerate()
        if not roms:
            raise TransportError("no 1-Wire device found")
        if len(roms) > 1:
            listing = ", ".join(format_rom(rom) for rom in sorted(roms))
            raise StateError(f"{len(roms)} devices on the bus ({listing}); only a single device is supported")
        return next(iter(roms))

    # -- memory access ----------------------------------------------------

    @_records_error
    def read_memory_page(self, address: int) -> bytes:
        command = bytes([READ_MEMORY, address & 0xFF, (address >> 8) & 0xFF])
        self.bridge.frame_write(command + PASSWORD)
        page = self.bridge.frame_read(PAGE_SIZE)
        crc = self.bridge.frame_read(2)
        if not check_crc16(command + page + crc):
            raise IntegrityError(f"Wrong CRC reading data at 0x{address:04X}")
        logger.debug("Read page 0x%04X", address)
        return page

    @_records_error
    def read_configuration(self) -> None:
        try:
            self._ensure_open()
            if self.config.require_single_device:
                self.ensure_single_device()
            first = self.read_memory_page(STATUS_REGISTER_ADDRESS)
            second = self.read_memory_page(STATUS_REGISTER_ADDRESS + PAGE_SIZE)
        except IButtonError:
            self._configuration_valid = False
            raise
        self.register.load(first + second)
        self.register.rtc_changed = False
        self._configuration_valid = True
        logger.info(
            "Read configuration of %s (samples=%d)",
            self.register.device_type.name,
            self.register.sample_count,
        )

    @_records_error
    def write_configuration(self) -> None:
        if not self._configuration_valid:
            raise StateError("no valid data to write")
        image = bytes(self.register.image)
        # leave the running clock alone unless it was set explicitly
        skip = 0 if self.register.rtc_changed else CLOCK_BYTES
        self._commit_page(STATUS_REGISTER_ADDRESS + skip, image[skip:PAGE_SIZE])
        self._commit_page(STATUS_REGISTER_ADDRESS + PAGE_SIZE, image[PAGE_SIZE:])
        self.register.rtc_changed = False
        logger.info("Configuration written (clock %s)", "set" if skip == 0 else "unchanged")

    def _commit_page(self, address: int, payload: bytes) -> None:
        target = bytes([address & 0xFF, (address >> 8) & 0xFF])
        self.bridge.frame_write(bytes([WRITE_SCRATCHPAD]) + target + payload)

        scratchpad = self._read_scratchpad()
        if scratchpad[:2] != target:
            raise IntegrityError("read scratchpad target address wrong")
        echoed = scratchpad[SCRATCHPAD_HEADER : SCRATCHPAD_HEADER + len(payload)]
        if echoed != payload:
            raise IntegrityError("read scratchpad data wrong")

        authorization = scratchpad[:SCRATCHPAD_HEADER]
        self.bridge.frame_write(bytes([COPY_SCRATCHPAD]) + authorization + PASSWORD)
        # TODO: poll the AA bit with a bounded timeout instead of a fixed sleep
        time.sleep(self.config.commit_delay_s)
        scratchpad = self._read_scratchpad()
        if not scratchpad[2] & COPY_DONE:
            raise IntegrityError("copy scratchpad: AA bit not set")
        logger.debug("Committed %d bytes at 0x%04X", len(payload), address)

    def _read_scratchpad(self) -> bytes:
        self.bridge.frame_write([READ_SCRATCHPAD])
        return self.bridge.frame_read(SCRATCHPAD_HEADER + PAGE_SIZE)

    # -- mission control --------------------------------------------------

    def _mission_command(self, command: int, name: str) -> None:
        self._ensure_open()
        if self.config.require_single_device:
            self.ensure_single_device()
        self.bridge.frame_write(bytes([command]) + PASSWORD + bytes([DUMMY_BYTE]))
        logger.info("%s sent", name)

    @_records_error
    def start_mission(self) -> None:
        self._mission_command(START_MISSION, "Start mission")

    @_records_error
    def stop_mission(self) -> None:
        self._mission_command(STOP_MISSION, "Stop mission")

    @_records_error
    def clear_memory(self) -> None:
        self._mission_command(CLEAR_MEMORY, "Clear memory")

    # -- samples ----------------------------------------------------------

    @_records_error
    def read_calibration(self) -> Optional[Calibration]:
        device_type = self.register.device_type
        if not device_type.calibration_supported:
            logger.debug("%s has no calibration data", device_type.name)
            return None
        self._ensure_open()
        page = self.read_memory_page(CALIBRATION_ADDRESS)
        try:
            self.calibration = Calibration.from_page(page, device_type)
        except ValueError as exc:
            raise IntegrityError(f"Unusable calibration data: {exc}") from exc
        return self.calibration

    @_records_error
    def read_samples(self, max_count: Optional[int] = None) -> np.ndarray:
        """
        Read logged samples in °C, in physical storage order.

        At most `max_count` samples are returned, never more than the mission
        logged or the log memory holds. Use `timeline()` to put them in
        chronological order when the log has rolled over.
        """
        if not self._configuration_valid:
            raise StateError("Read register first")
        if self.calibration is None:
            try:
                self.read_calibration()
            except IButtonError as exc:
                logger.warning("Calibration unavailable, samples are uncorrected: %s", exc)
        register = self.register
        count = min(register.sample_count, log_capacity(register.high_resolution))
        if max_count is not None:
            count = min(count, max(max_count, 0))
        decoder = SampleDecoder(register.device_type, register.high_resolution, self.calibration)
        for index in range(decoder.pages_for(count)):
            decoder.feed(self.read_memory_page(LOG_ADDRESS + index * PAGE_SIZE))
        logger.debug("Decoded %d samples", count)
        return decoder.values(count)

    def timeline(self) -> MissionTimeline:
        return MissionTimeline.from_register(self.register)
