from __future__ import annotations

import logging
import time
from typing import Iterable, Optional, Set

import usb.core
import usb.util

from ..errors import IntegrityError, TransportError
from .config import BridgeConfig
from .search import RomSearch

logger = logging.getLogger(__name__)

# DS2490 vendor request for 1-Wire communication commands
COMM_CMD = 0x01

# COMM_CMD command words and flag bits
COMM_BIT_IO = 0x0020
COMM_1_WIRE_RESET = 0x0042
COMM_BYTE_IO = 0x0052
COMM_IM = 0x0001  # execute immediately
COMM_D = 0x0008  # bit value for COMM_BIT_IO

EP_STATUS = 0x81
EP_DATA_IN = 0x83

STATUS_PACKET_SIZE = 0x20
STATUS_FLAGS_INDEX = 8
STATUS_FLAG_IDLE = 0x20
STATUS_RESULT_OFFSET = 16

RESULT_DEVICE_DETECT = 0xA5
RESULT_NO_PRESENCE = 0x01
RESULT_SHORT = 0x02

SKIP_ROM = 0xCC

BM_REQUEST_VENDOR_OUT = 0x40


class UsbBridge:
    """
    DS2490-based USB adapter acting as master of a single 1-Wire bus.

    The instance owns the USB session. Every bus operation blocks until the
    adapter reports that command execution is idle.
    """

    def __init__(self, config: Optional[BridgeConfig] = None):
        self.config = config or BridgeConfig()
        self._device = None
        self._claimed = False
        self.last_result_codes: bytes = b""

    def __enter__(self) -> "UsbBridge":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._device is not None

    def open(self) -> None:
        if self.is_open:
            self.close()
        device = usb.core.find(idVendor=self.config.vendor_id, idProduct=self.config.product_id)
        if device is None:
            raise TransportError("No DS2490 found")
        self._device = device
        try:
            self._acquire()
        except TransportError:
            self.close()
            raise
        logger.info(
            "Opened DS2490 %04X:%04X (interface=%d alt=%d)",
            self.config.vendor_id,
            self.config.product_id,
            self.config.interface,
            self.config.alt_setting,
        )

    def _acquire(self) -> None:
        try:
            self._device.set_configuration(self.config.configuration)
        except usb.core.USBError as exc:
            raise TransportError(f"Failed to set configuration: {exc}") from exc
        try:
            usb.util.claim_interface(self._device, self.config.interface)
        except usb.core.USBError as exc:
            raise TransportError(f"Failed to claim interface: {exc}") from exc
        self._claimed = True
        try:
            self._device.set_interface_altsetting(
                interface=self.config.interface, alternate_setting=self.config.alt_setting
            )
        except usb.core.USBError as exc:
            raise TransportError(f"Failed to set altinterface: {exc}") from exc

    def close(self) -> None:
        if self._device is None:
            return
        device, self._device = self._device, None
        try:
            if self._claimed:
                usb.util.release_interface(device, self.config.interface)
        except usb.core.USBError as exc:
            logger.debug("release_interface failed: %s", exc)
        finally:
            self._claimed = False
            usb.util.dispose_resources(device)
        logger.info("Closed DS2490")

    # -- adapter primitives ---------------------------------------------

    def _require_open(self):
        if self._device is None:
            raise TransportError("Device not open")
        return self._device

    def _command(self, value: int, index: int = 0) -> None:
        device = self._require_open()
        try:
            device.ctrl_transfer(
                BM_REQUEST_VENDOR_OUT, COMM_CMD, value, index, None, self.config.timeout_ms
            )
        except usb.core.USBTimeoutError as exc:
            raise TransportError("Timeout writing USB command") from exc
        except usb.core.USBError as exc:
            raise TransportError(f"Error writing USB command: {exc}") from exc
        self._wait_idle()

    def _wait_idle(self) -> None:
        device = self._require_open()
        deadline = time.monotonic() + self.config.idle_timeout_s
        while True:
            try:
                status = bytes(device.read(EP_STATUS, STATUS_PACKET_SIZE, self.config.timeout_ms))
            except usb.core.USBTimeoutError as exc:
                raise TransportError("Timeout reading device status") from exc
            except usb.core.USBError as exc:
                raise TransportError(f"Error reading device status: {exc}") from exc
            if len(status) < STATUS_RESULT_OFFSET:
                raise TransportError(f"Short status packet ({len(status)} bytes)")
            if status[STATUS_FLAGS_INDEX] & STATUS_FLAG_IDLE:
                self.last_result_codes = status[STATUS_RESULT_OFFSET:]
                return
            if time.monotonic() >= deadline:
                raise TransportError("Timeout waiting for DS2490 to become idle")

    def _read_data(self) -> int:
        device = self._require_open()
        try:
            data = device.read(EP_DATA_IN, 1, self.config.timeout_ms)
        except usb.core.USBTimeoutError as exc:
            raise TransportError("Timeout reading data") from exc
        except usb.core.USBError as exc:
            raise TransportError(f"Error reading data: {exc}") from exc
        if len(data) < 1:
            raise TransportError("Error reading data: empty transfer")
        return int(data[0])

    # -- 1-Wire primitives ----------------------------------------------

    def reset(self) -> bool:
        """Reset the bus; return True when a presence pulse was detected."""
        self._command(COMM_1_WIRE_RESET | COMM_IM)
        presence = True
        for code in self.last_result_codes:
            if code == RESULT_DEVICE_DETECT:
                continue
            if code & RESULT_SHORT:
                logger.warning("1-Wire bus short detected during reset")
            if code & RESULT_NO_PRESENCE:
                presence = False
        return presence

    def touch_bit(self, bit: int) -> int:
        value = COMM_BIT_IO | COMM_IM
        if bit:
            value |= COMM_D
        self._command(value)
        return self._read_data() & 0x01

    def touch_byte(self, value: int) -> int:
        self._command(COMM_BYTE_IO | COMM_IM, value & 0xFF)
        return self._read_data()

    def read_byte(self) -> int:
        return self.touch_byte(0xFF)

    def write_byte(self, value: int) -> None:
        echoed = self.touch_byte(value)
        if echoed != value & 0xFF:
            raise IntegrityError(
                f"WriteByte: read data != written data (wrote 0x{value & 0xFF:02X}, read 0x{echoed:02X})"
            )

    # -- frames ---------------------------------------------------------

    def frame_write(self, data: Iterable[int]) -> None:
        """Reset, address the sole device with skip ROM and write *data*."""
        self._require_open()
        self.reset()
        self.write_byte(SKIP_ROM)
        for value in data:
            self.write_byte(value)

    def frame_read(self, length: int) -> bytes:
        self._require_open()
        return bytes(self.read_byte() for _ in range(length))

    def enumerate(self) -> Set[int]:
        """Discover the identifiers of all devices on the bus."""
        return RomSearch(self).run()
