from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from .calibration import Calibration, raw_to_celsius
from .registers import PAGE_SIZE, DeviceType

LOG_ADDRESS = 0x1000
LOG_SIZE = 0x2000


def samples_per_page(high_resolution: bool) -> int:
    return PAGE_SIZE // 2 if high_resolution else PAGE_SIZE


def log_capacity(high_resolution: bool) -> int:
    """Number of samples the circular log memory holds."""
    return LOG_SIZE // 2 if high_resolution else LOG_SIZE


def decode_page(page: bytes, high_resolution: bool) -> Tuple[np.ndarray, np.ndarray]:
    """Split a log page into integer (hi) and fraction (lo) byte arrays."""
    raw = np.frombuffer(bytes(page), dtype=np.uint8)
    if high_resolution:
        return raw[0::2], raw[1::2]
    return raw, np.zeros_like(raw)


def convert(
    hi: np.ndarray,
    lo: np.ndarray,
    device_type: DeviceType,
    calibration: Optional[Calibration] = None,
) -> np.ndarray:
    values = raw_to_celsius(hi, lo, device_type)
    if calibration is not None:
        values = calibration.correct(values)
    return values


class SampleDecoder:
    """Accumulates log pages and converts them to °C."""

    def __init__(self, device_type: DeviceType, high_resolution: bool, calibration: Optional[Calibration] = None):
        self.device_type = device_type
        self.high_resolution = high_resolution
        self.calibration = calibration
        self._hi: list[np.ndarray] = []
        self._lo: list[np.ndarray] = []

    @property
    def per_page(self) -> int:
        return samples_per_page(self.high_resolution)

    def pages_for(self, count: int) -> int:
        return -(-count // self.per_page)

    def feed(self, page: bytes) -> None:
        hi, lo = decode_page(page, self.high_resolution)
        self._hi.append(hi)
        self._lo.append(lo)

    def values(self, count: int) -> np.ndarray:
        if not self._hi:
            return np.empty(0, dtype=float)
        hi = np.concatenate(self._hi)[:count]
        lo = np.concatenate(self._lo)[:count]
        return convert(hi, lo, self.device_type, self.calibration)
