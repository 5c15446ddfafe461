from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .registers import DeviceType

logger = logging.getLogger(__name__)

CALIBRATION_ADDRESS = 0x0240


def raw_to_celsius(hi_byte, lo_byte, device_type: DeviceType):
    """Half-degree integer byte plus 1/512 fraction byte, shifted by the type offset."""
    return np.asarray(hi_byte, dtype=float) / 2.0 - device_type.temperature_offset + np.asarray(
        lo_byte, dtype=float
    ) / 512.0


@dataclass(frozen=True)
class Calibration:
    """
    Quadratic correction derived from the factory calibration page.

    The device stores two reference/measured temperature pairs; together with
    the fixed reference temperature Tr1 of the subfamily they define an error
    polynomial `err(T) = c0*T^2 + c1*T + c2` that is subtracted from every
    decoded sample.
    """

    coefficients: Tuple[float, float, float]
    device_type: DeviceType
    references: Tuple[float, float, float]
    errors: Tuple[float, float, float]

    @classmethod
    def from_page(cls, page: bytes, device_type: DeviceType) -> "Calibration":
        if not device_type.calibration_supported:
            raise ValueError(f"{device_type.name} has no calibration data")
        if len(page) < 8:
            raise ValueError(f"Calibration page must hold at least 8 bytes, got {len(page)}")
        tr1 = float(device_type.reference_temperature)
        tr2, tc2, tr3, tc3 = (
            float(raw_to_celsius(page[idx], page[idx + 1], device_type)) for idx in (0, 2, 4, 6)
        )
        err2 = tc2 - tr2
        err3 = tc3 - tr3
        err1 = err2

        span2 = tr2 * tr2 - tr1 * tr1
        span3 = tr3 * tr3 - tr1 * tr1
        denominator = span2 * (tr3 - tr1) + span3 * (tr1 - tr2)
        if denominator == 0 or span2 == 0:
            raise ValueError("Degenerate calibration reference temperatures")
        c1 = span2 * (err3 - err1) / denominator
        c0 = c1 * (tr1 - tr2) / span2
        c2 = err1 - c0 * tr1 * tr1 - c1 * tr1
        logger.debug(
            "Calibration %s: Tr=(%.3f, %.3f, %.3f) err=(%.4f, %.4f) c=(%g, %g, %g)",
            device_type.name,
            tr1,
            tr2,
            tr3,
            err2,
            err3,
            c0,
            c1,
            c2,
        )
        return cls(
            coefficients=(c0, c1, c2),
            device_type=device_type,
            references=(tr1, tr2, tr3),
            errors=(err1, err2, err3),
        )

    def error(self, values):
        return np.polyval(np.array(self.coefficients, dtype=float), np.asarray(values, dtype=float))

    def correct(self, values):
        values = np.asarray(values, dtype=float)
        return values - self.error(values)
