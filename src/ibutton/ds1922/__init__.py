"""
DS1922 temperature logger protocol: register image, missions and logged data.

Everything here is built on the frame primitives of `ibutton.onewire`.
"""

from .calibration import Calibration
from .device import DS1922
from .registers import DeviceType, StatusRegister, decode_clock, encode_clock, from_bcd, to_bcd
from .samples import SampleDecoder, convert, decode_page, log_capacity
from .timeline import MissionTimeline

__all__ = [
    "Calibration",
    "DS1922",
    "DeviceType",
    "StatusRegister",
    "decode_clock",
    "encode_clock",
    "from_bcd",
    "to_bcd",
    "SampleDecoder",
    "convert",
    "decode_page",
    "log_capacity",
    "MissionTimeline",
]
