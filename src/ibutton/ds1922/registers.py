from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

STATUS_REGISTER_ADDRESS = 0x0200
PAGE_SIZE = 32
STATUS_REGISTER_SIZE = 2 * PAGE_SIZE

RTC = 0x00
SAMPLE_RATE = 0x06
ALARM_LOW_THRESHOLD = 0x08
ALARM_HIGH_THRESHOLD = 0x09
ALARM_ENABLE = 0x10
RTC_CONTROL = 0x12
MISSION_CONTROL = 0x13
ALARM_STATUS = 0x14
GENERAL_STATUS = 0x15
START_DELAY = 0x16
MISSION_TIMESTAMP = 0x19
MISSION_SAMPLES = 0x20
DEVICE_SAMPLES = 0x23
DEVICE_CONFIG = 0x26
PASSWORD_CONTROL = 0x27

CLOCK_BYTES = 6
PASSWORD_ENABLED = 0xAA
MAX_SAMPLE_RATE = 0x3FFF
MAX_START_DELAY = 0xFFFFFF


class DeviceType(enum.Enum):
    """Logger subfamily selected by the device configuration byte."""

    DS1922L = (0x40, 41, 60.0)
    DS1922T = (0x60, 1, 90.0)
    DS1922E = (0x80, 1, None)
    OTHER = (None, 1, 90.0)

    def __init__(self, code: Optional[int], temperature_offset: int, reference_temperature: Optional[float]):
        self.code = code
        self.temperature_offset = temperature_offset
        self.reference_temperature = reference_temperature

    @property
    def calibration_supported(self) -> bool:
        return self.reference_temperature is not None

    @classmethod
    def from_code(cls, code: int) -> "DeviceType":
        for member in cls:
            if member.code == code:
                return member
        return cls.OTHER


def to_bcd(value: int) -> int:
    if not 0 <= value <= 99:
        raise ValueError(f"BCD value out of range: {value}")
    return (value // 10) << 4 | value % 10


def from_bcd(byte: int) -> int:
    return ((byte & 0xF0) >> 4) * 10 + (byte & 0x0F)


def encode_clock(moment: datetime) -> bytes:
    """Pack *moment* into the six BCD clock bytes (seconds first)."""
    if not 2000 <= moment.year <= 2099:
        raise ValueError(f"Year {moment.year} cannot be stored (2000-2099 only)")
    return bytes(
        to_bcd(value)
        for value in (
            moment.second,
            moment.minute,
            moment.hour,
            moment.day,
            moment.month,
            moment.year - 2000,
        )
    )


def decode_clock(raw: bytes) -> Optional[datetime]:
    """Inverse of encode_clock; None when the bytes are not a valid date."""
    second, minute, hour, day, month, year = raw[:CLOCK_BYTES]
    try:
        return datetime(
            2000 + from_bcd(year),
            from_bcd(month & 0x1F),
            from_bcd(day & 0x3F),
            from_bcd(hour & 0x3F),
            from_bcd(minute & 0x7F),
            from_bcd(second & 0x7F),
        )
    except ValueError:
        return None


def _flag_property(offset: int, mask: int, doc: str = "") -> property:
    def getter(self: "StatusRegister") -> bool:
        return bool(self.image[offset] & mask)

    def setter(self: "StatusRegister", enabled: bool) -> None:
        if enabled:
            self.image[offset] |= mask
        else:
            self.image[offset] &= ~mask & 0xFF

    return property(getter, setter, doc=doc)


def _read_only_flag(offset: int, mask: int, doc: str = "") -> property:
    return property(lambda self: bool(self.image[offset] & mask), doc=doc)


class StatusRegister:
    """
    Image of the two 32-byte configuration pages at 0x0200 and 0x0220.

    Every accessor decodes straight from `image`; setters edit the image in
    place and only reach the device through `DS1922.write_configuration`.
    """

    def __init__(self, image: Optional[bytes] = None):
        self.image = bytearray(STATUS_REGISTER_SIZE)
        if image is not None:
            self.load(image)
        self.rtc_changed = False

    def load(self, image: bytes) -> None:
        if len(image) != STATUS_REGISTER_SIZE:
            raise ValueError(f"Status register image must be {STATUS_REGISTER_SIZE} bytes, got {len(image)}")
        self.image[:] = image

    def _u24(self, offset: int) -> int:
        return int.from_bytes(self.image[offset : offset + 3], "little")

    # -- clock ------------------------------------------------------------

    @property
    def rtc(self) -> Optional[datetime]:
        return decode_clock(self.image[RTC : RTC + CLOCK_BYTES])

    @rtc.setter
    def rtc(self, moment: datetime) -> None:
        self.image[RTC : RTC + CLOCK_BYTES] = encode_clock(moment)
        self.rtc_changed = True

    rtc_enabled = _flag_property(RTC_CONTROL, 0x01, "Clock oscillator running.")
    high_speed_sampling = _flag_property(RTC_CONTROL, 0x02, "Sample rate counts seconds instead of minutes.")

    # -- sampling ---------------------------------------------------------

    @property
    def sample_rate(self) -> int:
        """Raw sample rate: seconds with high-speed sampling, minutes otherwise."""
        return int.from_bytes(self.image[SAMPLE_RATE : SAMPLE_RATE + 2], "little")

    @sample_rate.setter
    def sample_rate(self, rate: int) -> None:
        # a rate of 0 leaves the device in an unrecoverable state
        if not 0 < rate <= MAX_SAMPLE_RATE:
            raise ValueError(f"Sample rate must be within 1..{MAX_SAMPLE_RATE}, got {rate}")
        self.image[SAMPLE_RATE : SAMPLE_RATE + 2] = rate.to_bytes(2, "little")

    @property
    def sample_interval(self) -> int:
        """Seconds between two samples."""
        if self.high_speed_sampling:
            return self.sample_rate
        return self.sample_rate * 60

    logging_enabled = _flag_property(MISSION_CONTROL, 0x01)
    high_resolution = _flag_property(MISSION_CONTROL, 0x04, "Two bytes per logged sample.")
    rollover = _flag_property(
        MISSION_CONTROL, 0x10, "Overwrite the oldest samples once the log memory is full."
    )
    start_upon_alarm = _flag_property(MISSION_CONTROL, 0x20)

    @property
    def mission_start_delay(self) -> int:
        """Minutes between starting a mission and the first sample."""
        return self._u24(START_DELAY)

    @mission_start_delay.setter
    def mission_start_delay(self, delay: int) -> None:
        if not 0 <= delay <= MAX_START_DELAY:
            raise ValueError(f"Mission start delay must be within 0..{MAX_START_DELAY}, got {delay}")
        self.image[START_DELAY : START_DELAY + 3] = delay.to_bytes(3, "little")

    # -- alarms -----------------------------------------------------------

    alarm_low_enabled = _flag_property(ALARM_ENABLE, 0x01)
    alarm_high_enabled = _flag_property(ALARM_ENABLE, 0x02)
    alarm_low = _read_only_flag(ALARM_STATUS, 0x01, "Low temperature alarm has triggered.")
    alarm_high = _read_only_flag(ALARM_STATUS, 0x02, "High temperature alarm has triggered.")

    def _threshold(self, offset: int) -> float:
        return self.image[offset] / 2.0 - self.device_type.temperature_offset

    def _set_threshold(self, offset: int, temperature: float) -> None:
        scaled = (temperature + self.device_type.temperature_offset) * 2
        if not 0 <= scaled <= 0xFF:
            raise ValueError(f"Alarm threshold {temperature} °C is outside the device range")
        self.image[offset] = int(scaled)

    @property
    def alarm_low_threshold(self) -> float:
        return self._threshold(ALARM_LOW_THRESHOLD)

    @alarm_low_threshold.setter
    def alarm_low_threshold(self, temperature: float) -> None:
        self._set_threshold(ALARM_LOW_THRESHOLD, temperature)

    @property
    def alarm_high_threshold(self) -> float:
        return self._threshold(ALARM_HIGH_THRESHOLD)

    @alarm_high_threshold.setter
    def alarm_high_threshold(self, temperature: float) -> None:
        self._set_threshold(ALARM_HIGH_THRESHOLD, temperature)

    # -- mission state ----------------------------------------------------

    mission_in_progress = _read_only_flag(GENERAL_STATUS, 0x02)
    waiting_for_alarm = _read_only_flag(GENERAL_STATUS, 0x08)

    @property
    def mission_timestamp(self) -> Optional[datetime]:
        return decode_clock(self.image[MISSION_TIMESTAMP : MISSION_TIMESTAMP + CLOCK_BYTES])

    @property
    def sample_count(self) -> int:
        """Samples logged during the current mission."""
        return self._u24(MISSION_SAMPLES)

    @property
    def device_sample_count(self) -> int:
        """
        Samples taken over the device's lifetime.

        Not reset by a new mission; a rough measure of battery use.
        """
        return self._u24(DEVICE_SAMPLES)

    @property
    def device_type(self) -> DeviceType:
        return DeviceType.from_code(self.image[DEVICE_CONFIG])

    @property
    def password_enabled(self) -> bool:
        return self.image[PASSWORD_CONTROL] == PASSWORD_ENABLED

    def as_dict(self) -> dict[str, object]:
        return {
            "device_type": self.device_type.name,
            "rtc": self.rtc,
            "rtc_enabled": self.rtc_enabled,
            "high_speed_sampling": self.high_speed_sampling,
            "sample_rate": self.sample_rate,
            "sample_interval_s": self.sample_interval,
            "mission_in_progress": self.mission_in_progress,
            "logging_enabled": self.logging_enabled,
            "high_resolution": self.high_resolution,
            "rollover": self.rollover,
            "start_upon_alarm": self.start_upon_alarm,
            "waiting_for_alarm": self.waiting_for_alarm,
            "alarm_low_enabled": self.alarm_low_enabled,
            "alarm_high_enabled": self.alarm_high_enabled,
            "alarm_low_threshold": self.alarm_low_threshold,
            "alarm_high_threshold": self.alarm_high_threshold,
            "alarm_low": self.alarm_low,
            "alarm_high": self.alarm_high,
            "mission_start_delay": self.mission_start_delay,
            "mission_timestamp": self.mission_timestamp,
            "sample_count": self.sample_count,
            "device_sample_count": self.device_sample_count,
            "password_enabled": self.password_enabled,
        }
