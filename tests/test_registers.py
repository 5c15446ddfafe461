from __future__ import annotations

from datetime import datetime

import pytest

from ibutton.ds1922.registers import (
    DeviceType,
    StatusRegister,
    decode_clock,
    encode_clock,
    from_bcd,
    to_bcd,
)
from simulator import build_register


@pytest.mark.parametrize("upper", [59, 23, 31, 12, 99])
def test_bcd_round_trip(upper: int) -> None:
    for value in range(upper + 1):
        assert from_bcd(to_bcd(value)) == value


def test_bcd_digits() -> None:
    assert to_bcd(42) == 0x42
    assert from_bcd(0x59) == 59
    with pytest.raises(ValueError):
        to_bcd(100)


def test_clock_encoding_order() -> None:
    assert encode_clock(datetime(2014, 6, 1, 12, 34, 56)) == bytes([0x56, 0x34, 0x12, 0x01, 0x06, 0x14])
    assert decode_clock(bytes([0x56, 0x34, 0x12, 0x01, 0x06, 0x14])) == datetime(2014, 6, 1, 12, 34, 56)


def test_clock_rejects_unstorable_year() -> None:
    with pytest.raises(ValueError):
        encode_clock(datetime(1999, 12, 31))


def test_decode_clock_masks_control_bits() -> None:
    # century and 12/24 hour bits are not part of the value
    assert decode_clock(bytes([0x00, 0x00, 0x40 | 0x08, 0x15, 0x80 | 0x03, 0x20])) == datetime(2020, 3, 15, 8)


def test_decode_clock_invalid_date() -> None:
    assert decode_clock(bytes(6)) is None
    assert StatusRegister().rtc is None


def test_device_type_from_code() -> None:
    assert DeviceType.from_code(0x40) is DeviceType.DS1922L
    assert DeviceType.from_code(0x60) is DeviceType.DS1922T
    assert DeviceType.from_code(0x80) is DeviceType.DS1922E
    assert DeviceType.from_code(0x20) is DeviceType.OTHER
    assert DeviceType.DS1922L.temperature_offset == 41
    assert DeviceType.DS1922T.temperature_offset == 1
    assert not DeviceType.DS1922E.calibration_supported
    assert DeviceType.OTHER.reference_temperature == 90.0


def test_register_field_layout() -> None:
    image = bytearray(64)
    image[0x06:0x08] = (0x1234).to_bytes(2, "little")
    image[0x08] = 0x2C
    image[0x09] = 0x5C
    image[0x10] = 0x02
    image[0x12] = 0x03
    image[0x13] = 0x01 | 0x04 | 0x20
    image[0x14] = 0x01
    image[0x15] = 0x02 | 0x08
    image[0x16:0x19] = (90).to_bytes(3, "little")
    image[0x19:0x1F] = encode_clock(datetime(2015, 1, 2, 3, 4, 5))
    image[0x20:0x23] = (9000).to_bytes(3, "little")
    image[0x23:0x26] = (123456).to_bytes(3, "little")
    image[0x26] = 0x40
    image[0x27] = 0xAA
    register = StatusRegister(bytes(image))

    assert register.sample_rate == 0x1234
    assert register.device_type is DeviceType.DS1922L
    assert register.alarm_low_threshold == 0x2C / 2 - 41
    assert register.alarm_high_threshold == 5.0
    assert not register.alarm_low_enabled
    assert register.alarm_high_enabled
    assert register.rtc_enabled
    assert register.high_speed_sampling
    assert register.sample_interval == 0x1234
    assert register.logging_enabled
    assert register.high_resolution
    assert not register.rollover
    assert register.start_upon_alarm
    assert register.alarm_low
    assert not register.alarm_high
    assert register.mission_in_progress
    assert register.waiting_for_alarm
    assert register.mission_start_delay == 90
    assert register.mission_timestamp == datetime(2015, 1, 2, 3, 4, 5)
    assert register.sample_count == 9000
    assert register.device_sample_count == 123456
    assert register.password_enabled
    assert register.as_dict()["device_type"] == "DS1922L"


def test_setters_edit_only_their_bits() -> None:
    register = StatusRegister()
    register.image[0x13] = 0xFF
    register.rollover = False
    assert register.image[0x13] == 0xEF
    register.high_speed_sampling = True
    register.rtc_enabled = False
    assert register.image[0x12] == 0x02
    register.sample_rate = 16383
    assert register.image[0x06:0x08] == b"\xff\x3f"
    assert register.sample_interval == 16383


def test_sample_interval_in_minutes() -> None:
    register = build_register(sample_rate=10)
    assert register.sample_interval == 600


@pytest.mark.parametrize("rate", [0, 16384, -1])
def test_sample_rate_bounds(rate: int) -> None:
    with pytest.raises(ValueError):
        StatusRegister().sample_rate = rate


def test_threshold_encoding_per_type() -> None:
    register = build_register(device_type=0x60)
    register.alarm_high_threshold = 25.5
    assert register.image[0x09] == 53
    assert register.alarm_high_threshold == 25.5
    with pytest.raises(ValueError):
        register.alarm_low_threshold = -10.0

    register = build_register(device_type=0x40)
    register.alarm_low_threshold = -10.0
    assert register.image[0x08] == 62


def test_start_delay_bounds() -> None:
    register = StatusRegister()
    register.mission_start_delay = 0xFFFFFF
    assert register.mission_start_delay == 0xFFFFFF
    with pytest.raises(ValueError):
        register.mission_start_delay = 0x1000000


def test_rtc_setter_marks_change() -> None:
    register = StatusRegister()
    assert not register.rtc_changed
    register.rtc = datetime(2020, 2, 29, 23, 59, 59)
    assert register.rtc_changed
    assert register.rtc == datetime(2020, 2, 29, 23, 59, 59)


def test_load_requires_full_image() -> None:
    with pytest.raises(ValueError):
        StatusRegister(bytes(32))


@pytest.mark.parametrize("temperature", [-1.4, 126.9])
def test_threshold_rejects_values_just_outside_range(temperature: float) -> None:
    register = build_register(device_type=0x60)
    with pytest.raises(ValueError):
        register.alarm_low_threshold = temperature
    assert register.image[0x08] == 0


def test_threshold_range_edges() -> None:
    register = build_register(device_type=0x60)
    register.alarm_low_threshold = -1.0
    register.alarm_high_threshold = 126.5
    assert register.image[0x08] == 0
    assert register.image[0x09] == 0xFF
