"""Dallas/Maxim 1-Wire checksums."""
from __future__ import annotations

_ODD_PARITY = (0, 1, 1, 0, 1, 0, 0, 1, 1, 0, 0, 1, 0, 1, 1, 0)

# Register value left after running crc16 over data followed by its inverted CRC.
CRC16_RESIDUAL = 0xB001


def crc8(data: bytes, init: int = 0) -> int:
    """CRC-8 (x^8 + x^5 + x^4 + 1, reflected) as used for ROM codes."""
    crc = init
    for byte in data:
        for _ in range(8):
            mix = (crc ^ byte) & 0x01
            crc >>= 1
            if mix:
                crc ^= 0x8C
            byte >>= 1
    return crc


def crc16(data: bytes, init: int = 0) -> int:
    """
    CRC-16 (x^16 + x^15 + x^2 + 1, reflected) over *data*.

    Uses the nibble odd-parity formulation from the iButton application notes
    instead of a 256-entry table.
    """
    crc = init
    for byte in data:
        value = (byte ^ crc) & 0xFF
        crc >>= 8
        if _ODD_PARITY[value & 0x0F] ^ _ODD_PARITY[value >> 4]:
            crc ^= 0xC001
        value <<= 6
        crc ^= value
        value <<= 1
        crc ^= value
    return crc


def check_crc16(frame: bytes) -> bool:
    """True when the last two bytes of *frame* are the inverted CRC-16 of the rest."""
    return crc16(frame) == CRC16_RESIDUAL


def crc16_trailer(data: bytes) -> bytes:
    """Inverted CRC-16 of *data*, least significant byte first, as a device sends it."""
    inverted = ~crc16(data) & 0xFFFF
    return inverted.to_bytes(2, "little")
