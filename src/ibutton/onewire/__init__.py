"""
USB-to-1-Wire transport for the DS2490 bridge (DS9490 adapters).

The subpackage exposes the bridge session, bit/byte/frame primitives, the ROM
search used to enumerate devices and the checksums shared with the device
protocol layer.
"""

from .bridge import UsbBridge
from .config import BridgeConfig, IButtonConfig, SessionConfig, load_config
from .crc import CRC16_RESIDUAL, check_crc16, crc8, crc16, crc16_trailer
from .search import RomSearch, SearchState, family_code, format_rom, rom_crc_ok

__all__ = [
    "UsbBridge",
    "BridgeConfig",
    "IButtonConfig",
    "SessionConfig",
    "load_config",
    "CRC16_RESIDUAL",
    "check_crc16",
    "crc8",
    "crc16",
    "crc16_trailer",
    "RomSearch",
    "SearchState",
    "family_code",
    "format_rom",
    "rom_crc_ok",
]
