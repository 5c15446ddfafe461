"""Binary-tree ROM search over a 1-Wire bus."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Set

from .crc import crc8

if TYPE_CHECKING:
    from .bridge import UsbBridge

logger = logging.getLogger(__name__)

SEARCH_ROM = 0xF0
ROM_BITS = 64
MAX_PASSES = 256


def family_code(rom: int) -> int:
    return rom & 0xFF


def format_rom(rom: int) -> str:
    return f"{rom:016X}"


def rom_crc_ok(rom: int) -> bool:
    """Check the CRC-8 in the high byte against the low 56 bits."""
    return crc8((rom & ((1 << 56) - 1)).to_bytes(7, "little")) == (rom >> 56) & 0xFF


@dataclass
class SearchState:
    """
    Bookkeeping carried from one search pass to the next.

    `last_discrepancy` is the 1-based bit position of the deepest branch where
    the previous pass went to 0 although devices with a 1 were present. It is
    the frontier: positions below it replay `candidate`, the frontier itself
    flips to 1, positions above it start again with 0.
    """

    last_discrepancy: int = 0
    candidate: int = 0
    passes: int = 0
    done: bool = False

    def direction_at(self, position: int) -> int:
        if position < self.last_discrepancy:
            return (self.candidate >> (position - 1)) & 0x01
        return 1 if position == self.last_discrepancy else 0


class RomSearch:
    """Enumerate every device identifier present on the bus."""

    def __init__(self, bridge: "UsbBridge", max_passes: int = MAX_PASSES):
        self.bridge = bridge
        self.max_passes = max_passes
        self.state = SearchState()

    def run(self) -> Set[int]:
        found: Set[int] = set()
        self.state = SearchState()
        while not self.state.done:
            if self.state.passes >= self.max_passes:
                logger.warning("ROM search stopped after %d passes", self.state.passes)
                break
            rom = self._search_pass()
            if rom is None:
                break
            found.add(rom)
        logger.debug("ROM search found %d device(s)", len(found))
        return found

    def _search_pass(self) -> Optional[int]:
        state = self.state
        state.passes += 1
        if not self.bridge.reset():
            logger.debug("No presence pulse, bus is empty")
            state.done = True
            return None
        self.bridge.write_byte(SEARCH_ROM)
        rom = 0
        last_zero = 0
        for position in range(1, ROM_BITS + 1):
            id_bit = self.bridge.touch_bit(1)
            cmp_bit = self.bridge.touch_bit(1)
            if id_bit and cmp_bit:
                logger.debug("No device answered at bit %d", position)
                state.done = True
                return None
            if id_bit != cmp_bit:
                direction = id_bit
            else:
                direction = state.direction_at(position)
                if direction == 0:
                    last_zero = position
            self.bridge.touch_bit(direction)
            rom |= direction << (position - 1)
        state.last_discrepancy = last_zero
        state.candidate = rom
        state.done = last_zero == 0
        logger.debug("Search pass %d: %s (frontier=%d)", state.passes, format_rom(rom), last_zero)
        return rom
