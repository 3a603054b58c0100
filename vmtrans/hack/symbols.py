"""
Hack machine symbols and memory map used by the VM translator.

Defines the predefined registers, how each VM memory segment is addressed,
and the syntax of user symbols accepted by the downstream assembler.
"""

import re
from enum import Enum
from dataclasses import dataclass
from typing import Dict, Optional


# Predefined pointer registers
SP = 'SP'
LCL = 'LCL'
ARG = 'ARG'
THIS = 'THIS'
THAT = 'THAT'

# General purpose registers reserved for the translator
R13 = 'R13'
R14 = 'R14'

PREDEFINED_SYMBOLS: Dict[str, int] = {
    SP: 0,
    LCL: 1,
    ARG: 2,
    THIS: 3,
    THAT: 4,
    **{f'R{i}': i for i in range(16)},
    'SCREEN': 0x4000,
    'KBD': 0x6000,
}

STACK_BASE = 256          # Initial value of SP after bootstrap
POINTER_BASE = 3          # pointer 0 = THIS, pointer 1 = THAT
POINTER_SIZE = 2
TEMP_BASE = 5             # temp 0..7 = RAM[5..12]
TEMP_SIZE = 8
MAX_CONSTANT = 0x7FFF     # Largest value an A-instruction can load

# Labels are letters, digits, '_', '.', '$', ':' and may not start with a digit
SYMBOL_PATTERN = re.compile(r'[A-Za-z_.$:][A-Za-z0-9_.$:]*')


def is_valid_symbol(name: str) -> bool:
    """Check whether name can be used as a Hack assembler symbol."""
    return SYMBOL_PATTERN.fullmatch(name) is not None


class AddressMode(Enum):
    """How a segment index turns into a RAM address."""
    INDIRECT = 'indirect'    # base register holds a pointer, address = RAM[reg] + i
    DIRECT = 'direct'        # fixed register window, address = base + i
    STATIC = 'static'        # per-module symbol <module>.<i>
    IMMEDIATE = 'immediate'  # constant, no backing memory


@dataclass(frozen=True)
class Segment:
    """A VM memory segment and its addressing rule."""
    name: str
    mode: AddressMode
    register: Optional[str] = None  # base register for INDIRECT
    base: int = 0                   # first RAM address for DIRECT
    size: Optional[int] = None      # number of valid indices, None = unbounded

    def check_index(self, index: int) -> bool:
        """Return True if index is addressable in this segment."""
        if index < 0:
            return False
        if self.mode in (AddressMode.IMMEDIATE, AddressMode.INDIRECT):
            # The index is loaded with a single A-instruction
            return index <= MAX_CONSTANT
        if self.size is not None:
            return index < self.size
        return True


SEGMENTS: Dict[str, Segment] = {
    'local': Segment('local', AddressMode.INDIRECT, register=LCL),
    'argument': Segment('argument', AddressMode.INDIRECT, register=ARG),
    'this': Segment('this', AddressMode.INDIRECT, register=THIS),
    'that': Segment('that', AddressMode.INDIRECT, register=THAT),
    'pointer': Segment('pointer', AddressMode.DIRECT, base=POINTER_BASE, size=POINTER_SIZE),
    'temp': Segment('temp', AddressMode.DIRECT, base=TEMP_BASE, size=TEMP_SIZE),
    'static': Segment('static', AddressMode.STATIC),
    'constant': Segment('constant', AddressMode.IMMEDIATE),
}


def get_segment(name: str) -> Optional[Segment]:
    """Look up a segment by its VM name."""
    return SEGMENTS.get(name)
