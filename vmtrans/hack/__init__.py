"""Hack machine symbols and assembly instruction forms."""

from .symbols import (
    SEGMENTS, Segment, AddressMode, PREDEFINED_SYMBOLS,
    STACK_BASE, MAX_CONSTANT, get_segment, is_valid_symbol,
)
from .instructions import (
    AInstruction, CInstruction, LabelInstruction, Instruction, InstructionTable,
)

__all__ = [
    'SEGMENTS', 'Segment', 'AddressMode', 'PREDEFINED_SYMBOLS',
    'STACK_BASE', 'MAX_CONSTANT', 'get_segment', 'is_valid_symbol',
    'AInstruction', 'CInstruction', 'LabelInstruction', 'Instruction',
    'InstructionTable',
]
