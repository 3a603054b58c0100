"""
Hack assembly instruction forms.

Three textual forms are produced by the translator:
- A-instruction:  @symbol or @value
- C-instruction:  dest=comp;jump (dest and jump optional)
- L-pseudo:       (label)

Each instruction validates its fields on construction so the code writer can
never emit a line the downstream assembler would reject.
"""

from dataclasses import dataclass
from typing import Optional, Union

from .symbols import MAX_CONSTANT, is_valid_symbol


class InstructionTable:
    """Mnemonics accepted in C-instructions."""

    COMP = frozenset({
        '0', '1', '-1',
        'D', 'A', 'M',
        '!D', '!A', '!M',
        '-D', '-A', '-M',
        'D+1', 'A+1', 'M+1',
        'D-1', 'A-1', 'M-1',
        'D+A', 'D+M',
        'D-A', 'D-M',
        'A-D', 'M-D',
        'D&A', 'D&M',
        'D|A', 'D|M',
    })

    DEST = frozenset({'M', 'D', 'MD', 'A', 'AM', 'AD', 'AMD'})

    JUMP = frozenset({'JGT', 'JEQ', 'JGE', 'JLT', 'JNE', 'JLE', 'JMP'})

    @classmethod
    def is_comp(cls, comp: str) -> bool:
        return comp in cls.COMP

    @classmethod
    def is_dest(cls, dest: str) -> bool:
        return dest in cls.DEST

    @classmethod
    def is_jump(cls, jump: str) -> bool:
        return jump in cls.JUMP


@dataclass(frozen=True)
class AInstruction:
    """@address - loads a constant or symbol into A."""
    address: Union[int, str]

    def __post_init__(self):
        if isinstance(self.address, int):
            if not 0 <= self.address <= MAX_CONSTANT:
                raise ValueError(f"A-instruction constant out of range: {self.address}")
        elif not is_valid_symbol(self.address):
            raise ValueError(f"Invalid A-instruction symbol: {self.address!r}")

    def __str__(self):
        return f"@{self.address}"


@dataclass(frozen=True)
class CInstruction:
    """dest=comp;jump - computes comp, stores to dest, optionally jumps."""
    comp: str
    dest: Optional[str] = None
    jump: Optional[str] = None

    def __post_init__(self):
        if not InstructionTable.is_comp(self.comp):
            raise ValueError(f"Invalid comp mnemonic: {self.comp!r}")
        if self.dest is not None and not InstructionTable.is_dest(self.dest):
            raise ValueError(f"Invalid dest mnemonic: {self.dest!r}")
        if self.jump is not None and not InstructionTable.is_jump(self.jump):
            raise ValueError(f"Invalid jump mnemonic: {self.jump!r}")

    def __str__(self):
        text = self.comp
        if self.dest:
            text = f"{self.dest}={text}"
        if self.jump:
            text = f"{text};{self.jump}"
        return text


@dataclass(frozen=True)
class LabelInstruction:
    """(label) - marks the address of the next instruction."""
    label: str

    def __post_init__(self):
        if not is_valid_symbol(self.label):
            raise ValueError(f"Invalid label: {self.label!r}")

    def __str__(self):
        return f"({self.label})"


Instruction = Union[AInstruction, CInstruction, LabelInstruction]
