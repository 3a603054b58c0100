"""
Test fixtures and helpers for the VM translator.

This module provides:

- translate_vm: translates VM source text to Hack assembly text
- HackEmulator: runs symbolic Hack assembly so tests can check the machine
  state a translated program leaves behind
- AssertVM: fluent assertion helper in the style of

      AssertVM("push constant 2", "push constant 3", "add").leaves_stack(5)
"""

import io
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Type

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from vmtrans import VMTranslator
from vmtrans.hack.symbols import PREDEFINED_SYMBOLS


# Segment pointers used when a test runs without bootstrap
DEFAULT_RAM = {
    'SP': 256,
    'LCL': 300,
    'ARG': 400,
    'THIS': 3000,
    'THAT': 3010,
}


def translate_vm(*modules: Tuple[str, str], bootstrap: bool = False,
                 annotate: bool = False) -> str:
    """Translate (filename, source) pairs into one assembly text."""
    out = io.StringIO()
    translator = VMTranslator(out, bootstrap=bootstrap, annotate=annotate)
    for filename, source in modules:
        translator.translate(filename, source)
    translator.close()
    return out.getvalue()


def asm_lines(asm: str) -> List[str]:
    """Assembly lines without comments or blanks."""
    lines = []
    for line in asm.splitlines():
        line = line.split('//', 1)[0].strip()
        if line:
            lines.append(line)
    return lines


def _word(value: int) -> int:
    """Wrap to a signed 16-bit value."""
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


COMP = {
    '0': lambda a, d, m: 0,
    '1': lambda a, d, m: 1,
    '-1': lambda a, d, m: -1,
    'D': lambda a, d, m: d,
    'A': lambda a, d, m: a,
    'M': lambda a, d, m: m,
    '!D': lambda a, d, m: ~d,
    '!A': lambda a, d, m: ~a,
    '!M': lambda a, d, m: ~m,
    '-D': lambda a, d, m: -d,
    '-A': lambda a, d, m: -a,
    '-M': lambda a, d, m: -m,
    'D+1': lambda a, d, m: d + 1,
    'A+1': lambda a, d, m: a + 1,
    'M+1': lambda a, d, m: m + 1,
    'D-1': lambda a, d, m: d - 1,
    'A-1': lambda a, d, m: a - 1,
    'M-1': lambda a, d, m: m - 1,
    'D+A': lambda a, d, m: d + a,
    'D+M': lambda a, d, m: d + m,
    'D-A': lambda a, d, m: d - a,
    'D-M': lambda a, d, m: d - m,
    'A-D': lambda a, d, m: a - d,
    'M-D': lambda a, d, m: m - d,
    'D&A': lambda a, d, m: d & a,
    'D&M': lambda a, d, m: d & m,
    'D|A': lambda a, d, m: d | a,
    'D|M': lambda a, d, m: d | m,
}

JUMP = {
    'JGT': lambda v: v > 0,
    'JEQ': lambda v: v == 0,
    'JGE': lambda v: v >= 0,
    'JLT': lambda v: v < 0,
    'JNE': lambda v: v != 0,
    'JLE': lambda v: v <= 0,
    'JMP': lambda v: True,
}

C_PATTERN = re.compile(r'(?:(?P<dest>[ADM]+)=)?(?P<comp>[^;]+)(?:;(?P<jump>J\w+))?')


class HackEmulator:
    """
    Executes symbolic Hack assembly.

    Labels and variables are resolved the way the Hack assembler does it:
    labels get instruction addresses, other symbols get RAM from 16 upward.
    Execution stops at a tight loop such as (END) @END 0;JMP.
    """

    RAM_SIZE = 0x8000

    def __init__(self, asm: str):
        self.ram = [0] * self.RAM_SIZE
        self.a = 0
        self.d = 0
        self.pc = 0
        self.steps = 0
        self.halted = False
        self.symbols: Dict[str, int] = dict(PREDEFINED_SYMBOLS)
        self.labels: Dict[str, int] = {}
        self.program: List[tuple] = []
        self._load(asm_lines(asm))

    def _load(self, lines: List[str]):
        instructions = []
        for line in lines:
            if line.startswith('('):
                label = line[1:-1]
                assert label not in self.labels, f"duplicate label {label}"
                self.labels[label] = len(instructions)
            else:
                instructions.append(line)
        self.symbols.update(self.labels)

        next_var = 16
        for line in instructions:
            if line.startswith('@'):
                value = line[1:]
                if value.isdigit():
                    self.program.append(('A', int(value)))
                    continue
                if value not in self.symbols:
                    self.symbols[value] = next_var
                    next_var += 1
                self.program.append(('A', self.symbols[value]))
            else:
                match = C_PATTERN.fullmatch(line)
                assert match and match.group('comp') in COMP, f"bad instruction {line!r}"
                self.program.append(('C', match.group('dest') or '',
                                     COMP[match.group('comp')], match.group('jump')))

    def __getitem__(self, address) -> int:
        if isinstance(address, str):
            address = self.symbols[address]
        return self.ram[address]

    def __setitem__(self, address, value: int):
        if isinstance(address, str):
            address = self.symbols[address]
        self.ram[address] = _word(value)

    def stack(self, base: int = 256) -> List[int]:
        """Values from base up to (not including) SP."""
        return self.ram[base:self.ram[0]]

    def step(self):
        inst = self.program[self.pc]
        self.steps += 1
        if inst[0] == 'A':
            self.a = inst[1]
            self.pc += 1
            return

        _, dest, comp, jump = inst
        value = _word(comp(self.a, self.d, self.ram[self.a & 0x7FFF]))
        address = self.a & 0x7FFF
        if 'M' in dest:
            self.ram[address] = value
        if 'A' in dest:
            self.a = value
        if 'D' in dest:
            self.d = value

        if jump and JUMP[jump](value):
            target = self.a
            # (L) @L 0;JMP never leaves itself
            if jump == 'JMP' and target == self.pc - 1 and self.program[target][0] == 'A':
                self.halted = True
            self.pc = target
        else:
            self.pc += 1

    def run(self, max_steps: int = 1_000_000) -> 'HackEmulator':
        """Run until the program halts in a tight loop or runs off the end."""
        while not self.halted and self.pc < len(self.program):
            if self.steps >= max_steps:
                raise AssertionError(f"program did not halt within {max_steps} steps")
            self.step()
        return self


@dataclass
class VMAssertion:
    """
    Fluent assertion helper for VM programs.

    Usage:
        AssertVM("push constant 7", "pop local 0").has_ram(LCL=(0, 7))
        AssertVM("pop local -1").does_not_translate(InvalidOperandError)
    """
    lines: Tuple[str, ...]
    filename: str = "Test.vm"
    modules: List[Tuple[str, str]] = field(default_factory=list)
    bootstrap: bool = False
    initial_ram: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_RAM))
    preset: Dict[int, int] = field(default_factory=dict)

    def in_module(self, filename: str) -> 'VMAssertion':
        self.filename = filename
        return self

    def with_module(self, filename: str, *lines: str) -> 'VMAssertion':
        """Translate another module after the main one."""
        self.modules.append((filename, "\n".join(lines)))
        return self

    def with_bootstrap(self) -> 'VMAssertion':
        self.bootstrap = True
        return self

    def with_ram(self, **registers: int) -> 'VMAssertion':
        """Override starting values of SP, LCL, ARG, THIS or THAT."""
        self.initial_ram.update(registers)
        return self

    def with_memory(self, address: int, *values: int) -> 'VMAssertion':
        """Preload RAM starting at address."""
        for i, value in enumerate(values):
            self.preset[address + i] = value
        return self

    def translate(self) -> str:
        main = (self.filename, "\n".join(self.lines))
        return translate_vm(main, *self.modules, bootstrap=self.bootstrap)

    def run(self) -> HackEmulator:
        emulator = HackEmulator(self.translate())
        if not self.bootstrap:
            for name, value in self.initial_ram.items():
                emulator[name] = value
        for address, value in self.preset.items():
            emulator[address] = value
        return emulator.run()

    def leaves_stack(self, *values: int) -> HackEmulator:
        """Assert the stack above the starting SP holds exactly values."""
        emulator = self.run()
        base = 256 if self.bootstrap else self.initial_ram['SP']
        assert emulator.stack(base) == list(values), \
            f"Expected stack {list(values)}, got {emulator.stack(base)}"
        return emulator

    def has_ram(self, **expected) -> HackEmulator:
        """
        Assert RAM contents after execution.

        Each keyword is a register name; the value is either the expected
        register value, or a (offset, value) pair checked through the
        register's pointer (e.g. LCL=(0, 7) means RAM[RAM[LCL] + 0] == 7).
        """
        emulator = self.run()
        for name, value in expected.items():
            if isinstance(value, tuple):
                offset, want = value
                address = emulator[name] + offset
                assert emulator[address] == want, \
                    f"Expected RAM[{name}+{offset}] == {want}, got {emulator[address]}"
            else:
                assert emulator[name] == value, \
                    f"Expected {name} == {value}, got {emulator[name]}"
        return emulator

    def does_not_translate(self, error_class: Type[Exception],
                           match: Optional[str] = None) -> None:
        """Assert translation fails with error_class."""
        with pytest.raises(error_class, match=match):
            self.translate()


def AssertVM(*lines: str) -> VMAssertion:
    """Create a VM program assertion."""
    return VMAssertion(lines)


# Pytest fixtures
@pytest.fixture
def output():
    """Fresh in-memory assembly sink."""
    return io.StringIO()
