"""
VM command definitions.

Each VM instruction parses into one Command subclass. The set of kinds is
closed: CommandType lists them all, and OPCODES maps the opcode text of
each to its kind.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict


class CommandType(Enum):
    """VM command kinds."""
    ARITHMETIC = auto()   # add sub neg eq gt lt and or not
    PUSH = auto()         # push segment index
    POP = auto()          # pop segment index
    LABEL = auto()        # label name
    GOTO = auto()         # goto name
    IF_GOTO = auto()      # if-goto name
    FUNCTION = auto()     # function name nLocals
    CALL = auto()         # call name nArgs
    RETURN = auto()       # return


# Arithmetic/logical mnemonics grouped by stack effect
UNARY_OPS = frozenset({'neg', 'not'})
BINARY_OPS = frozenset({'add', 'sub', 'and', 'or'})
COMPARISON_OPS = frozenset({'eq', 'gt', 'lt'})
ARITHMETIC_OPS = UNARY_OPS | BINARY_OPS | COMPARISON_OPS


@dataclass(frozen=True)
class Command:
    """Base class for all VM commands."""
    command_type: CommandType
    line: int = 0

    @property
    def arg1(self) -> str:
        """Operator, segment, or label/function name. Empty for return."""
        return ''

    @property
    def arg2(self) -> int:
        """Index or count. Zero for kinds that take no number."""
        return 0

    def __str__(self):
        return self.command_type.name.lower()

    def __repr__(self):
        return f"{self.__class__.__name__}({str(self)!r}, line={self.line})"


@dataclass(frozen=True, repr=False)
class ArithmeticCommand(Command):
    """add, sub, neg, eq, gt, lt, and, or, not."""
    command_type: CommandType = CommandType.ARITHMETIC
    operator: str = ''

    @property
    def arg1(self) -> str:
        return self.operator

    def __str__(self):
        return self.operator


@dataclass(frozen=True, repr=False)
class _SegmentCommand(Command):
    segment: str = ''
    index: int = 0

    @property
    def arg1(self) -> str:
        return self.segment

    @property
    def arg2(self) -> int:
        return self.index


@dataclass(frozen=True, repr=False)
class PushCommand(_SegmentCommand):
    """push segment index"""
    command_type: CommandType = CommandType.PUSH

    def __str__(self):
        return f"push {self.segment} {self.index}"


@dataclass(frozen=True, repr=False)
class PopCommand(_SegmentCommand):
    """pop segment index"""
    command_type: CommandType = CommandType.POP

    def __str__(self):
        return f"pop {self.segment} {self.index}"


@dataclass(frozen=True, repr=False)
class _BranchCommand(Command):
    label: str = ''

    @property
    def arg1(self) -> str:
        return self.label


@dataclass(frozen=True, repr=False)
class LabelCommand(_BranchCommand):
    """label name"""
    command_type: CommandType = CommandType.LABEL

    def __str__(self):
        return f"label {self.label}"


@dataclass(frozen=True, repr=False)
class GotoCommand(_BranchCommand):
    """goto name"""
    command_type: CommandType = CommandType.GOTO

    def __str__(self):
        return f"goto {self.label}"


@dataclass(frozen=True, repr=False)
class IfGotoCommand(_BranchCommand):
    """if-goto name - pops the stack and jumps when the value is non-zero."""
    command_type: CommandType = CommandType.IF_GOTO

    def __str__(self):
        return f"if-goto {self.label}"


@dataclass(frozen=True, repr=False)
class FunctionCommand(Command):
    """function name nLocals"""
    command_type: CommandType = CommandType.FUNCTION
    name: str = ''
    num_locals: int = 0

    @property
    def arg1(self) -> str:
        return self.name

    @property
    def arg2(self) -> int:
        return self.num_locals

    def __str__(self):
        return f"function {self.name} {self.num_locals}"


@dataclass(frozen=True, repr=False)
class CallCommand(Command):
    """call name nArgs"""
    command_type: CommandType = CommandType.CALL
    name: str = ''
    num_args: int = 0

    @property
    def arg1(self) -> str:
        return self.name

    @property
    def arg2(self) -> int:
        return self.num_args

    def __str__(self):
        return f"call {self.name} {self.num_args}"


@dataclass(frozen=True, repr=False)
class ReturnCommand(Command):
    """return"""
    command_type: CommandType = CommandType.RETURN

    def __str__(self):
        return "return"


# Opcode text -> command kind
OPCODES: Dict[str, CommandType] = {
    **{op: CommandType.ARITHMETIC for op in ARITHMETIC_OPS},
    'push': CommandType.PUSH,
    'pop': CommandType.POP,
    'label': CommandType.LABEL,
    'goto': CommandType.GOTO,
    'if-goto': CommandType.IF_GOTO,
    'function': CommandType.FUNCTION,
    'call': CommandType.CALL,
    'return': CommandType.RETURN,
}

# Number of tokens (opcode included) each kind takes
ARITY: Dict[CommandType, int] = {
    CommandType.ARITHMETIC: 1,
    CommandType.RETURN: 1,
    CommandType.LABEL: 2,
    CommandType.GOTO: 2,
    CommandType.IF_GOTO: 2,
    CommandType.PUSH: 3,
    CommandType.POP: 3,
    CommandType.FUNCTION: 3,
    CommandType.CALL: 3,
}
