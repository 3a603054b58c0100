"""
Code writer - lowers VM commands to Hack assembly.

Every write_* method validates its arguments, builds the complete
instruction template for the command, and only then appends it to the
output buffer. A command is therefore either emitted whole or not at all.

The first error raised by any write_* call is kept in CodeWriter.error.
From then on every write_* call emits nothing and raises that same error
again, so the caller always sees the root cause.

A CodeWriter lives for a whole translation run: its label counter keeps
increasing across modules so generated labels never repeat in one output.
It is not safe for use by multiple callers at once.
"""

import functools
import re
import threading
from pathlib import PurePath
from typing import List, Optional, TextIO

from ..errors import (
    TranslationError, OutputWriteError, UnknownCommandError,
    UnknownSegmentError, InvalidOperandError, MalformedCommandError,
)
from ..hack.instructions import (
    AInstruction, CInstruction, LabelInstruction, Instruction,
)
from ..hack.symbols import (
    SP, LCL, ARG, THIS, THAT, R13, R14, STACK_BASE, MAX_CONSTANT,
    AddressMode, get_segment, is_valid_symbol,
)
from ..parser.commands import CommandType, UNARY_OPS, BINARY_OPS, COMPARISON_OPS


# Boolean encoding on the stack
TRUE = -1
FALSE = 0

LABEL_PREFIX = 'LABEL'
END_LABEL = 'END'
RETURN_LABEL_INFIX = '$ret.'
DEFAULT_ENTRY_POINT = 'Sys.init'

# Label definitions the translator generates itself; user code may not define them
GENERATED_LABEL_PATTERN = re.compile(
    rf'{LABEL_PREFIX}_[0-9]+|{END_LABEL}|.*{re.escape(RETURN_LABEL_INFIX)}[0-9]+'
)

# Pop to a pointer segment keeps the target address here while popping
ADDRESS_REGISTER = R13

# Calling convention.
# call pushes: return address, LCL, ARG, THIS, THAT (in that order)
SAVED_POINTERS = (LCL, ARG, THIS, THAT)
FRAME_SIZE = 5
# return: FRAME = LCL, the saved words sit at fixed distances below it
FRAME_REGISTER = R13
RETURN_REGISTER = R14
RETURN_ADDRESS_OFFSET = 5
RESTORE_OFFSETS = (
    (THAT, 1),
    (THIS, 2),
    (ARG, 3),
    (LCL, 4),
)

# Hack comp for each arithmetic mnemonic (x = second from top, y = top)
BINARY_COMP = {
    'add': 'D+M',
    'sub': 'M-D',
    'and': 'D&M',
    'or': 'D|M',
}

UNARY_COMP = {
    'neg': '-M',
    'not': '!M',
}

COMPARISON_JUMP = {
    'eq': 'JEQ',
    'gt': 'JGT',
    'lt': 'JLT',
}

# Flush the buffer to the sink once it holds this many lines
FLUSH_THRESHOLD = 4096


def _a(address) -> AInstruction:
    return AInstruction(address)


def _c(comp: str, dest: Optional[str] = None, jump: Optional[str] = None) -> CInstruction:
    return CInstruction(comp, dest, jump)


def _l(label: str) -> LabelInstruction:
    return LabelInstruction(label)


def emitter(method):
    """Wrap a write_* method with the sticky error and closed checks."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self.error is not None:
            raise self.error
        if self.closed:
            raise TranslationError("code writer is closed")
        try:
            return method(self, *args, **kwargs)
        except TranslationError as e:
            self.error = e
            raise
    return wrapper


class CodeWriter:
    """Translates VM commands into Hack assembly and writes them to out."""

    def __init__(self, out: TextIO, annotate: bool = False):
        self.out = out
        self.annotate = annotate  # Emit // comments for modules and commands

        self.buffer: List[str] = []
        self.filename = ""
        self.module_name = ""
        self.function_name: Optional[str] = None
        self.error: Optional[TranslationError] = None
        self.closed = False

        self._label_count = 0
        self._label_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _commit(self, code: List[Instruction], comment: Optional[str] = None):
        """Append a complete template to the buffer."""
        if comment is not None and self.annotate:
            self.buffer.append(f"// {comment}")
        self.buffer.extend(str(inst) for inst in code)
        if len(self.buffer) >= FLUSH_THRESHOLD:
            self._flush()

    def _flush(self):
        if not self.buffer:
            return
        text = "\n".join(self.buffer) + "\n"
        try:
            self.out.write(text)
            self.out.flush()
        except (OSError, ValueError) as e:
            # ValueError: I/O operation on closed file
            raise OutputWriteError(f"error writing assembly output: {e}") from e
        self.buffer = []

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def _next_index(self) -> int:
        """Take the next value of the run-wide label counter."""
        with self._label_lock:
            index = self._label_count
            self._label_count += 1
        return index

    def _new_label(self) -> str:
        return f"{LABEL_PREFIX}_{self._next_index()}"

    def _return_label(self, function_name: str) -> str:
        return f"{function_name}{RETURN_LABEL_INFIX}{self._next_index()}"

    def scoped_label(self, label: str) -> str:
        """Name of a VM label inside the current function (f$label)."""
        if self.function_name:
            return f"{self.function_name}${label}"
        return label

    def _check_symbol(self, name: str, what: str):
        if not is_valid_symbol(name):
            raise MalformedCommandError(f"invalid {what}: {name}", self.filename or "<input>")

    def _check_definition(self, name: str, label: str, what: str):
        """Reject a user definition whose emitted label is a generated one."""
        if GENERATED_LABEL_PATTERN.fullmatch(label):
            raise MalformedCommandError(
                f"reserved {what}: {name}", self.filename or "<input>"
            )

    # ------------------------------------------------------------------
    # Stack primitives
    # ------------------------------------------------------------------

    @staticmethod
    def _push_d() -> List[Instruction]:
        """*SP = D; SP++"""
        return [_a(SP), _c('M', 'A'), _c('D', 'M'), _a(SP), _c('M+1', 'M')]

    @staticmethod
    def _pop_d() -> List[Instruction]:
        """SP--; D = *SP"""
        return [_a(SP), _c('M-1', 'AM'), _c('M', 'D')]

    @staticmethod
    def _top() -> List[Instruction]:
        """A = SP - 1 (address of the top of the stack)"""
        return [_a(SP), _c('M-1', 'A')]

    # ------------------------------------------------------------------
    # Module context
    # ------------------------------------------------------------------

    @emitter
    def set_file_name(self, filename: str):
        """Start a new source module; statics are named after its base name."""
        self.filename = filename
        self.module_name = PurePath(filename).stem
        self.function_name = None
        if self.annotate:
            self._commit([], comment=filename)

    @emitter
    def write_comment(self, comment: str):
        """Write a // comment line (only when annotating)."""
        self._commit([], comment=comment)

    # ------------------------------------------------------------------
    # Arithmetic / logical
    # ------------------------------------------------------------------

    @emitter
    def write_arithmetic(self, operator: str):
        """Write add, sub, neg, eq, gt, lt, and, or, not."""
        if operator in UNARY_OPS:
            code = self._top() + [_c(UNARY_COMP[operator], 'M')]
        elif operator in BINARY_OPS:
            code = self._pop_d() + self._top() + [_c(BINARY_COMP[operator], 'M')]
        elif operator in COMPARISON_OPS:
            code = self._compare(operator)
        else:
            raise UnknownCommandError(f"unknown command: {operator}", self.filename or "<input>")
        self._commit(code, comment=operator)

    def _compare(self, operator: str) -> List[Instruction]:
        if_true = self._new_label()
        done = self._new_label()
        return (
            self._pop_d()
            + self._top()
            + [_c('M-D', 'D'), _a(if_true), _c('D', jump=COMPARISON_JUMP[operator])]
            + self._top()
            + [_c(str(FALSE), 'M'), _a(done), _c('0', jump='JMP'), _l(if_true)]
            + self._top()
            + [_c(str(TRUE), 'M'), _l(done)]
        )

    # ------------------------------------------------------------------
    # Push / pop
    # ------------------------------------------------------------------

    @emitter
    def write_push_pop(self, command_type: CommandType, segment: str, index: int):
        """Write a push or pop command."""
        if command_type == CommandType.PUSH:
            code = self._push(segment, index)
        elif command_type == CommandType.POP:
            code = self._pop(segment, index)
        else:
            raise UnknownCommandError(f"unknown command: {command_type}", self.filename or "<input>")
        verb = 'push' if command_type == CommandType.PUSH else 'pop'
        self._commit(code, comment=f"{verb} {segment} {index}")

    def write_push(self, segment: str, index: int):
        self.write_push_pop(CommandType.PUSH, segment, index)

    def write_pop(self, segment: str, index: int):
        self.write_push_pop(CommandType.POP, segment, index)

    def _check_segment(self, segment: str, index: int):
        seg = get_segment(segment)
        if seg is None:
            raise UnknownSegmentError(f"unknown segment: {segment}", self.filename or "<input>")
        if not seg.check_index(index):
            raise InvalidOperandError(
                f"index out of range for {segment} segment: {index}", self.filename or "<input>"
            )
        if seg.mode == AddressMode.STATIC and not is_valid_symbol(self._static_symbol(index)):
            raise MalformedCommandError(
                f"module name cannot be used for static symbols: {self.module_name!r}",
                self.filename or "<input>",
            )
        return seg

    def _static_symbol(self, index: int) -> str:
        return f"{self.module_name}.{index}"

    def _push(self, segment: str, index: int) -> List[Instruction]:
        seg = self._check_segment(segment, index)
        if seg.mode == AddressMode.IMMEDIATE:
            load = [_a(index), _c('A', 'D')]
        elif seg.mode == AddressMode.INDIRECT:
            load = [_a(index), _c('A', 'D'), _a(seg.register), _c('D+M', 'A'), _c('M', 'D')]
        elif seg.mode == AddressMode.DIRECT:
            load = [_a(seg.base + index), _c('M', 'D')]
        else:
            load = [_a(self._static_symbol(index)), _c('M', 'D')]
        return load + self._push_d()

    def _pop(self, segment: str, index: int) -> List[Instruction]:
        seg = self._check_segment(segment, index)
        if seg.mode == AddressMode.IMMEDIATE:
            raise UnknownSegmentError("cannot pop to constant segment", self.filename or "<input>")
        if seg.mode == AddressMode.INDIRECT:
            return (
                [_a(index), _c('A', 'D'), _a(seg.register), _c('D+M', 'D'),
                 _a(ADDRESS_REGISTER), _c('D', 'M')]
                + self._pop_d()
                + [_a(ADDRESS_REGISTER), _c('M', 'A'), _c('D', 'M')]
            )
        if seg.mode == AddressMode.DIRECT:
            target = seg.base + index
        else:
            target = self._static_symbol(index)
        return self._pop_d() + [_a(target), _c('D', 'M')]

    # ------------------------------------------------------------------
    # Program flow
    # ------------------------------------------------------------------

    @emitter
    def write_label(self, label: str):
        """Write a label, scoped to the current function."""
        self._check_symbol(label, "label")
        scoped = self.scoped_label(label)
        self._check_definition(label, scoped, "label")
        self._commit([_l(scoped)], comment=f"label {label}")

    @emitter
    def write_goto(self, label: str):
        """Write an unconditional jump to a scoped label."""
        self._check_symbol(label, "label")
        code = [_a(self.scoped_label(label)), _c('0', jump='JMP')]
        self._commit(code, comment=f"goto {label}")

    @emitter
    def write_if(self, label: str):
        """Pop the stack and jump to a scoped label if the value is not zero."""
        self._check_symbol(label, "label")
        code = self._pop_d() + [_a(self.scoped_label(label)), _c('D', jump='JNE')]
        self._commit(code, comment=f"if-goto {label}")

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    @emitter
    def write_function(self, function_name: str, num_locals: int):
        """Write a function entry point and clear its locals."""
        self._check_symbol(function_name, "function name")
        self._check_definition(function_name, function_name, "function name")
        code: List[Instruction] = [_l(function_name)]
        for _ in range(num_locals):
            code += [_a(SP), _c('M', 'A'), _c('0', 'M'), _a(SP), _c('M+1', 'M')]
        self.function_name = function_name
        self._commit(code, comment=f"function {function_name} {num_locals}")

    @emitter
    def write_call(self, function_name: str, num_args: int):
        """Write a call: save the caller's frame and jump to function_name."""
        self._commit(self._call(function_name, num_args),
                     comment=f"call {function_name} {num_args}")

    def _call(self, function_name: str, num_args: int) -> List[Instruction]:
        self._check_symbol(function_name, "function name")
        if not 0 <= num_args <= MAX_CONSTANT - FRAME_SIZE:
            raise InvalidOperandError(
                f"argument count out of range: {num_args}", self.filename or "<input>"
            )

        return_label = self._return_label(function_name)
        code = [_a(return_label), _c('A', 'D')] + self._push_d()
        for reg in SAVED_POINTERS:
            code += [_a(reg), _c('M', 'D')] + self._push_d()
        code += [
            # ARG = SP - n - 5
            _a(SP), _c('M', 'D'), _a(num_args + FRAME_SIZE), _c('D-A', 'D'),
            _a(ARG), _c('D', 'M'),
            # LCL = SP
            _a(SP), _c('M', 'D'), _a(LCL), _c('D', 'M'),
            _a(function_name), _c('0', jump='JMP'),
            _l(return_label),
        ]
        return code

    @emitter
    def write_return(self):
        """Write a return: restore the caller's frame and jump back."""
        code = [
            # FRAME = LCL
            _a(LCL), _c('M', 'D'), _a(FRAME_REGISTER), _c('D', 'M'),
            # RET = *(FRAME - 5)
            _a(RETURN_ADDRESS_OFFSET), _c('D-A', 'A'), _c('M', 'D'),
            _a(RETURN_REGISTER), _c('D', 'M'),
        ]
        # *ARG = pop()
        code += self._pop_d() + [_a(ARG), _c('M', 'A'), _c('D', 'M')]
        # SP = ARG + 1
        code += [_a(ARG), _c('M+1', 'D'), _a(SP), _c('D', 'M')]
        for reg, offset in RESTORE_OFFSETS:
            code += [
                _a(FRAME_REGISTER), _c('M', 'D'), _a(offset), _c('D-A', 'A'),
                _c('M', 'D'), _a(reg), _c('D', 'M'),
            ]
        code += [_a(RETURN_REGISTER), _c('M', 'A'), _c('0', jump='JMP')]
        self._commit(code, comment="return")

    # ------------------------------------------------------------------
    # Bootstrap / finalization
    # ------------------------------------------------------------------

    @emitter
    def write_init(self, entry_point: str = DEFAULT_ENTRY_POINT):
        """Write the bootstrap: SP = 256, then call entry_point with no arguments."""
        code = [_a(STACK_BASE), _c('A', 'D'), _a(SP), _c('D', 'M')]
        code += self._call(entry_point, 0)
        self._commit(code, comment=f"bootstrap: call {entry_point} 0")

    def close(self):
        """Write the final infinite loop and flush everything to out.

        The sink itself is left open; it belongs to the caller.
        """
        if self.closed:
            raise TranslationError("code writer is already closed")
        self.closed = True
        if self.error is not None:
            raise self.error
        try:
            self._commit([_l(END_LABEL), _a(END_LABEL), _c('0', jump='JMP')], comment="end")
            self._flush()
        except TranslationError as e:
            self.error = e
            raise
