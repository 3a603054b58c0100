"""
VM Parser - Turns VM source lines into Command objects.

One command per line. Comments and blank lines produce nothing. Each line
is validated completely before its command is returned, so the code writer
only ever sees well-formed commands.

A Parser reads its source sequentially and is not safe to share between
threads.
"""

from typing import Iterable, Iterator, List, Optional, Type, Union

from ..errors import (
    ParseError, UnknownCommandError, MalformedCommandError,
    UnknownSegmentError, InvalidOperandError,
)
from ..hack.symbols import SEGMENTS, is_valid_symbol
from ..lexer import Lexer, Token, TokenType
from .commands import (
    Command, CommandType, ArithmeticCommand, PushCommand, PopCommand,
    LabelCommand, GotoCommand, IfGotoCommand, FunctionCommand, CallCommand,
    ReturnCommand, OPCODES, ARITY,
)


class Parser:
    """Parses VM source into commands, one line at a time."""

    def __init__(self, source: Union[str, Iterable[str]], filename: str = "<input>"):
        self.filename = filename
        self.lexer = Lexer(source, filename)
        self.current_command: Optional[Command] = None

    def error(self, error_class: Type[ParseError], message: str, token: Token):
        """Raise a parse error pointing at token."""
        raise error_class(message, self.filename, token.line, token.column)

    def parse(self) -> List[Command]:
        """Parse the entire source."""
        return list(self)

    def __iter__(self) -> Iterator[Command]:
        for tokens in self.lexer.lines():
            self.current_command = self.parse_tokens(tokens)
            yield self.current_command

    def parse_line(self, text: str, line: int = 0) -> Optional[Command]:
        """Parse one line of source. Returns None for blank or comment lines."""
        tokens = self.lexer.tokenize_line(text, line)
        if not tokens:
            return None
        return self.parse_tokens(tokens)

    def parse_tokens(self, tokens: List[Token]) -> Command:
        """Build a command from the tokens of one line."""
        opcode = tokens[0]
        cmd_type = OPCODES.get(opcode.value)
        if cmd_type is None:
            self.error(UnknownCommandError, f"unknown command: {opcode.value}", opcode)

        expected = ARITY[cmd_type]
        if len(tokens) != expected:
            self.error(
                MalformedCommandError,
                f"invalid command: '{opcode.value}' takes {expected - 1} "
                f"operand(s), got {len(tokens) - 1}: "
                f"{' '.join(t.value for t in tokens)}",
                opcode,
            )

        line = opcode.line

        if cmd_type == CommandType.ARITHMETIC:
            return ArithmeticCommand(operator=opcode.value, line=line)
        if cmd_type == CommandType.RETURN:
            return ReturnCommand(line=line)

        if cmd_type in (CommandType.LABEL, CommandType.GOTO, CommandType.IF_GOTO):
            label = self._parse_symbol(tokens[1])
            if cmd_type == CommandType.LABEL:
                return LabelCommand(label=label, line=line)
            if cmd_type == CommandType.GOTO:
                return GotoCommand(label=label, line=line)
            return IfGotoCommand(label=label, line=line)

        if cmd_type in (CommandType.PUSH, CommandType.POP):
            segment = self._parse_segment(tokens[1], cmd_type)
            index = self._parse_number(tokens[2])
            if cmd_type == CommandType.PUSH:
                return PushCommand(segment=segment, index=index, line=line)
            return PopCommand(segment=segment, index=index, line=line)

        name = self._parse_symbol(tokens[1])
        count = self._parse_number(tokens[2])
        if cmd_type == CommandType.FUNCTION:
            return FunctionCommand(name=name, num_locals=count, line=line)
        return CallCommand(name=name, num_args=count, line=line)

    def _parse_segment(self, token: Token, cmd_type: CommandType) -> str:
        if token.value not in SEGMENTS:
            self.error(UnknownSegmentError, f"unknown segment: {token.value}", token)
        if cmd_type == CommandType.POP and token.value == 'constant':
            self.error(UnknownSegmentError, "cannot pop to constant segment", token)
        return token.value

    def _parse_number(self, token: Token) -> int:
        # Negative literals are lexed as NUMBER and rejected here
        if token.type != TokenType.NUMBER or token.value.startswith('-'):
            self.error(InvalidOperandError, f"not a non-negative integer: {token.value}", token)
        return int(token.value)

    def _parse_symbol(self, token: Token) -> str:
        if not is_valid_symbol(token.value):
            self.error(MalformedCommandError, f"invalid symbol: {token.value}", token)
        return token.value
