"""
Exceptions raised while translating VM code.

Parse errors also derive from SyntaxError so callers that already catch
SyntaxError for malformed source keep working.
"""


class TranslationError(Exception):
    """Base class for every error raised by the translator."""


class ParseError(TranslationError, SyntaxError):
    """A VM source line could not be parsed into a command."""

    def __init__(self, message: str, filename: str = "<input>",
                 line: int = 0, column: int = 0):
        self.msg_text = message
        self.source_file = filename
        self.source_line = line
        self.source_column = column
        location = f"{filename}:{line}:{column}" if line else filename
        super().__init__(f"{location}: {message}")

    def __str__(self):
        return self.args[0]


class UnknownCommandError(ParseError):
    """The first token is not a VM opcode."""


class MalformedCommandError(ParseError):
    """Wrong number of tokens for the command, or an unusable symbol."""


class UnknownSegmentError(ParseError):
    """Push or pop names a segment outside the fixed set."""


class InvalidOperandError(ParseError):
    """A numeric operand is missing, negative, or out of range."""


class OutputWriteError(TranslationError, OSError):
    """Writing to the output sink failed."""
