"""
VM Lexer - Tokenizes VM source code into tokens.

Handles:
- Line comments (// to end of line)
- Whitespace separated words
- Integer literals (including a leading '-', rejected later by the parser)
- One command per line; blank and comment-only lines yield no tokens
"""

import re
from enum import Enum, auto
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Union

COMMENT_PREFIX = '//'

NUMBER_PATTERN = re.compile(r'-?[0-9]+')
WORD_PATTERN = re.compile(r'\S+')


class TokenType(Enum):
    """VM token types."""
    SYMBOL = auto()      # opcode, segment, label or function name
    NUMBER = auto()      # 123, -1


@dataclass
class Token:
    """Represents a single token."""
    type: TokenType
    value: str
    line: int
    column: int

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


class Lexer:
    """Tokenizes VM source code."""

    def __init__(self, source: Union[str, Iterable[str]], filename: str = "<input>"):
        if isinstance(source, str):
            source = source.splitlines()
        self.source = source
        self.filename = filename

    def tokenize_line(self, text: str, line: int) -> List[Token]:
        """Tokenize a single source line. Blank and comment-only lines give []."""
        pos = text.find(COMMENT_PREFIX)
        if pos >= 0:
            text = text[:pos]

        tokens = []
        for match in WORD_PATTERN.finditer(text):
            word = match.group()
            if NUMBER_PATTERN.fullmatch(word):
                tok_type = TokenType.NUMBER
            else:
                tok_type = TokenType.SYMBOL
            tokens.append(Token(tok_type, word, line, match.start() + 1))
        return tokens

    def lines(self) -> Iterator[List[Token]]:
        """Yield the tokens of each line that holds a command."""
        for line_no, text in enumerate(self.source, start=1):
            tokens = self.tokenize_line(text.rstrip('\r\n'), line_no)
            if tokens:
                yield tokens
