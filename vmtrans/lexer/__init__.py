"""VM Lexer - splits VM source lines into tokens."""

from .lexer import Lexer, Token, TokenType

__all__ = ['Lexer', 'Token', 'TokenType']
