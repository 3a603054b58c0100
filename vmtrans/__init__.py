"""
VM Translator (vmtrans) - Translates stack VM code to Hack assembly.

This package provides the command parser, the Hack code writer, and a
driver that lowers any number of VM modules into one assembly stream.
"""

__version__ = "0.1.0"
__author__ = "vmtrans Project"

from .translator import VMTranslator
from .codegen import CodeWriter
from .parser import Parser

__all__ = ['VMTranslator', 'CodeWriter', 'Parser']
