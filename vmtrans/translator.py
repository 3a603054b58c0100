"""
VM Translator.

Coordinates parsing and code generation: each module is parsed line by
line and every command is handed to the single CodeWriter of the run.
"""

import sys
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, TextIO, Union

from .codegen.codegen import CodeWriter, DEFAULT_ENTRY_POINT
from .errors import TranslationError
from .parser import Parser
from .parser.commands import Command, CommandType


class VMTranslator:
    """Translates one or more VM modules into a single Hack assembly stream."""

    def __init__(self, out: TextIO, bootstrap: bool = True,
                 entry_point: str = DEFAULT_ENTRY_POINT,
                 verbose: bool = False, annotate: bool = False):
        self.writer = CodeWriter(out, annotate=annotate)
        self.bootstrap = bootstrap
        self.entry_point = entry_point
        self.verbose = verbose
        self.initialized = False
        self.modules_translated = 0

        self._handlers: Dict[CommandType, Callable[[Command], None]] = {
            CommandType.ARITHMETIC: lambda c: self.writer.write_arithmetic(c.arg1),
            CommandType.PUSH: lambda c: self.writer.write_push_pop(c.command_type, c.arg1, c.arg2),
            CommandType.POP: lambda c: self.writer.write_push_pop(c.command_type, c.arg1, c.arg2),
            CommandType.LABEL: lambda c: self.writer.write_label(c.arg1),
            CommandType.GOTO: lambda c: self.writer.write_goto(c.arg1),
            CommandType.IF_GOTO: lambda c: self.writer.write_if(c.arg1),
            CommandType.FUNCTION: lambda c: self.writer.write_function(c.arg1, c.arg2),
            CommandType.CALL: lambda c: self.writer.write_call(c.arg1, c.arg2),
            CommandType.RETURN: lambda c: self.writer.write_return(),
        }

    def log(self, message: str):
        """Print log message if verbose mode is enabled."""
        if self.verbose:
            print(f"[vmtrans] {message}", file=sys.stderr)

    @property
    def current_function(self) -> Optional[str]:
        """Name of the function whose body is being translated, if any."""
        return self.writer.function_name

    def init(self):
        """Emit the bootstrap code once, before any module."""
        if self.initialized:
            return
        self.initialized = True
        if self.bootstrap:
            self.log(f"Writing bootstrap (entry point {self.entry_point})")
            self.writer.write_init(self.entry_point)

    def translate(self, filename: str, source: Union[str, Iterable[str]]) -> int:
        """
        Translate one VM module.

        Args:
            filename: Module file name; its base name prefixes static symbols
            source: Module text, or an iterable of its lines

        Returns:
            Number of VM commands translated
        """
        self.init()
        self.log(f"Translating {filename}...")
        self.writer.set_file_name(filename)

        count = 0
        for command in Parser(source, filename):
            self.translate_command(command)
            count += 1

        self.modules_translated += 1
        self.log(f"  {count} commands")
        return count

    def translate_command(self, command: Command):
        """Hand one parsed command to the code writer."""
        handler = self._handlers.get(command.command_type)
        if handler is None:
            raise TranslationError(f"unknown command: {command}")
        if command.command_type == CommandType.FUNCTION:
            self.log(f"  function {command.arg1}")
        handler(command)

    def translate_file(self, input_path: Union[str, Path]) -> bool:
        """
        Translate one .vm file.

        Returns:
            True if translation succeeded, False otherwise
        """
        try:
            self.log(f"Reading {input_path}...")
            with open(input_path, 'r', encoding='utf-8') as f:
                self.translate(str(input_path), f)
            return True

        except FileNotFoundError:
            print(f"Error: File not found: {input_path}", file=sys.stderr)
            return False
        except SyntaxError as e:
            print(f"Syntax error: {e}", file=sys.stderr)
            return False
        except TranslationError as e:
            print(f"Translation error: {e}", file=sys.stderr)
            return False
        except OSError as e:
            print(f"Error reading {input_path}: {e}", file=sys.stderr)
            return False

    def close(self):
        """Finish the output: bootstrap if nothing was translated, then the end loop."""
        self.init()
        self.writer.close()
        self.log(f"Translation finished: {self.modules_translated} module(s)")

    def __enter__(self) -> 'VMTranslator':
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
