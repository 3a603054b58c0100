"""Hack assembly generation from VM commands."""

from .codegen import CodeWriter

__all__ = ['CodeWriter']
