"""VM Parser - Builds Command objects from VM source lines."""

from .parser import Parser
from .commands import *

__all__ = ['Parser']
