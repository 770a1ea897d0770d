"""Export utilities: terminal rendering of scan events."""

from .console import ConsoleReport

__all__ = ["ConsoleReport"]
