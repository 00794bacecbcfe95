"""Error taxonomy for the content assist engine.

Only ParseError ever reaches the caller of a request, and then only as a
diagnostic. The other errors are raised and caught inside the engine where a
safe fallback exists.
"""

from typing import Optional


class AssistError(Exception):
    """Base class for all engine errors."""


class ParseError(AssistError):
    """Source could not be turned into a syntax tree."""

    def __init__(self, message: str, line: int = 1, column: int = 0):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        return f"{self.message} (line {self.line}, column {self.column})"


class TypeResolutionFallback(AssistError):
    """A type name could not be resolved; callers substitute Object."""

    def __init__(self, name: str):
        super().__init__(f"Cannot resolve type '{name}'")
        self.name = name


class ImportMalformed(AssistError):
    """An index entry is not a valid signature or type reference."""

    def __init__(self, entry: str, reason: str, path: Optional[str] = None):
        where = f" at {path}" if path else ""
        super().__init__(f"Malformed index entry{where}: {entry!r} ({reason})")
        self.entry = entry
        self.reason = reason
        self.path = path


class CycleDetected(AssistError):
    """A prototype name was seen twice on the current lookup path."""

    def __init__(self, name: str):
        super().__init__(f"Prototype cycle through '{name}'")
        self.name = name
