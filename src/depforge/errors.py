"""
Exceptions raised by the dependency graph engine.

Every fatal condition aborts the whole run. The exceptions carry the file
and line the problem was found at, plus optional provenance notes, so the
CLI can print a compiler-style diagnostic:

    dlls/foo/foo.c:12: error: bar.h: No such file or directory
    dlls/foo/foo.h:3: note: foo.h was first included here
"""

from typing import List, Optional


class DepforgeError(Exception):
    """Base class for fatal dependency generation errors."""

    def __init__(
        self,
        message: str,
        filename: Optional[str] = None,
        line: int = 0,
        notes: Optional[List[str]] = None,
    ):
        """
        Initialize error.

        Args:
            message: Error description
            filename: File the error was detected in (if known)
            line: Line number in filename (0 if unknown)
            notes: Additional diagnostic lines printed after the error
        """
        super().__init__(message)
        self.message = message
        self.filename = filename
        self.line = line
        self.notes = list(notes or [])

    def location(self) -> str:
        """Get the 'file:line:' prefix, or the program name if no file is known."""
        if not self.filename:
            return "depforge:"
        if self.line:
            return f"{self.filename}:{self.line}:"
        return f"{self.filename}:"

    def format(self) -> str:
        """Format the error and its notes as diagnostic lines."""
        lines = [f"{self.location()} error: {self.message}"]
        lines.extend(self.notes)
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format()


class DirectiveError(DepforgeError):
    """Raised for a malformed directive (unterminated quote or bracket)."""
    pass


class MissingSourceError(DepforgeError):
    """Raised when a source declared in a build descriptor cannot be opened."""
    pass


class MissingIncludeError(DepforgeError):
    """Raised when a non-system include cannot be resolved."""
    pass


class IncompatibleHeaderError(DepforgeError):
    """Raised when a system header is used from alternate runtime mode."""
    pass


class IncludeOrderError(DepforgeError):
    """Raised when the configuration header is not the first include."""
    pass


class RuntimeConflictError(DepforgeError):
    """Raised when a unit imports more than one C runtime library."""
    pass


class OutputError(DepforgeError):
    """Raised when writing an output file fails."""
    pass


class IncludeGraphError(DepforgeError):
    """Raised when an include node is not attached to a parsed including file."""
    pass
