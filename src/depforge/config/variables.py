"""
Build descriptor variables.

This module reads per-directory build descriptors and answers variable
lookups for a build unit. A descriptor is a makefile fragment:

    MODULE    = foo.dll
    IMPORTS   = uuid ole32
    C_SRCS    = \\
        foo.c \\
        bar.c

    ### Dependencies

Only assignments are read; command lines (starting with a tab), comments and
everything after the dependency separator are ignored. A later assignment
replaces an earlier one.

Lookup order for a name is: command-line variables, the unit's own
variables, then the top-level descriptor's variables.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..errors import DepforgeError
from ..line_reader import read_lines

DEPENDENCY_SEPARATOR = "### Dependencies"

# Guards against self-referencing variables like "A = $(A) b"
MAX_EXPANSIONS = 1000


class DescriptorError(DepforgeError):
    """Exception raised for build descriptor errors."""

    pass


def parse_assignment(text: str) -> Optional[Tuple[str, str]]:
    """
    Parse a 'NAME = value' assignment.

    Args:
        text: Line text without leading whitespace

    Returns:
        (name, value) tuple, or None if the text is not an assignment

    Example:
        parse_assignment("MODULE = foo.dll") -> ("MODULE", "foo.dll")
        parse_assignment("all: foo") -> None
    """
    pos = 0
    while pos < len(text) and (text[pos].isalnum() or text[pos] == "_"):
        pos += 1
    if pos == 0:
        return None  # not a variable
    name = text[:pos]

    rest = text[pos:].lstrip()
    if not rest.startswith("="):
        return None  # not an assignment
    return name, rest[1:].lstrip()


def parse_makeflags(flags: str) -> Dict[str, str]:
    """
    Extract variable assignments from a MAKEFLAGS-style string.

    Words are separated by whitespace; a backslash escapes the next character.

    Args:
        flags: MAKEFLAGS value (e.g. "-j4 -- CC=gcc CFLAGS=-O2\\ -g")

    Returns:
        Dictionary of assigned variables
    """
    assignments: Dict[str, str] = {}
    pos = 0
    while pos < len(flags):
        while pos < len(flags) and flags[pos].isspace():
            pos += 1
        word = []
        while pos < len(flags) and not flags[pos].isspace():
            if flags[pos] == "\\" and pos + 1 < len(flags):
                pos += 1
            word.append(flags[pos])
            pos += 1
        if word:
            assignment = parse_assignment("".join(word))
            if assignment:
                assignments[assignment[0]] = assignment[1]
    return assignments


def read_descriptor(path: Union[str, Path]) -> Dict[str, str]:
    """
    Read the variable assignments of a build descriptor.

    Args:
        path: Descriptor file path

    Returns:
        Dictionary of variables in assignment order

    Raises:
        DescriptorError: If the file can't be opened
    """
    variables: Dict[str, str] = {}
    try:
        stream = open(path, "r", encoding="utf-8", errors="surrogateescape")
    except OSError as e:
        raise DescriptorError(f"open: {e.strerror}", str(path)) from e

    with stream:
        for _line_no, buffer in read_lines(stream):
            if buffer.startswith(DEPENDENCY_SEPARATOR):
                break
            if buffer.startswith("\t"):
                continue  # command
            text = buffer.lstrip()
            if text.startswith("#"):
                continue  # comment
            assignment = parse_assignment(text)
            if assignment:
                variables[assignment[0]] = assignment[1]
    return variables


class VariableStore:
    """
    Variable scope of one build unit.

    Example usage:
        top = VariableStore.from_descriptor(Path("Makefile"))
        store = VariableStore.from_descriptor(Path("dlls/foo/Makefile.in"), parent=top)
        sources = store.get_list("C_SRCS")
    """

    def __init__(
        self,
        variables: Optional[Dict[str, str]] = None,
        parent: Optional["VariableStore"] = None,
        overrides: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize variable scope.

        Args:
            variables: The unit's own variables
            parent: Top-level scope consulted when a name is not defined here
            overrides: Command-line variables, consulted first (shared with parent
                when omitted)
        """
        self.variables: Dict[str, str] = dict(variables or {})
        self.parent = parent
        if overrides is None:
            overrides = parent.overrides if parent is not None else {}
        self.overrides = overrides

    @classmethod
    def from_descriptor(
        cls,
        path: Union[str, Path],
        parent: Optional["VariableStore"] = None,
        overrides: Optional[Dict[str, str]] = None,
    ) -> "VariableStore":
        """Create a scope from a descriptor file."""
        return cls(read_descriptor(path), parent=parent, overrides=overrides)

    def get(self, name: str) -> Optional[str]:
        """Get the raw (unexpanded) value of a variable."""
        if name in self.overrides:
            return self.overrides[name]
        if name in self.variables:
            return self.variables[name]
        if self.parent is not None and name in self.parent.variables:
            return self.parent.variables[name]
        return None

    def set(self, name: str, value: str) -> None:
        """Define a variable in this scope, replacing any previous value."""
        self.variables[name] = value

    def expand(self, value: str) -> str:
        """
        Expand $(NAME) references in a value.

        ${NAME} references are kept verbatim and $$ is left as is.

        Args:
            value: Raw value

        Returns:
            Expanded value

        Raises:
            DescriptorError: On syntax errors or pattern replacements
        """
        expanded = value
        pos = 0
        expansions = 0

        while True:
            pos = expanded.find("$", pos)
            if pos == -1:
                return expanded

            marker = expanded[pos + 1:pos + 2]
            if marker == "(":
                end = expanded.find(")", pos + 2)
                if end == -1:
                    raise DescriptorError(f"syntax error in '{expanded}'")
                name = expanded[pos + 2:end]
                if ":" in name:
                    raise DescriptorError(f"pattern replacement not supported for '{name}'")
                expansions += 1
                if expansions > MAX_EXPANSIONS:
                    raise DescriptorError(f"recursive variable expansion in '{value}'")
                # rescan the substituted text
                expanded = expanded[:pos] + (self.get(name) or "") + expanded[end + 1:]
            elif marker == "{":
                end = expanded.find("}", pos + 2)
                if end == -1:
                    raise DescriptorError(f"syntax error in '{expanded}'")
                pos = end + 1
            elif marker == "$":
                pos += 2
            else:
                raise DescriptorError(f"syntax error in '{expanded}'")

    def get_expanded(self, name: str) -> Optional[str]:
        """
        Get the expanded value of a variable.

        Returns:
            Expanded value, or None if undefined or only whitespace
        """
        value = self.get(name)
        if value is None:
            return None
        value = self.expand(value)
        if not value.strip():
            return None
        return value

    def get_list(self, name: str) -> List[str]:
        """Get the expanded value of a variable split on whitespace."""
        value = self.get_expanded(name)
        return value.split() if value else []

    def get_file_local_list(self, filename: str, name: str) -> List[str]:
        """
        Get a per-file variable, named '<file>_<NAME>' with non-alphanumerics as '_'.

        Example:
            get_file_local_list("foo.spec", "IMPORTS") reads foo_spec_IMPORTS
        """
        var = "".join(c if c.isalnum() else "_" for c in f"{filename}_{name}")
        return self.get_list(var)
