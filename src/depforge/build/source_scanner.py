"""
Directive extraction from source files.

This module handles:
- Reading source text with backslash-newline continuation joining
- Recognizing the dependency directives of each supported file kind
- Recording classification flags set by `#pragma makedep` directives

Supported file kinds:
- C-family (.c .h .inl .l .m .rh .x .y): #include, #import (.m only), #pragma
- Interface definitions (.idl): import, importlib, cpp_quote("#include ...")
- Resource scripts (.rc): C-family directives plus /* @makedep: name */ comments
- Template inputs (.in): implicit config.h dependency, manual page header
- Font definitions (.sfd): #pragma directives embedded in the UComments field
"""

from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import Iterable, List, Optional

from ..errors import DirectiveError
from ..line_reader import read_lines


class IncludeKind(Enum):
    """How a dependency was referenced."""

    NORMAL = "normal"                       # #include "foo.h"
    SYSTEM = "system"                       # #include <foo.h>
    IMPORT = "import"                       # idl import "foo.idl"
    IMPORTLIB = "importlib"                 # idl importlib("foo.tlb")
    CPP_QUOTE = "cpp_quote"                 # idl cpp_quote("#include \"foo.h\"")
    CPP_QUOTE_SYSTEM = "cpp_quote_system"   # idl cpp_quote("#include <foo.h>")


class SourceFlags(IntFlag):
    """Classification flags of a source file."""

    NONE = 0
    GENERATED = 0x000001       # generated file
    INSTALL = 0x000002         # file to install
    IDL_PROXY = 0x000100       # generates a proxy (_p.c) file
    IDL_CLIENT = 0x000200      # generates a client (_c.c) file
    IDL_SERVER = 0x000400      # generates a server (_s.c) file
    IDL_IDENT = 0x000800       # generates an ident (_i.c) file
    IDL_REGISTER = 0x001000    # generates a registration (_r.res) file
    IDL_TYPELIB = 0x002000     # generates a typelib (_l.res) file
    IDL_REGTYPELIB = 0x004000  # generates a registered typelib (_t.res) file
    IDL_HEADER = 0x008000      # generates a header (.h) file
    RC_PO = 0x010000           # rc file contains translations
    C_IMPLIB = 0x020000        # file is part of an import library
    C_UNIX = 0x040000          # file is part of a Unix library
    SFD_FONTS = 0x080000       # sfd file generates bitmap fonts


IDL_PRAGMA_FLAGS = {
    "header": SourceFlags.IDL_HEADER,
    "proxy": SourceFlags.IDL_PROXY,
    "client": SourceFlags.IDL_CLIENT,
    "server": SourceFlags.IDL_SERVER,
    "ident": SourceFlags.IDL_IDENT,
    "typelib": SourceFlags.IDL_TYPELIB,
    "register": SourceFlags.IDL_REGISTER,
    "regtypelib": SourceFlags.IDL_REGTYPELIB,
}

# Escaped newline inside the UComments field of a font definition
SFD_NEWLINE_MARKER = "+AAoA"


@dataclass(frozen=True)
class Dependency:
    """One raw reference found inside a source file."""

    line: int
    kind: IncludeKind
    name: str


@dataclass(eq=False)
class SourceRecord:
    """A physical (or synthesized) file with its extracted directives."""

    name: str
    dependencies: List[Dependency] = field(default_factory=list)
    flags: SourceFlags = SourceFlags.NONE
    man_program: Optional[str] = None   # from the .TH line of a .man.in file
    man_section: Optional[str] = None
    fonts: List[str] = field(default_factory=list)  # "name args..." font specs

    def add_dependency(self, name: str, kind: IncludeKind, line: int = 0) -> None:
        """Append a dependency directive."""
        self.dependencies.append(Dependency(line=line, kind=kind, name=name))


class SourceScanner:
    """
    Extracts dependency directives from source text.

    The scanner dispatches on the file extension of the record name and
    appends to the record's dependency list and flags. It never resolves
    anything: names are stored exactly as written.
    """

    # Checked in order, first matching suffix wins
    PARSERS = [
        (".c", "scan_c_file"),
        (".h", "scan_c_file"),
        (".inl", "scan_c_file"),
        (".l", "scan_c_file"),
        (".m", "scan_c_file"),
        (".rh", "scan_c_file"),
        (".x", "scan_c_file"),
        (".y", "scan_c_file"),
        (".idl", "scan_idl_file"),
        (".rc", "scan_rc_file"),
        (".in", "scan_in_file"),
        (".sfd", "scan_sfd_file"),
    ]

    def scan(self, record: SourceRecord, stream: Iterable[str]) -> SourceRecord:
        """
        Scan source text into a record.

        Args:
            record: Record to fill (its name selects the scanner)
            stream: Source text lines

        Returns:
            The same record

        Raises:
            DirectiveError: If a directive is malformed
        """
        for ext, method in self.PARSERS:
            if record.name.endswith(ext):
                getattr(self, method)(record, stream)
                break
        return record

    def scan_c_file(self, record: SourceRecord, stream: Iterable[str]) -> None:
        """Scan a C-family file for preprocessor directives."""
        for line_no, buffer in read_lines(stream):
            self._parse_cpp_directive(record, buffer, line_no)

    def scan_idl_file(self, record: SourceRecord, stream: Iterable[str]) -> None:
        """Scan an interface definition file."""
        for line_no, buffer in read_lines(stream):
            text = buffer.lstrip()

            if text.startswith("importlib"):
                rest = text[9:].lstrip()
                if not rest.startswith("("):
                    continue
                rest = rest[1:].lstrip()
                if not rest.startswith('"'):
                    continue
                end = rest.find('"', 1)
                if end == -1:
                    raise DirectiveError("malformed importlib directive", record.name, line_no)
                record.add_dependency(rest[1:end], IncludeKind.IMPORTLIB, line_no)
                continue

            if text.startswith("import"):
                rest = text[6:].lstrip()
                if not rest.startswith('"'):
                    continue
                end = rest.find('"', 1)
                if end == -1:
                    raise DirectiveError("malformed import directive", record.name, line_no)
                record.add_dependency(rest[1:end], IncludeKind.IMPORT, line_no)
                continue

            if text.startswith("cpp_quote"):
                self._parse_cpp_quote(record, text[9:], line_no)
                continue

            self._parse_cpp_directive(record, text, line_no)

    def scan_rc_file(self, record: SourceRecord, stream: Iterable[str]) -> None:
        """Scan a resource script, including /* @makedep: name */ comments."""
        for line_no, buffer in read_lines(stream):
            text = buffer.lstrip()

            if text.startswith("/*"):
                rest = text[2:].lstrip()
                if not rest.startswith("@makedep:"):
                    continue
                rest = rest[9:].lstrip()
                if rest.startswith('"'):
                    start, end = 1, rest.find('"', 1)
                else:
                    start, end = 0, -1
                    for pos, char in enumerate(rest):
                        if char.isspace() or char == "*":
                            end = pos
                            break
                if end == -1:
                    raise DirectiveError("malformed makedep comment", record.name, line_no)
                record.add_dependency(rest[start:end], IncludeKind.NORMAL, line_no)
                continue

            self._parse_cpp_directive(record, buffer, line_no)

    def scan_in_file(self, record: SourceRecord, stream: Iterable[str]) -> None:
        """Scan a template input file."""
        # make sure it gets rebuilt when the version changes
        record.add_dependency("config.h", IncludeKind.SYSTEM)

        if not record.name.endswith(".man.in"):
            return

        for _line_no, buffer in read_lines(stream):
            if not buffer.startswith(".TH"):
                continue
            words = buffer.split()
            if len(words) < 3:
                continue
            record.man_program = words[1]
            record.man_section = words[2]
            return

    def scan_sfd_file(self, record: SourceRecord, stream: Iterable[str]) -> None:
        """Scan a font definition file for pragmas embedded in UComments."""
        for line_no, buffer in read_lines(stream):
            if not buffer.startswith("UComments:"):
                continue

            text = buffer[10:].lstrip(" ")
            if len(text) > 1 and text.startswith('"') and text.endswith('"'):
                text = text[1:-1]

            for segment in text.split(SFD_NEWLINE_MARKER):
                segment = segment.lstrip()
                if not segment.startswith("#"):
                    continue
                segment = segment[1:].lstrip()
                if segment.startswith("pragma"):
                    self._parse_pragma_directive(record, segment[6:], line_no)
            return

    def _parse_cpp_directive(self, record: SourceRecord, text: str, line_no: int) -> None:
        text = text.lstrip()
        if not text.startswith("#"):
            return
        text = text[1:].lstrip()

        if text.startswith("include"):
            self._parse_include_directive(record, text[7:], line_no)
        elif text.startswith("import") and record.name.endswith(".m"):
            self._parse_include_directive(record, text[6:], line_no)
        elif text.startswith("pragma"):
            self._parse_pragma_directive(record, text[6:], line_no)

    def _parse_include_directive(self, record: SourceRecord, text: str, line_no: int) -> None:
        rest = text.lstrip()
        if not rest or rest[0] not in "\"<":
            return  # computed include, nothing to track
        closing = ">" if rest[0] == "<" else '"'
        end = rest.find(closing, 1)
        if end == -1:
            raise DirectiveError(f"malformed include directive '{text}'", record.name, line_no)
        kind = IncludeKind.SYSTEM if closing == ">" else IncludeKind.NORMAL
        record.add_dependency(rest[1:end], kind, line_no)

    def _parse_cpp_quote(self, record: SourceRecord, text: str, line_no: int) -> None:
        rest = text.lstrip()
        if not rest.startswith("("):
            return
        rest = rest[1:].lstrip()
        if not rest.startswith('"'):
            return
        rest = rest[1:]
        if not rest.startswith("#"):
            return
        rest = rest[1:].lstrip()
        if not rest.startswith("include"):
            return
        rest = rest[7:].lstrip()

        if rest.startswith('\\"'):
            rest, closing = rest[2:], '"'
        elif rest.startswith("<"):
            rest, closing = rest[1:], ">"
        else:
            return

        end = rest.find(closing)
        if end == -1 or (closing == '"' and (end == 0 or rest[end - 1] != "\\")):
            raise DirectiveError(
                "malformed #include directive inside cpp_quote", record.name, line_no
            )
        if closing == '"':
            record.add_dependency(rest[: end - 1], IncludeKind.CPP_QUOTE, line_no)
        else:
            record.add_dependency(rest[:end], IncludeKind.CPP_QUOTE_SYSTEM, line_no)

    def _parse_pragma_directive(self, record: SourceRecord, text: str, line_no: int) -> None:
        """Parse the text following '#pragma'."""
        if not text or not text[0].isspace():
            return
        words = text.split()
        if not words or words[0] != "makedep":
            return

        name = record.name
        for index in range(1, len(words)):
            flag = words[index]

            if flag == "depend":
                for dep in words[index + 1:]:
                    record.add_dependency(dep, IncludeKind.NORMAL, line_no)
                return
            if flag == "install":
                record.flags |= SourceFlags.INSTALL

            if name.endswith(".idl"):
                record.flags |= IDL_PRAGMA_FLAGS.get(flag, SourceFlags.NONE)
            elif name.endswith(".rc"):
                if flag == "po":
                    record.flags |= SourceFlags.RC_PO
            elif name.endswith(".sfd"):
                if flag == "font":
                    parts = text.split(None, index + 1)
                    if len(parts) <= index + 1:
                        raise DirectiveError("malformed font directive", name, line_no)
                    record.fonts.append(parts[index + 1].strip())
                    record.flags |= SourceFlags.SFD_FONTS
                    return
            else:
                if flag == "implib":
                    record.flags |= SourceFlags.C_IMPLIB
                if flag == "unix":
                    record.flags |= SourceFlags.C_UNIX
