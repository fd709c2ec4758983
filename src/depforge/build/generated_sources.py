"""
Generated-source expansion.

Some sources imply other sources that only exist once a generator has run:
an interface definition produces stubs and headers, a grammar produces a
parser, a test directory produces its test list. This module adds those
files to a unit's source list, with the dependencies the generators are
known to emit, so they take part in include resolution and closure like
any declared source.
"""

import logging
from typing import List, Optional, Sequence

from ..config.project import ProjectSettings
from ..path_utils import replace_extension
from .build_unit import BuildUnit, IncludeNode, add_unique
from .include_resolver import IncludeResolver
from .source_registry import SourceRegistry
from .source_scanner import IncludeKind, SourceFlags, SourceRecord

# (flag, stub suffix, fixed dependencies, depends on the interface header)
IDL_STUBS = [
    (SourceFlags.IDL_CLIENT, "_c.c", [], True),
    (SourceFlags.IDL_SERVER, "_s.c", ["wine/exception.h"], True),
    (SourceFlags.IDL_IDENT, "_i.c", ["rpc.h", "rpcndr.h", "guiddef.h"], False),
]

PROXY_HEADERS = ["objbase.h", "rpcproxy.h"]

IDL_RESOURCES = [
    (SourceFlags.IDL_TYPELIB, "_l.res"),
    (SourceFlags.IDL_REGTYPELIB, "_t.res"),
    (SourceFlags.IDL_REGISTER, "_r.res"),
]


class GeneratedSourceExpander:
    """
    Synthesizes the sources implied by a unit's declared sources.

    Example usage:
        expander = GeneratedSourceExpander(registry, resolver, settings, linguas)
        expander.expand(unit)
    """

    def __init__(
        self,
        registry: SourceRegistry,
        resolver: IncludeResolver,
        settings: ProjectSettings,
        linguas: Optional[List[str]] = None,
    ):
        """
        Initialize expander.

        Args:
            registry: Source registry (creates the generated records)
            resolver: Include resolver (attaches the generated dependencies)
            settings: Tree-wide settings
            linguas: Tree-wide list of translation languages, updated in place
        """
        self.registry = registry
        self.resolver = resolver
        self.settings = settings
        self.linguas: List[str] = linguas if linguas is not None else []

    def add_generated_source(
        self, unit: BuildUnit, name: str, filename: Optional[str] = None
    ) -> IncludeNode:
        """
        Add a generated source to a unit.

        Args:
            unit: Unit to add to
            name: Logical source name
            filename: Name of the produced file in the build directory, if
                different from name (e.g. 'dlldata.c' for 'dlldata.o')

        Returns:
            The new node, or the existing one if the unit already has name
        """
        node = unit.find_source(name)
        if node is not None:
            return node

        node = unit.new_source(name)
        node.record = self._new_record(name)
        node.basename = filename or name
        node.filename = unit.obj_dir_path(node.basename)
        node.is_external = False
        node.parsed = True
        logging.debug(f"{unit.obj_dir or '.'}: generated source {node.basename}")
        return node

    def _new_record(self, name: str, dependencies: Sequence[str] = ()) -> SourceRecord:
        record = self.registry.create_generated(name)
        for dep in dependencies:
            record.add_dependency(dep, IncludeKind.NORMAL)
        return record

    def _add_with_dependencies(
        self, unit: BuildUnit, name: str, dependencies: List[str], filename: Optional[str] = None
    ) -> IncludeNode:
        existing = unit.find_source(name)
        if existing is not None:
            return existing
        record = self._new_record(name, dependencies)
        node = self.add_generated_source(unit, name, filename)
        node.record = record
        self.resolver.add_all_includes(unit, node, record)
        return node

    def _expand_idl(self, unit: BuildUnit, source: IncludeNode) -> None:
        flags = source.flags
        header = replace_extension(source.name, ".idl", ".h")

        for flag, suffix, fixed, with_header in IDL_STUBS:
            if flags & flag:
                deps = fixed + [header] if with_header else fixed
                self._add_with_dependencies(
                    unit, replace_extension(source.name, ".idl", suffix), deps
                )

        if flags & SourceFlags.IDL_PROXY:
            self._add_with_dependencies(unit, "dlldata.o", PROXY_HEADERS, "dlldata.c")
            self._add_with_dependencies(
                unit,
                replace_extension(source.name, ".idl", "_p.c"),
                PROXY_HEADERS + ["wine/exception.h", header],
            )

        for flag, suffix in IDL_RESOURCES:
            if flags & flag:
                self.add_generated_source(unit, replace_extension(source.name, ".idl", suffix))

        if flags & SourceFlags.IDL_HEADER or (not flags and source.name.endswith(".idl")):
            node = self.add_generated_source(unit, header)
            if not node.children and source.record is not None:
                self.resolver.add_idl_header_includes(unit, node, source.record)

    def expand(self, unit: BuildUnit) -> None:
        """
        Add every generated source implied by the unit's sources.

        Sources added during expansion are themselves examined, so generated
        files implying further files are handled.

        Args:
            unit: Unit whose declared sources are loaded
        """
        for source in unit.source_nodes():
            name = source.name
            flags = source.flags

            self._expand_idl(unit, source)

            if name.endswith(".x"):
                self.add_generated_source(unit, replace_extension(name, ".x", ".h"))

            if name.endswith(".y") or name.endswith(".l"):
                suffix, target = (".y", ".tab.c") if name.endswith(".y") else (".l", ".yy.c")
                node = self.add_generated_source(unit, replace_extension(name, suffix, target))
                # the generated parser includes what the grammar includes
                node.children = source.children
                source.children = []

            if flags & SourceFlags.C_IMPLIB:
                if not unit.staticimplib and unit.importlib and self.settings.dll_ext:
                    unit.staticimplib = f"lib{unit.importlib}.a"

            if name.endswith(".po") and not unit.disabled:
                add_unique(self.linguas, replace_extension(name, ".po", ""))

            if name.endswith(".spec"):
                stem = replace_extension(name, ".spec", "")
                for lib in unit.variables.get_file_local_list(stem, "IMPORTS"):
                    add_unique(unit.extra_imports, lib)

        if unit.testdll:
            self._add_with_dependencies(unit, "testlist.o", ["wine/test.h"], "testlist.c")

        for obj in unit.variables.get_list("EXTRA_OBJS"):
            # default to .c for unknown extra object files
            if obj.endswith(".o"):
                node = self.add_generated_source(unit, obj, replace_extension(obj, ".o", ".c"))
                if node.record is not None:
                    node.record.flags |= SourceFlags.C_UNIX
                node.use_msvcrt = False
            elif obj.endswith(".res"):
                self.add_generated_source(unit, replace_extension(obj, ".res", ".rc"))
            else:
                self.add_generated_source(unit, obj)
