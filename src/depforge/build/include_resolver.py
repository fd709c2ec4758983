"""
Include resolution for build units.

This module maps a logical include name, as written in a source file, to the
file that backs it. The search order mirrors the compiler's header search
for the unit, extended with the places generated headers come from:

1. Generated grammar header (foo.tab.h from foo.y in the source directory)
2. Generated interface header (foo.h from foo.idl in the source directory)
3. Extra build targets of the unit (no backing file)
4. Unit source directory, then the declared parent source directory
5. Import libraries built by another unit (no backing file)
6. Global include directory: generated from .idl, .h.in or .x first, then the
   header itself, then the alternate-runtime subtree
7. Declared extra include paths
8-11. Fallbacks and errors for system headers, same-directory headers and
   missing files
"""

import logging
from typing import List, Optional, Sequence, Tuple

from ..config.project import ProjectSettings
from ..errors import (
    IncludeGraphError,
    IncompatibleHeaderError,
    MissingIncludeError,
    MissingSourceError,
)
from ..path_utils import concat_paths, replace_extension, replace_filename
from .build_unit import BuildUnit, IncludeNode
from .source_registry import SourceRegistry
from .source_scanner import IncludeKind, SourceFlags, SourceRecord

# Headers every generated interface header includes
IDL_HEADER_INCLUDES = ("rpc.h", "rpcndr.h")

# System headers allowed to be missing in alternate runtime mode
TOLERATED_MSVCRT_HEADERS = ("stdarg.h", "x86intrin.h")

# Units under this directory build modules that importlib() can reference
MODULE_DIR = "dlls/"

OpenResult = Tuple[Optional[SourceRecord], Optional[str]]


class IncludeResolver:
    """
    Resolves include nodes and attaches their children.

    Example usage:
        resolver = IncludeResolver(registry, settings, units)
        source = resolver.add_source(unit, "foo.c")
        resolver.resolve_includes(unit)
    """

    def __init__(
        self,
        registry: SourceRegistry,
        settings: ProjectSettings,
        units: Sequence[BuildUnit] = (),
    ):
        """
        Initialize resolver.

        Args:
            registry: Shared source registry
            settings: Tree-wide settings
            units: Every sub-directory unit of the tree (for import library lookups)
        """
        self.registry = registry
        self.settings = settings
        self.units: List[BuildUnit] = list(units)

    def open_include_path_file(self, directory: str, name: str) -> OpenResult:
        """Open a file from a directory on the include path."""
        path = concat_paths(directory, name)
        record = self.registry.load(path)
        return record, path if record else None

    def open_file_same_dir(self, parent: IncludeNode, name: str) -> OpenResult:
        """Open a file in the same directory as the including file."""
        if parent.record is None:
            return None, None
        record = self.registry.load(replace_filename(parent.record.name, name))
        return record, replace_filename(parent.filename, name) if record else None

    def open_local_file(self, unit: BuildUnit, path: str) -> OpenResult:
        """Open a file in the unit's source directory, then in its parent directory."""
        src_path = unit.src_dir_path(path)
        record = self.registry.load(src_path)

        if record is None and unit.parent_dir:
            src_path = unit.src_dir_path(f"{unit.parent_dir}/{path}")
            record = self.registry.load(src_path)

        return record, src_path if record else None

    def open_global_file(self, path: str) -> OpenResult:
        """Open a file relative to the top of the source tree."""
        src_path = self.settings.root_src_dir_path(path)
        record = self.registry.load(src_path)
        return record, src_path if record else None

    def open_global_header(self, path: str) -> OpenResult:
        """Open a file in the global include directory."""
        if path.startswith("../"):
            return None, None
        return self.open_global_file(f"include/{path}")

    def open_src_file(self, unit: BuildUnit, node: IncludeNode) -> SourceRecord:
        """
        Open a source declared by the unit's descriptor.

        Raises:
            MissingSourceError: If the source doesn't exist
        """
        record, filename = self.open_local_file(unit, node.name)
        if record is None:
            raise MissingSourceError(f"open {node.name}: No such file or directory")
        node.filename = filename
        return record

    def find_importlib_module(self, name: str) -> Optional[BuildUnit]:
        """Find the unit building the module an importlib() refers to."""
        for unit in self.units:
            if not unit.obj_dir or not unit.obj_dir.startswith(MODULE_DIR):
                continue
            module_name = unit.obj_dir[len(MODULE_DIR):]
            if not name.startswith(module_name):
                continue
            if name[len(module_name):] in ("", ".dll"):
                return unit
        return None

    def _root_relative(self, directory: str) -> Optional[str]:
        """Get an include directory relative to the source root, None if outside it."""
        root = self.settings.root_src_dir
        if root is None:
            return None if directory.startswith("/") else directory
        root = root.rstrip("/") or "/"
        if directory == root:
            return ""
        if directory.startswith(root.rstrip("/") + "/"):
            return directory[len(root):].lstrip("/")
        return None

    def resolve(self, unit: BuildUnit, node: IncludeNode) -> Optional[SourceRecord]:
        """
        Find the file backing an include node.

        Sets node.filename (and node.sourcename for generated headers) as a
        side effect. A node can be resolved without a backing record when it
        names a build target rather than a file.

        Args:
            unit: Unit the node belongs to
            node: Unresolved include node

        Returns:
            Backing record, or None if there is none

        Raises:
            IncompatibleHeaderError: System header used in alternate runtime mode
            MissingIncludeError: Non-system header not found
        """
        name = node.name

        # generated grammar header
        if name.endswith(".tab.h"):
            record, filename = self.open_local_file(unit, replace_extension(name, ".tab.h", ".y"))
            if record:
                node.sourcename = filename
                node.filename = unit.obj_dir_path(name)
                return record

        # corresponding idl file in the source directory
        if name.endswith(".h"):
            record, filename = self.open_local_file(unit, replace_extension(name, ".h", ".idl"))
            if record:
                node.sourcename = filename
                node.filename = unit.obj_dir_path(name)
                return record

        if name in unit.extra_targets:
            node.sourcename = unit.src_dir_path(name)
            node.filename = unit.obj_dir_path(name)
            return None

        record, filename = self.open_local_file(unit, name)
        if record:
            node.filename = filename
            return record

        # module dependency
        if node.kind == IncludeKind.IMPORTLIB and self.find_importlib_module(name):
            node.filename = name
            return None

        if name.endswith(".h"):
            for generator_ext in (".idl", ".h.in"):
                record, filename = self.open_global_header(
                    replace_extension(name, ".h", generator_ext)
                )
                if record:
                    node.sourcename = filename
                    node.filename = f"include/{name}"
                    return record

        if name.endswith("tmpl.h"):
            record, filename = self.open_global_header(replace_extension(name, ".h", ".x"))
            if record:
                node.sourcename = filename
                node.filename = f"include/{name}"
                return record

        record, filename = self.open_global_header(name)
        if record:
            node.filename = filename
            return record

        if node.use_msvcrt:
            record, filename = self.open_global_header(f"msvcrt/{name}")
            if record:
                node.filename = filename
                return record

        for directory in unit.include_paths:
            relative = self._root_relative(directory)
            if relative is not None:
                record, filename = self.open_global_file(concat_paths(relative, name))
                if record:
                    node.filename = filename
                    return record
            else:
                record, filename = self.open_include_path_file(directory, name)
                if record:
                    node.filename = filename
                    node.is_external = True
                    return record

        parent, parent_name = self._including_file(unit, node)

        if (
            node.kind == IncludeKind.SYSTEM
            and node.use_msvcrt
            and not unit.is_external
            and not parent.is_external
        ):
            if name in TOLERATED_MSVCRT_HEADERS:
                return None
            if unit.include_paths:
                return None
            raise IncompatibleHeaderError(
                f"system header {name} cannot be used with msvcrt",
                parent_name,
                node.included_line,
            )

        if node.kind == IncludeKind.SYSTEM:
            return None  # ignore system files we cannot find

        record, filename = self.open_file_same_dir(parent, name)
        if record:
            node.filename = filename
            node.is_external = parent.is_external
            return record

        if unit.is_external:
            logging.debug(f"Ignoring missing {name} in external library {unit.obj_dir}")
            return None

        raise MissingIncludeError(
            f"{name}: No such file or directory",
            parent_name,
            node.included_line,
            self._inclusion_notes(unit, parent),
        )

    def _including_file(self, unit: BuildUnit, node: IncludeNode) -> Tuple[IncludeNode, str]:
        """Get the node including node and the name of its file."""
        if node.included_by is None:
            raise IncludeGraphError(f"{node.name} is not included by any file")
        parent = unit.node(node.included_by)
        if parent.record is None:
            raise IncludeGraphError(
                f"{node.name} is included by unparsed file {parent.name}", parent.filename
            )
        return parent, parent.record.name

    def _inclusion_notes(self, unit: BuildUnit, node: IncludeNode) -> List[str]:
        """Describe the chain of includes leading to node."""
        notes = []
        current = node
        while current.included_by is not None:
            including = unit.node(current.included_by)
            where = including.sourcename
            if not where and including.record is not None:
                where = including.record.name
            elif not where:
                where = including.filename
            notes.append(f"{where}:{current.included_line}: note: {current.name} was first included here")
            current = including
        return notes

    def parse_file(self, unit: BuildUnit, node: IncludeNode, is_source: bool) -> None:
        """
        Resolve a node and add child nodes for the directives of its file.

        Args:
            unit: Unit the node belongs to
            node: Source or include node
            is_source: Whether the node is a declared top-level source
        """
        record = self.open_src_file(unit, node) if is_source else self.resolve(unit, node)
        node.parsed = True
        if record is None:
            return

        node.record = record
        node.children = []
        if record.flags & SourceFlags.C_UNIX:
            unit.set_runtime_mode(node, False)
        elif record.flags & SourceFlags.C_IMPLIB:
            unit.set_runtime_mode(node, True)

        if node.sourcename:
            if node.sourcename.endswith(".idl"):
                self.add_idl_header_includes(unit, node, record)
                return
            if node.sourcename.endswith(".y"):
                return  # generated .tab.h doesn't include anything

        self.add_all_includes(unit, node, record)

    def add_all_includes(self, unit: BuildUnit, parent: IncludeNode, record: SourceRecord) -> None:
        """Add a child node for every include-like directive of record."""
        for dep in record.dependencies:
            if dep.kind in (IncludeKind.NORMAL, IncludeKind.IMPORT):
                unit.add_include(parent, dep.name, dep.line, IncludeKind.NORMAL)
            elif dep.kind == IncludeKind.IMPORTLIB:
                unit.add_include(parent, dep.name, dep.line, IncludeKind.IMPORTLIB)
            elif dep.kind == IncludeKind.SYSTEM:
                unit.add_include(parent, dep.name, dep.line, IncludeKind.SYSTEM)

    def add_idl_header_includes(
        self, unit: BuildUnit, node: IncludeNode, record: SourceRecord
    ) -> None:
        """
        Add the includes of a header generated from an interface definition.

        The generated header includes the RPC headers, the headers generated
        from every imported interface and the cpp_quote includes.
        """
        for header in IDL_HEADER_INCLUDES:
            unit.add_include(node, header, 0, IncludeKind.NORMAL)

        for dep in record.dependencies:
            if dep.kind == IncludeKind.IMPORT:
                name = dep.name
                if name.endswith(".idl"):
                    name = replace_extension(name, ".idl", ".h")
                unit.add_include(node, name, dep.line, IncludeKind.NORMAL)
            elif dep.kind == IncludeKind.CPP_QUOTE:
                unit.add_include(node, dep.name, dep.line, IncludeKind.NORMAL)
            elif dep.kind == IncludeKind.CPP_QUOTE_SYSTEM:
                unit.add_include(node, dep.name, dep.line, IncludeKind.SYSTEM)

    def add_source(self, unit: BuildUnit, name: str) -> IncludeNode:
        """
        Add a declared source to a unit and attach its direct includes.

        Adding the same name twice returns the existing node.
        """
        node = unit.find_source(name)
        if node is not None:
            return node
        node = unit.new_source(name)
        self.parse_file(unit, node, True)
        return node

    def resolve_includes(self, unit: BuildUnit) -> None:
        """Resolve every pending include node of a unit, following new ones as they appear."""
        for node in unit.include_nodes():
            if not node.parsed:
                self.parse_file(unit, node, False)
