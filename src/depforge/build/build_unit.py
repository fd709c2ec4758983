"""
Build units and their include graphs.

A build unit is one build directory. It owns:
- The ordered list of top-level sources declared by its descriptor (plus the
  generated sources they imply)
- A deduplicated pool of include nodes discovered while resolving them

Nodes live in a per-unit arena and reference each other by index, so the
graph can contain cycles without any ownership problem.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..config.project import ProjectSettings
from ..config.variables import VariableStore
from ..path_utils import concat_paths, get_base_name
from .source_scanner import IncludeKind, SourceFlags, SourceRecord


@dataclass(eq=False)
class IncludeNode:
    """A resolved vertex of one build unit's include graph."""

    index: int
    name: str                                   # logical name as referenced
    kind: IncludeKind = IncludeKind.NORMAL
    record: Optional[SourceRecord] = None       # backing file, if any
    filename: Optional[str] = None              # resolved path, None if unresolved
    basename: Optional[str] = None              # target name of generated sources
    sourcename: Optional[str] = None            # generator of a generated header
    included_by: Optional[int] = None
    included_line: int = 0
    use_msvcrt: bool = False
    is_external: bool = False
    owner: Optional[int] = None                 # source this node was last collected for
    children: List[int] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    importlib_deps: List[str] = field(default_factory=list)
    parsed: bool = False

    @property
    def flags(self) -> SourceFlags:
        """Classification flags of the backing record."""
        return self.record.flags if self.record is not None else SourceFlags.NONE

    def to_dict(self) -> Dict[str, Any]:
        """Convert a top-level source to a dictionary for the resolved model."""
        return {
            "name": self.name,
            "filename": self.filename,
            "flags": [flag.name for flag in SourceFlags if flag and self.flags & flag],
            "use_msvcrt": self.use_msvcrt,
            "dependencies": list(self.dependencies),
            "importlib_dependencies": list(self.importlib_deps),
        }


@dataclass
class OutputSets:
    """Output files of a build unit, by category."""

    object_files: List[str] = field(default_factory=list)
    crossobj_files: List[str] = field(default_factory=list)
    unixobj_files: List[str] = field(default_factory=list)
    implib_objs: List[str] = field(default_factory=list)
    res_files: List[str] = field(default_factory=list)
    pot_files: List[str] = field(default_factory=list)
    font_files: List[str] = field(default_factory=list)
    in_files: List[str] = field(default_factory=list)
    man_pages: List[Tuple[str, str]] = field(default_factory=list)
    dlldata_files: List[str] = field(default_factory=list)
    ok_files: List[str] = field(default_factory=list)
    all_targets: List[str] = field(default_factory=list)
    clean_files: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)


def add_unique(values: List[str], value: str) -> None:
    """Append value unless already present."""
    if value not in values:
        values.append(value)


@dataclass(eq=False)
class BuildUnit:
    """
    One build directory with its sources and include graph.

    Example usage:
        unit = BuildUnit.from_variables("dlls/foo", variables, settings)
        node = unit.new_source("foo.c")
        child = unit.add_include(node, "foo.h", 3, IncludeKind.NORMAL)
    """

    obj_dir: Optional[str]
    src_dir: Optional[str]
    variables: VariableStore
    parent: Optional["BuildUnit"] = None
    parent_dir: Optional[str] = None
    module: Optional[str] = None
    testdll: Optional[str] = None
    sharedlib: Optional[str] = None
    staticlib: Optional[str] = None
    staticimplib: Optional[str] = None
    importlib: Optional[str] = None
    extlib: Optional[str] = None
    unixlib: Optional[str] = None
    imports: List[str] = field(default_factory=list)
    delayimports: List[str] = field(default_factory=list)
    extradllflags: List[str] = field(default_factory=list)
    extra_targets: List[str] = field(default_factory=list)
    extra_imports: List[str] = field(default_factory=list)
    include_paths: List[str] = field(default_factory=list)
    define_args: List[str] = field(default_factory=list)
    disabled: bool = False
    use_msvcrt: bool = False
    is_cross: bool = False
    is_win16: bool = False
    is_exe: bool = False
    crt_define: Optional[str] = None
    nodes: List[IncludeNode] = field(default_factory=list)
    sources: List[int] = field(default_factory=list)
    includes: List[int] = field(default_factory=list)
    outputs: OutputSets = field(default_factory=OutputSets)
    _source_index: Dict[str, int] = field(default_factory=dict, repr=False)
    _include_index: Dict[Tuple[str, bool], int] = field(default_factory=dict, repr=False)

    @classmethod
    def from_variables(
        cls,
        obj_dir: Optional[str],
        variables: VariableStore,
        settings: ProjectSettings,
        parent: Optional["BuildUnit"] = None,
    ) -> "BuildUnit":
        """
        Create a unit from its descriptor variables.

        Args:
            obj_dir: Build directory relative to the top (None for the top unit)
            variables: The unit's variable scope
            settings: Tree-wide settings
            parent: Enclosing unit (e.g. the module of a test directory)

        Returns:
            Configured BuildUnit with no sources yet
        """
        src_dir = settings.root_src_dir_path(obj_dir) if settings.root_src_dir else None
        unit = cls(obj_dir=obj_dir, src_dir=src_dir, variables=variables, parent=parent)

        variables.set("top_srcdir", settings.root_src_dir_path(""))
        variables.set("srcdir", unit.src_dir_path(""))

        unit.parent_dir = variables.get_expanded("PARENTSRC")
        unit.module = variables.get_expanded("MODULE")
        unit.testdll = variables.get_expanded("TESTDLL")
        unit.sharedlib = variables.get_expanded("SHAREDLIB")
        unit.staticlib = variables.get_expanded("STATICLIB")
        unit.importlib = variables.get_expanded("IMPORTLIB")
        unit.extlib = variables.get_expanded("EXTLIB")
        if settings.dll_ext:
            unit.unixlib = variables.get_expanded("UNIXLIB")

        unit.imports = variables.get_list("IMPORTS")
        unit.delayimports = variables.get_list("DELAYIMPORTS")
        unit.extradllflags = variables.get_list("EXTRADLLFLAGS")
        unit.extra_targets = variables.get_list("EXTRA_TARGETS")

        if unit.extlib:
            unit.staticlib = unit.extlib
        if unit.staticlib:
            unit.module = unit.staticlib

        unit.disabled = obj_dir is not None and obj_dir in settings.disabled_dirs
        unit.is_win16 = "-m16" in unit.extradllflags
        unit.use_msvcrt = (
            bool(unit.module or unit.testdll or unit.is_win16)
            and "-mcygwin" not in unit.extradllflags
        )
        unit.is_exe = "-mconsole" in unit.extradllflags or "-mwindows" in unit.extradllflags
        if unit.use_msvcrt:
            add_unique(unit.extradllflags, "-mno-cygwin")

        if not unit.extlib:
            unit.define_args.append("-D__WINESRC__")
        for arg in variables.get_list("EXTRAINCL"):
            if arg.startswith("-I"):
                add_unique(unit.include_paths, arg[2:])
            elif arg.startswith("-D") or arg.startswith("-U"):
                add_unique(unit.define_args, arg)
        unit.define_args.extend(variables.get_list("EXTRADEFS"))

        return unit

    @property
    def is_external(self) -> bool:
        """Whether the unit wraps an external library."""
        return bool(self.extlib)

    def obj_dir_path(self, path: str) -> str:
        """Get a path inside the build directory."""
        return concat_paths(self.obj_dir, path)

    def src_dir_path(self, path: str) -> str:
        """Get a path inside the source directory."""
        if self.src_dir:
            return concat_paths(self.src_dir, path)
        return self.obj_dir_path(path)

    def node(self, index: int) -> IncludeNode:
        """Get a node by arena index."""
        return self.nodes[index]

    def source_nodes(self) -> Iterator[IncludeNode]:
        """Iterate over top-level sources, including ones added during iteration."""
        pos = 0
        while pos < len(self.sources):
            yield self.nodes[self.sources[pos]]
            pos += 1

    def include_nodes(self) -> Iterator[IncludeNode]:
        """Iterate over include nodes, including ones added during iteration."""
        pos = 0
        while pos < len(self.includes):
            yield self.nodes[self.includes[pos]]
            pos += 1

    def children(self, node: IncludeNode) -> List[IncludeNode]:
        """Get the child nodes of a node."""
        return [self.nodes[index] for index in node.children]

    def find_source(self, name: str) -> Optional[IncludeNode]:
        """Find a top-level source by logical name."""
        index = self._source_index.get(name)
        return self.nodes[index] if index is not None else None

    def find_include(self, name: str) -> Optional[IncludeNode]:
        """Find an include node by logical name, in any runtime mode."""
        for node in self.include_nodes():
            if node.name == name:
                return node
        return None

    def new_source(self, name: str) -> IncludeNode:
        """
        Add a top-level source node.

        The caller checks find_source() first; names are unique among sources.
        """
        node = IncludeNode(
            index=len(self.nodes),
            name=name,
            use_msvcrt=self.use_msvcrt,
            is_external=self.is_external,
        )
        self.nodes.append(node)
        self.sources.append(node.index)
        self._source_index[name] = node.index
        return node

    def add_include(
        self, parent: IncludeNode, name: str, line: int, kind: IncludeKind
    ) -> IncludeNode:
        """
        Add a child include to parent, reusing the unit's node for that name.

        Nodes are shared per (name, runtime mode): the same header included
        from native and alternate-runtime sources gets two nodes.

        Args:
            parent: Including node
            name: Logical include name
            line: Line of the directive in the parent file
            kind: Reference kind

        Returns:
            The (possibly pre-existing) include node
        """
        key = (name, parent.use_msvcrt)
        index = self._include_index.get(key)
        if index is None:
            node = IncludeNode(
                index=len(self.nodes),
                name=name,
                kind=kind,
                included_by=parent.index,
                included_line=line,
                use_msvcrt=parent.use_msvcrt,
            )
            self.nodes.append(node)
            self.includes.append(node.index)
            self._include_index[key] = node.index
            index = node.index
        parent.children.append(index)
        return self.nodes[index]

    def set_runtime_mode(self, node: IncludeNode, use_msvcrt: bool) -> None:
        """Switch a node's runtime mode, keeping the include pool keys in sync."""
        if node.use_msvcrt == use_msvcrt:
            return
        old_key = (node.name, node.use_msvcrt)
        node.use_msvcrt = use_msvcrt
        if self._include_index.get(old_key) == node.index:
            del self._include_index[old_key]
            self._include_index.setdefault((node.name, use_msvcrt), node.index)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the processed unit to a dictionary for the resolved model."""
        return {
            "obj_dir": self.obj_dir,
            "src_dir": self.src_dir,
            "parent": self.parent.obj_dir if self.parent is not None else None,
            "module": self.module,
            "testdll": self.testdll,
            "sharedlib": self.sharedlib,
            "staticlib": self.staticlib,
            "staticimplib": self.staticimplib,
            "importlib": self.importlib,
            "unixlib": self.unixlib,
            "extlib": self.extlib,
            "disabled": self.disabled,
            "use_msvcrt": self.use_msvcrt,
            "is_cross": self.is_cross,
            "is_win16": self.is_win16,
            "is_exe": self.is_exe,
            "imports": list(self.imports),
            "delayimports": list(self.delayimports),
            "extra_imports": list(self.extra_imports),
            "extradllflags": list(self.extradllflags),
            "include_paths": list(self.include_paths),
            "define_args": list(self.define_args),
            "sources": [node.to_dict() for node in self.source_nodes()],
            "outputs": asdict(self.outputs),
        }

    def get_unix_lib_name(self, dll_ext: str) -> Optional[str]:
        """Get the Unix library name implied by C_UNIX sources, if any."""
        if not dll_ext or not self.module:
            return None
        for node in self.source_nodes():
            if node.flags & SourceFlags.C_UNIX:
                return f"{get_base_name(self.module)}{dll_ext}"
        return None
