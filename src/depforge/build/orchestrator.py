"""
Dependency generation for a whole source tree.

This module coordinates the dependency graph engine over every build unit of
a tree:
- Top-level descriptor parsing (tree-wide settings, sub-directory list)
- Build unit registration (pass 1: every unit exists before any is processed,
  so import library references can be resolved across units)
- Per-unit processing (pass 2): declared sources, generated sources, C
  runtime selection, include resolution, dependency closure and output sets
"""

import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from tqdm import tqdm

from ..config.project import ProjectSettings
from ..config.variables import VariableStore
from ..errors import RuntimeConflictError
from ..path_utils import concat_paths
from .build_unit import BuildUnit
from .closure import CONFIG_HEADER, close_dependencies
from .generated_sources import GeneratedSourceExpander
from .include_resolver import IncludeResolver
from .output_sets import OutputClassifier
from .source_registry import SourceRegistry

# Variables listing the declared sources of a unit, in processing order
SOURCE_VARIABLES = [
    "SOURCES",
    "C_SRCS",
    "OBJC_SRCS",
    "RC_SRCS",
    "MC_SRCS",
    "IDL_SRCS",
    "BISON_SRCS",
    "LEX_SRCS",
    "HEADER_SRCS",
    "XTEMPLATE_SRCS",
    "SVG_SRCS",
    "FONT_SRCS",
    "IN_SRCS",
    "PO_SRCS",
    "MANPAGES",
]

SUB_DESCRIPTOR = "Makefile.in"


def is_crt_module(name: str) -> bool:
    """Check whether a module name designates a C runtime library."""
    return name.startswith("msvcr") or name.startswith("ucrt") or name == "crtdll.dll"


def get_default_crt(unit: BuildUnit) -> Optional[str]:
    """Get the C runtime a unit imports when it doesn't import one explicitly."""
    if not unit.use_msvcrt:
        return None
    if unit.module and is_crt_module(unit.module):
        return None  # C runtime modules don't import another runtime
    if not unit.testdll and (not unit.staticlib or unit.extlib):
        return "ucrtbase"
    return "msvcrt"


def get_crt_define(unit: BuildUnit) -> str:
    """
    Get the preprocessor define selecting the C runtime of a unit.

    Raises:
        RuntimeConflictError: If the unit imports more than one C runtime
    """
    crt_dll = None
    for name in unit.imports:
        if not is_crt_module(name):
            continue
        if crt_dll:
            raise RuntimeConflictError(
                f"More than one C runtime DLL imported: {crt_dll} and {name}"
            )
        crt_dll = name

    if not crt_dll:
        if "-nodefaultlibs" in unit.extradllflags:
            return "-D_MSVCR_VER=0"
        crt_dll = get_default_crt(unit) or unit.module or ""

    if crt_dll.startswith("ucrt"):
        return "-D_UCRT"
    match = re.match(r"msvcr(\d+)", crt_dll)
    return f"-D_MSVCR_VER={int(match.group(1)) if match else 0}"


@dataclass
class GenerationResult:
    """Result of dependency generation over a tree."""

    settings: ProjectSettings
    top: BuildUnit
    units: List[BuildUnit]
    linguas: List[str] = field(default_factory=list)
    elapsed: float = 0.0

    def all_units(self) -> List[BuildUnit]:
        """Top unit followed by the sub-directory units."""
        return [self.top] + self.units


class DependencyGenerator:
    """
    Generates the dependency model of a source tree.

    Example usage:
        generator = DependencyGenerator(Path("Makefile"), overrides={"srcdir": "../wine"})
        result = generator.generate()
        for unit in result.all_units():
            print(unit.obj_dir, unit.outputs.object_files)
    """

    def __init__(
        self,
        descriptor: Union[str, Path] = "Makefile",
        overrides: Optional[Dict[str, str]] = None,
        verbose: bool = False,
        progress: bool = False,
    ):
        """
        Initialize generator.

        Args:
            descriptor: Top-level build descriptor
            overrides: Command-line variable assignments
            verbose: Print one line per processed unit
            progress: Show a progress bar over units
        """
        self.descriptor = descriptor
        self.overrides = dict(overrides or {})
        self.verbose = verbose
        self.progress = progress
        self.registry = SourceRegistry()

    def load_tree(self) -> GenerationResult:
        """
        Read the top descriptor and register every build unit (pass 1).

        Returns:
            GenerationResult with unprocessed units

        Raises:
            DescriptorError: If a descriptor can't be read or expanded
        """
        top_vars = VariableStore.from_descriptor(self.descriptor, overrides=self.overrides)
        settings = ProjectSettings.from_variables(top_vars)
        top = BuildUnit.from_variables(None, top_vars, settings)

        units: List[BuildUnit] = []
        by_dir: Dict[str, BuildUnit] = {}
        for obj_dir in settings.subdirs:
            path = settings.root_src_dir_path(concat_paths(obj_dir, SUB_DESCRIPTOR))
            variables = VariableStore.from_descriptor(path, parent=top_vars)
            unit = BuildUnit.from_variables(obj_dir, variables, settings)
            units.append(unit)
            by_dir[obj_dir] = unit

        # e.g. dlls/foo/tests belongs to dlls/foo
        for unit in units:
            parent_dir, _, _ = (unit.obj_dir or "").rpartition("/")
            unit.parent = by_dir.get(parent_dir)

        logging.info(f"Registered {len(units)} build units from {self.descriptor}")
        return GenerationResult(settings=settings, top=top, units=units)

    def process_unit(
        self,
        unit: BuildUnit,
        resolver: IncludeResolver,
        expander: GeneratedSourceExpander,
        classifier: OutputClassifier,
    ) -> None:
        """
        Compute the full dependency model of one unit (pass 2).

        Raises:
            DepforgeError: On any fatal resolution error
        """
        settings = resolver.settings

        for var in SOURCE_VARIABLES:
            for name in unit.variables.get_list(var):
                resolver.add_source(unit, name)

        expander.expand(unit)
        if not unit.unixlib:
            unit.unixlib = unit.get_unix_lib_name(settings.dll_ext)

        if unit.use_msvcrt:
            unit.crt_define = get_crt_define(unit)
            unit.define_args.append(unit.crt_define)

        resolver.resolve_includes(unit)
        config_header = settings.root_src_dir_path(CONFIG_HEADER)
        for source in unit.source_nodes():
            close_dependencies(unit, source, config_header)

        unit.is_cross = bool(settings.crosstarget) and unit.use_msvcrt
        classifier.classify(unit)

        logging.debug(
            f"{unit.obj_dir or '.'}: {len(unit.sources)} sources, {len(unit.includes)} includes"
        )
        if self.verbose:
            print(f"  {unit.obj_dir or '.'}: {len(unit.sources)} sources, {len(unit.includes)} includes")

    def generate(self) -> GenerationResult:
        """
        Generate the dependency model of the whole tree.

        Returns:
            GenerationResult with every unit processed

        Raises:
            DescriptorError: On descriptor errors
            DepforgeError: On any fatal resolution error
        """
        start_time = time.time()
        result = self.load_tree()

        resolver = IncludeResolver(self.registry, result.settings, result.units)
        expander = GeneratedSourceExpander(self.registry, resolver, result.settings, result.linguas)
        classifier = OutputClassifier(result.settings)

        units = tqdm(
            result.all_units(),
            desc="Resolving dependencies",
            unit="dir",
            disable=not self.progress,
        )
        for unit in units:
            self.process_unit(unit, resolver, expander, classifier)

        result.elapsed = time.time() - start_time
        logging.info(
            f"Processed {len(result.units) + 1} units, {len(self.registry)} files in {result.elapsed:.2f}s"
        )
        return result
