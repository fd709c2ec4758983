"""
Output-set classification.

Computes, for each build unit, the categorized lists of files its sources
produce (objects per target configuration, resources, translation
templates, fonts, template outputs, test results...) and the files that a
clean must remove. The external rule emitter consumes these lists.
"""

from typing import Callable, Dict

from ..config.project import ProjectSettings
from ..errors import DepforgeError
from ..path_utils import get_extension, replace_extension
from .build_unit import BuildUnit, IncludeNode, OutputSets, add_unique
from .source_scanner import SourceFlags

# Files produced by an interface definition, by flag
IDL_OUTPUTS = [
    (SourceFlags.IDL_TYPELIB, "_l.res"),
    (SourceFlags.IDL_REGTYPELIB, "_t.res"),
    (SourceFlags.IDL_CLIENT, "_c.c"),
    (SourceFlags.IDL_IDENT, "_i.c"),
    (SourceFlags.IDL_PROXY, "_p.c"),
    (SourceFlags.IDL_SERVER, "_s.c"),
    (SourceFlags.IDL_REGISTER, "_r.res"),
    (SourceFlags.IDL_HEADER, ".h"),
]


class OutputClassifier:
    """
    Fills a unit's OutputSets from its sources.

    Example usage:
        OutputClassifier(settings).classify(unit)
        print(unit.outputs.object_files)
    """

    def __init__(self, settings: ProjectSettings):
        self.settings = settings
        self._handlers: Dict[str, Callable[[BuildUnit, IncludeNode, str], None]] = {
            "y": self._classify_y,
            "h": self._classify_h,
            "rh": self._classify_h,
            "inl": self._classify_h,
            "rc": self._classify_rc,
            "mc": self._classify_mc,
            "res": self._classify_res,
            "idl": self._classify_idl,
            "sfd": self._classify_sfd,
            "po": self._classify_po,
            "in": self._classify_in,
            "spec": self._classify_spec,
        }

    def classify(self, unit: BuildUnit) -> OutputSets:
        """
        Compute the output sets of a unit whose dependencies are closed.

        Args:
            unit: Fully processed build unit

        Returns:
            The unit's OutputSets (also stored on the unit)

        Raises:
            DepforgeError: If a source has no extension
        """
        outputs = unit.outputs = OutputSets()

        for source in unit.source_nodes():
            ext = get_extension(source.name)
            if not ext:
                raise DepforgeError(f"unsupported file type {source.name}")
            obj = source.name[: -len(ext)]
            handler = self._handlers.get(ext[1:], self._classify_default)
            handler(unit, source, obj)
            for dep in source.dependencies:
                add_unique(outputs.dependencies, dep)

        for target in unit.extra_targets:
            if unit.obj_dir_path(target) in outputs.dependencies:
                outputs.clean_files.append(target)
            else:
                outputs.all_targets.append(target)

        for files in (
            outputs.object_files,
            outputs.crossobj_files,
            outputs.unixobj_files,
            outputs.res_files,
            outputs.pot_files,
            outputs.all_targets,
        ):
            outputs.clean_files.extend(files)

        return outputs

    def _classify_y(self, unit: BuildUnit, source: IncludeNode, obj: str) -> None:
        header = f"{obj}.tab.h"
        if unit.find_include(header) is not None:
            unit.outputs.clean_files.append(header)

    def _classify_h(self, unit: BuildUnit, source: IncludeNode, obj: str) -> None:
        if source.flags & SourceFlags.GENERATED:
            unit.outputs.all_targets.append(source.name)

    def _classify_rc(self, unit: BuildUnit, source: IncludeNode, obj: str) -> None:
        if source.flags & SourceFlags.GENERATED:
            unit.outputs.clean_files.append(source.name)
        unit.outputs.res_files.append(f"{obj}.res")
        if source.flags & SourceFlags.RC_PO:
            unit.outputs.pot_files.append(f"{obj}.pot")

    def _classify_mc(self, unit: BuildUnit, source: IncludeNode, obj: str) -> None:
        unit.outputs.res_files.append(f"{obj}.res")
        unit.outputs.pot_files.append(f"{obj}.pot")

    def _classify_res(self, unit: BuildUnit, source: IncludeNode, obj: str) -> None:
        unit.outputs.res_files.append(source.name)

    def _classify_idl(self, unit: BuildUnit, source: IncludeNode, obj: str) -> None:
        flags = source.flags
        if not flags:
            flags = SourceFlags.IDL_HEADER | SourceFlags.INSTALL
        if unit.find_include(f"{obj}.h") is not None:
            flags |= SourceFlags.IDL_HEADER

        for flag, suffix in IDL_OUTPUTS:
            if flags & flag:
                dest = f"{obj}{suffix}"
                if unit.find_source(dest) is None:
                    unit.outputs.clean_files.append(dest)
        if flags & SourceFlags.IDL_PROXY:
            unit.outputs.dlldata_files.append(source.name)

    def _classify_sfd(self, unit: BuildUnit, source: IncludeNode, obj: str) -> None:
        if source.record is None:
            return
        for font in source.record.fonts:
            target = font.split()[0]
            unit.outputs.font_files.append(target)
            unit.outputs.all_targets.append(target)

    def _classify_po(self, unit: BuildUnit, source: IncludeNode, obj: str) -> None:
        unit.outputs.all_targets.append(f"{obj}.mo")

    def _classify_in(self, unit: BuildUnit, source: IncludeNode, obj: str) -> None:
        record = source.record
        if obj.endswith(".man") and record is not None and record.man_section:
            unit.outputs.man_pages.append((obj, record.man_section))
        unit.outputs.in_files.append(obj)
        unit.outputs.all_targets.append(obj)

    def _classify_spec(self, unit: BuildUnit, source: IncludeNode, obj: str) -> None:
        dll_name = f"{obj}.dll{'' if unit.is_cross else self.settings.dll_ext}"
        unit.outputs.clean_files.append(dll_name)
        unit.outputs.res_files.append(f"{obj}.res")

    def _classify_default(self, unit: BuildUnit, source: IncludeNode, obj: str) -> None:
        flags = source.flags
        outputs = unit.outputs
        is_unix = bool(flags & SourceFlags.C_UNIX)
        is_implib = bool(flags & SourceFlags.C_IMPLIB)

        # test sources that are built into a helper dll rather than the test executable
        is_dll_src = bool(
            unit.testdll
            and source.name.endswith(".c")
            and unit.find_source(replace_extension(source.name, ".c", ".spec"))
        )
        need_cross = bool(
            self.settings.crosstarget
            and not is_unix
            and (unit.is_cross or unit.staticlib or is_implib)
        )
        need_obj = (bool(self.settings.dll_ext) or not is_unix) and (
            not need_cross or is_implib or bool(unit.staticlib and not unit.extlib)
        )

        if flags & SourceFlags.GENERATED and not (
            unit.testdll and source.filename and source.filename.endswith("testlist.c")
        ):
            outputs.clean_files.append(source.basename or source.name)
        if is_implib:
            outputs.implib_objs.append(f"{obj}.o")

        if need_obj:
            if is_unix and self.settings.dll_ext:
                outputs.unixobj_files.append(f"{obj}.o")
            elif not is_dll_src and not is_implib:
                outputs.object_files.append(f"{obj}.o")
            else:
                outputs.clean_files.append(f"{obj}.o")

        if need_cross:
            if not is_dll_src and not is_implib:
                outputs.crossobj_files.append(f"{obj}.cross.o")
            else:
                outputs.clean_files.append(f"{obj}.cross.o")

        if source.name.endswith(".c") and not flags & SourceFlags.GENERATED:
            if unit.testdll and not is_dll_src:
                outputs.ok_files.append(f"{obj}.ok")


def classify_outputs(unit: BuildUnit, settings: ProjectSettings) -> OutputSets:
    """Compute the output sets of a unit."""
    return OutputClassifier(settings).classify(unit)
