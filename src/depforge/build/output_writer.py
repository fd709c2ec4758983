"""
Output file writing.

Every output goes through a temporary file created next to its destination
and is only renamed over the destination when the content changed, so that
build tools watching timestamps don't see spurious updates. Temporary files
still pending when the process is interrupted are removed by cleanup().
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Union

from ..errors import OutputError
from ..path_utils import replace_extension
from .build_unit import BuildUnit
from .orchestrator import GenerationResult

MAX_TEMP_ATTEMPTS = 100
TEMP_ID_STEP = 7777

GENERATED_HEADER = "Automatically generated by depforge; DO NOT EDIT!!"


def model_to_dict(result: GenerationResult) -> Dict[str, Any]:
    """Convert a generation result to the resolved model dictionary."""
    return {
        "srcdir": result.settings.root_src_dir,
        "dll_ext": result.settings.dll_ext,
        "crosstarget": result.settings.crosstarget,
        "linguas": list(result.linguas),
        "units": [unit.to_dict() for unit in result.all_units()],
    }


def format_testlist(unit: BuildUnit) -> str:
    """Generate the test list source of a test unit."""
    tests = [replace_extension(name, ".ok", "") for name in unit.outputs.ok_files]
    lines = [
        f"/* {GENERATED_HEADER} */",
        "",
        "#define WIN32_LEAN_AND_MEAN",
        "#include <windows.h>",
        "",
        "#define STANDALONE",
        '#include "wine/test.h"',
        "",
    ]
    lines.extend(f"extern void func_{test}(void);" for test in tests)
    lines.extend(["", "const struct test winetest_testlist[] =", "{"])
    lines.extend(f'    {{ "{test}", func_{test} }},' for test in tests)
    lines.extend(["    { 0, 0 }", "};", ""])
    return "\n".join(lines)


def format_linguas(unit: BuildUnit) -> str:
    """Generate the language list of a translations unit."""
    lines = [f"# {GENERATED_HEADER}"]
    lines.extend(
        replace_extension(node.name, ".po", "")
        for node in unit.source_nodes()
        if node.name.endswith(".po")
    )
    return "\n".join(lines) + "\n"


class OutputWriter:
    """
    Writes output files atomically, only when their content changed.

    Example usage:
        writer = OutputWriter()
        try:
            writer.write_model(Path("depends.json"), result)
        finally:
            writer.cleanup()
    """

    def __init__(self):
        self.pending: List[Path] = []

    def create_temp_file(self, dest: Union[str, Path]) -> Path:
        """
        Create an empty temporary file next to dest.

        The name is '<dest>.tmpXXXXXXXX'; the suffix starts from the process id
        and is bumped until an unused name is found.

        Raises:
            OutputError: If no temporary file can be created
        """
        temp_id = os.getpid()
        for _ in range(MAX_TEMP_ATTEMPTS):
            temp_path = Path(f"{dest}.tmp{temp_id & 0xFFFFFFFF:08x}")
            try:
                fd = os.open(temp_path, os.O_RDWR | os.O_CREAT | os.O_EXCL, 0o666)
            except FileExistsError:
                temp_id += TEMP_ID_STEP
                continue
            except OSError as e:
                raise OutputError(f"failed to create output file for '{dest}': {e.strerror}") from e
            os.close(fd)
            self.pending.append(temp_path)
            return temp_path
        raise OutputError(f"failed to create output file for '{dest}'")

    def write_if_changed(self, dest: Union[str, Path], content: str) -> bool:
        """
        Write content to dest unless dest already holds exactly that content.

        Args:
            dest: Destination file
            content: Text to write

        Returns:
            True if dest was (re)written, False if it was already up to date

        Raises:
            OutputError: If writing or renaming fails
        """
        dest = Path(dest)
        if dest.parent != Path("."):
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise OutputError(f"mkdir: {e.strerror}", str(dest.parent)) from e

        temp_path = self.create_temp_file(dest)
        data = content.encode("utf-8")
        try:
            temp_path.write_bytes(data)
        except OSError as e:
            raise OutputError(f"write: {e.strerror}", str(temp_path)) from e

        if dest.exists() and dest.read_bytes() == data:
            temp_path.unlink()
            self.pending.remove(temp_path)
            logging.debug(f"{dest} is up to date")
            return False

        try:
            temp_path.replace(dest)
        except OSError as e:
            raise OutputError(f"failed to rename output file to '{dest}'") from e
        self.pending.remove(temp_path)
        logging.info(f"Wrote {dest}")
        return True

    def write_model(self, dest: Union[str, Path], result: GenerationResult) -> bool:
        """Write the resolved model of a tree as JSON."""
        return self.write_if_changed(dest, json.dumps(model_to_dict(result), indent=2) + "\n")

    def write_generated_files(self, result: GenerationResult) -> List[Path]:
        """
        Write the auxiliary files computed from the model.

        Test units get their testlist.c, the translations unit ('po') its
        LINGUAS file.

        Returns:
            Files that were (re)written
        """
        written = []
        for unit in result.all_units():
            if unit.disabled:
                continue
            if unit.testdll:
                dest = Path(unit.obj_dir_path("testlist.c"))
                if self.write_if_changed(dest, format_testlist(unit)):
                    written.append(dest)
            if unit.obj_dir == "po":
                dest = Path(unit.obj_dir_path("LINGUAS"))
                if self.write_if_changed(dest, format_linguas(unit)):
                    written.append(dest)
        return written

    def cleanup(self) -> None:
        """Remove temporary files left behind by an interrupted write."""
        for temp_path in self.pending:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass
        self.pending.clear()
