"""
Tree-wide settings read from the top-level build descriptor.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..path_utils import concat_paths
from .variables import VariableStore


@dataclass
class ProjectSettings:
    """Settings shared by every build unit of a tree."""

    root_src_dir: Optional[str] = None      # None for an in-tree build
    exe_ext: str = ""
    dll_ext: str = ".so"                    # "" when targeting PE executables
    crosstarget: Optional[str] = None
    subdirs: List[str] = field(default_factory=list)
    disabled_dirs: List[str] = field(default_factory=list)

    @classmethod
    def from_variables(cls, variables: VariableStore) -> "ProjectSettings":
        """
        Build settings from the top-level variable scope.

        Args:
            variables: Scope of the top-level descriptor

        Returns:
            ProjectSettings instance
        """
        root_src_dir = variables.get_expanded("srcdir")
        if root_src_dir == ".":
            root_src_dir = None
        exe_ext = variables.get_expanded("EXEEXT") or ""

        return cls(
            root_src_dir=root_src_dir,
            exe_ext=exe_ext,
            dll_ext="" if exe_ext == ".exe" else ".so",
            crosstarget=variables.get_expanded("CROSSTARGET"),
            subdirs=variables.get_list("SUBDIRS"),
            disabled_dirs=variables.get_list("DISABLED_SUBDIRS"),
        )

    def root_src_dir_path(self, path: str) -> str:
        """Get a path relative to the top of the source tree."""
        return concat_paths(self.root_src_dir, path)
