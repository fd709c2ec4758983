"""Path string helpers for build-tree locations.

Paths are handled as plain '/'-separated strings rather than Path objects:
they are compared, hashed and written into the resolved model verbatim, and
relative object-directory paths must stay relative to the build root.
"""

from typing import Optional


def get_extension(filename: str) -> Optional[str]:
    """Return the extension of the last path element (with the dot), or None."""
    pos = filename.rfind(".")
    if pos == -1 or "/" in filename[pos:]:
        return None
    return filename[pos:]


def get_base_name(name: str) -> str:
    """Strip the last extension from a name."""
    if "." not in name:
        return name
    return name[: name.rfind(".")]


def replace_extension(name: str, old_ext: str, new_ext: str) -> str:
    """Replace old_ext with new_ext, or append new_ext if name doesn't end in old_ext.

    Example:
        replace_extension("foo.idl", ".idl", "_p.c") -> "foo_p.c"
        replace_extension("foo", ".idl", ".h") -> "foo.h"
    """
    if old_ext and name.endswith(old_ext):
        name = name[: -len(old_ext)]
    return name + new_ext


def replace_filename(path: Optional[str], name: str) -> str:
    """Replace the last element of path with name."""
    if not path or "/" not in path:
        return name
    return path[: path.rfind("/") + 1] + name


def concat_paths(base: Optional[str], path: Optional[str]) -> str:
    """Join base and path, folding leading '..' elements of path into base.

    Args:
        base: Directory to start from (None or empty means current directory)
        path: Path to append (absolute paths are returned unchanged)

    Returns:
        Combined path, "." when both are empty
    """
    if not base:
        return path if path else "."
    if not path:
        return base
    if path.startswith("/"):
        return path

    end = len(base)
    while end and base[end - 1] == "/":
        end -= 1

    while end and path.startswith("..") and (len(path) == 2 or path[2] == "/"):
        i = end
        while i > 0 and base[i - 1] != "/":
            i -= 1
        if i == end - 2 and base[i:i + 2] == "..":
            break  # can't go up past an existing ".."
        if i != end - 1 or base[i] != ".":
            path = path[2:].lstrip("/")
        while i > 0 and base[i - 1] == "/":
            i -= 1
        end = i

    if not end and not base.startswith("/"):
        return path if path else "."
    return base[:end] + "/" + path


def get_relative_path(from_dir: str, dest: str) -> Optional[str]:
    """Compute the path of dest relative to from_dir.

    Args:
        from_dir: Directory the result is relative to ("." means empty)
        dest: Destination path

    Returns:
        Relative path, or None if both designate the same directory
    """
    if from_dir == ".":
        from_dir = ""

    src = [elem for elem in from_dir.split("/") if elem]
    dst = [elem for elem in dest.split("/") if elem]

    common = 0
    while common < len(src) and common < len(dst) and src[common] == dst[common]:
        common += 1

    parts = [".."] * (len(src) - common) + dst[common:]
    if not parts:
        return None
    return "/".join(parts)
