"""
Dependency closure of top-level sources.

Flattens a unit's include graph into the ordered, deduplicated list of
files each top-level source depends on.
"""

import logging

from ..errors import IncludeOrderError
from .build_unit import BuildUnit, IncludeNode
from .source_scanner import IncludeKind, SourceFlags

CONFIG_HEADER = "include/config.h"

TYPELIB_FLAGS = SourceFlags.IDL_TYPELIB | SourceFlags.IDL_REGTYPELIB


def close_dependencies(
    unit: BuildUnit, source: IncludeNode, config_header: str = CONFIG_HEADER
) -> None:
    """
    Compute the dependency lists of a top-level source.

    Walks the include graph depth-first in preorder. Each node is visited
    at most once per source, which also makes cycles terminate, and each
    path is listed once even when several nodes resolve to it. Import
    library nodes are only collected when the source builds a type library.

    Args:
        unit: Unit owning the graph
        source: Top-level source node
        config_header: Source tree path of the configuration header (the
            generated path is always checked too)

    Raises:
        IncludeOrderError: If the config header is not the source's first include
    """
    if not source.filename:
        return

    seen = set(source.dependencies) | set(source.importlib_deps)
    stack = list(reversed(source.children))
    while stack:
        node = unit.node(stack.pop())
        if not node.filename or node.owner == source.index:
            continue

        if node.kind == IncludeKind.IMPORTLIB:
            if not source.flags & TYPELIB_FLAGS:
                continue  # library is imported only when building a typelib
            deps = source.importlib_deps
        else:
            deps = source.dependencies
        if node.filename not in seen:
            seen.add(node.filename)
            deps.append(node.filename)
        node.owner = source.index

        if (
            node.filename in (CONFIG_HEADER, config_header)
            and node.index != source.children[0]
            and not source.is_external
        ):
            _raise_include_order_error(source, node)

        stack.extend(reversed(node.children))

    logging.debug(f"{source.filename}: {len(source.dependencies)} dependencies")


def _raise_include_order_error(source: IncludeNode, node: IncludeNode) -> None:
    line = 0
    if source.record is not None:
        for dep in source.record.dependencies:
            if dep.name == node.name:
                line = dep.line
    raise IncludeOrderError(
        f"{node.name} must be included before other headers", source.filename, line
    )
