"""Configuration modules for depforge."""

from .project import ProjectSettings
from .variables import (
    DescriptorError,
    VariableStore,
    parse_assignment,
    parse_makeflags,
    read_descriptor,
)

__all__ = [
    "ProjectSettings",
    "VariableStore",
    "DescriptorError",
    "parse_assignment",
    "parse_makeflags",
    "read_descriptor",
]
