"""
Dependency graph engine for depforge.

This module provides:
- Source scanning and the process-wide source registry
- Build units with their include graphs
- Include resolution, dependency closure and generated-source expansion
- Output classification and the tree-wide orchestrator
"""

from .build_unit import BuildUnit, IncludeNode, OutputSets
from .closure import close_dependencies
from .generated_sources import GeneratedSourceExpander
from .include_resolver import IncludeResolver
from .orchestrator import DependencyGenerator, GenerationResult
from .output_sets import OutputClassifier, classify_outputs
from .output_writer import OutputWriter
from .source_registry import SourceRegistry
from .source_scanner import Dependency, IncludeKind, SourceFlags, SourceRecord, SourceScanner

__all__ = [
    'BuildUnit',
    'IncludeNode',
    'OutputSets',
    'close_dependencies',
    'GeneratedSourceExpander',
    'IncludeResolver',
    'DependencyGenerator',
    'GenerationResult',
    'OutputClassifier',
    'classify_outputs',
    'OutputWriter',
    'SourceRegistry',
    'Dependency',
    'IncludeKind',
    'SourceFlags',
    'SourceRecord',
    'SourceScanner',
]
