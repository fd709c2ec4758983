"""
Process-wide cache of parsed source files.

Each physical file is opened and scanned at most once per run, no matter how
many build units include it. The registry is created once by the caller and
passed explicitly to everything that loads files.
"""

import logging
from typing import Dict, Iterator, Optional

from .source_scanner import SourceFlags, SourceRecord, SourceScanner


class SourceRegistry:
    """
    Maps a normalized file path to its parsed SourceRecord.

    Example usage:
        registry = SourceRegistry()
        record = registry.load("dlls/foo/foo.c")
        if record is None:
            print("not found")
    """

    def __init__(self, scanner: Optional[SourceScanner] = None):
        """
        Initialize registry.

        Args:
            scanner: Directive scanner (a default SourceScanner if omitted)
        """
        self.scanner = scanner or SourceScanner()
        self._records: Dict[str, SourceRecord] = {}

    def load(self, name: str) -> Optional[SourceRecord]:
        """
        Get the record for a file, reading and scanning it on first use.

        Args:
            name: Normalized file path

        Returns:
            The cached or newly scanned record, or None if the file can't be opened

        Raises:
            DirectiveError: If the file contains a malformed directive
        """
        record = self._records.get(name)
        if record is not None:
            return record

        try:
            stream = open(name, "r", encoding="utf-8", errors="surrogateescape")
        except OSError:
            return None

        record = SourceRecord(name)
        self._records[name] = record
        with stream:
            self.scanner.scan(record, stream)

        logging.debug(f"Scanned {name}: {len(record.dependencies)} directives")
        return record

    def create_generated(self, name: str) -> SourceRecord:
        """
        Create a record for a file that doesn't exist yet.

        Generated records are not cached: they belong to the build unit that
        synthesized them.

        Args:
            name: Logical name of the generated file

        Returns:
            New record flagged as generated
        """
        return SourceRecord(name, flags=SourceFlags.GENERATED)

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[SourceRecord]:
        return iter(self._records.values())
