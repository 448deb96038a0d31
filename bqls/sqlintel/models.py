"""Core dataclasses shared by the SQL intelligence services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Tuple


class SqlIntelError(RuntimeError):
    """Base class for errors raised by the SQL intelligence services."""


class DiagnosticSeverity(str, Enum):
    """Severity levels for published diagnostics."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True, slots=True)
class LocationRange:
    """Byte-offset span of a node; ``end`` points just past the last byte."""

    start: int
    end: int

    def contains(self, offset: int) -> bool:
        return self.start <= offset <= self.end

    @property
    def width(self) -> int:
        return self.end - self.start

    def union(self, other: LocationRange | None) -> LocationRange:
        if other is None:
            return self
        return LocationRange(min(self.start, other.start), max(self.end, other.end))


@dataclass(frozen=True, slots=True)
class Position:
    """Zero-based line/character pair as sent by editors."""

    line: int
    character: int


@dataclass(frozen=True, slots=True)
class Range:
    start: Position
    end: Position


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """Represents an issue discovered while analyzing a document."""

    message: str
    severity: DiagnosticSeverity
    range: Range


@dataclass(frozen=True, slots=True)
class MarkedString:
    """One hover block: ``value`` formatted as ``language``."""

    language: str
    value: str


@dataclass(frozen=True, slots=True)
class SchemaField:
    """Column definition in a table schema; ``fields`` holds RECORD children."""

    name: str
    type: str
    mode: str = ""
    description: str = ""
    fields: Tuple[SchemaField, ...] = ()


@dataclass(frozen=True, slots=True)
class TableMetadata:
    """Table-level metadata returned by a metadata store."""

    full_id: str
    description: str = ""
    created: datetime | None = None
    modified: datetime | None = None
    schema: Tuple[SchemaField, ...] = ()

    def find_field(self, name: str) -> SchemaField | None:
        """Return the top-level schema field called ``name``, if any."""

        for column in self.schema:
            if column.name.lower() == name.lower():
                return column
        return None


__all__ = [
    "Diagnostic",
    "DiagnosticSeverity",
    "LocationRange",
    "MarkedString",
    "Position",
    "Range",
    "SchemaField",
    "SqlIntelError",
    "TableMetadata",
]
