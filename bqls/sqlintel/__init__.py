"""SQL intelligence services and helpers."""

from __future__ import annotations

from .analyzer import Analysis, AnalysisOutput, AnalysisProvider, ParsedFile, SqlglotAnalyzer, SqlSyntaxError, StatementError
from .documents import Document, DocumentCache, DocumentNotFoundError
from .functions import FunctionCatalog, FunctionEntry
from .hover import HoverResolver
from .locator import lookup_node, search_node
from .metadata import (
    CachingMetadataStore,
    MetadataStore,
    MetadataStoreError,
    StaticMetadataStore,
    TableNotFoundError,
)
from .models import (
    Diagnostic,
    DiagnosticSeverity,
    LocationRange,
    MarkedString,
    Position,
    Range,
    SchemaField,
    SqlIntelError,
    TableMetadata,
)
from .positions import InvalidPositionError, byte_offset_to_position, position_to_byte_offset
from .resolver import AnalysisError
from .scheduler import DiagnosticScheduler
from .service import SqlIntelService

__all__ = [
    "Analysis",
    "AnalysisError",
    "AnalysisOutput",
    "AnalysisProvider",
    "CachingMetadataStore",
    "Diagnostic",
    "DiagnosticScheduler",
    "DiagnosticSeverity",
    "Document",
    "DocumentCache",
    "DocumentNotFoundError",
    "FunctionCatalog",
    "FunctionEntry",
    "HoverResolver",
    "InvalidPositionError",
    "LocationRange",
    "MarkedString",
    "MetadataStore",
    "MetadataStoreError",
    "ParsedFile",
    "Position",
    "Range",
    "SchemaField",
    "SqlIntelError",
    "SqlIntelService",
    "SqlSyntaxError",
    "SqlglotAnalyzer",
    "StaticMetadataStore",
    "StatementError",
    "TableMetadata",
    "TableNotFoundError",
    "byte_offset_to_position",
    "lookup_node",
    "position_to_byte_offset",
    "search_node",
]
