"""Main SQL intelligence service coordinating documents, analysis and hover."""

from __future__ import annotations

import asyncio
import logging

from .analyzer import AnalysisProvider, ParsedFile, SqlglotAnalyzer, StatementError
from .documents import DocumentCache
from .hover import HoverResolver
from .metadata import MetadataStore, MetadataStoreError, StaticMetadataStore
from .models import Diagnostic, DiagnosticSeverity, MarkedString, Position, Range, TableMetadata
from .positions import byte_offset_to_position, position_to_byte_offset

LOG = logging.getLogger(__name__)


class SqlIntelService:
    """Facade that keeps open documents analyzed and answers editor requests."""

    def __init__(
        self,
        metadata_store: MetadataStore | None = None,
        analyzer: AnalysisProvider | None = None,
        *,
        documents: DocumentCache | None = None,
    ) -> None:
        self._metadata = metadata_store or StaticMetadataStore()
        self._analyzer = analyzer or SqlglotAnalyzer()
        self._documents = documents or DocumentCache()
        self._hover = HoverResolver(self._metadata)

    @property
    def documents(self) -> DocumentCache:
        return self._documents

    def update_document(self, uri: str, text: str, version: int | None = None) -> None:
        self._documents.put(uri, text, version)
        LOG.debug("Document updated", extra={"uri": uri, "version": version})

    def get_document(self, uri: str) -> str:
        return self._documents.text(uri)

    def delete_document(self, uri: str) -> None:
        self._documents.delete(uri)
        LOG.debug("Document closed", extra={"uri": uri})

    async def parse_file(self, uri: str) -> ParsedFile:
        """Return the parse and analysis of the current text of ``uri``.

        The result is cached until the document text changes.
        """

        text = self._documents.text(uri)
        cached = self._documents.parsed(uri)
        if cached is not None:
            return cached

        surface = await asyncio.to_thread(self._analyzer.parse, text, strict=False)
        catalog = await self._catalog_for(self._analyzer.tables(surface))
        analysis = await asyncio.to_thread(self._analyzer.analyze, text, catalog)
        parsed = ParsedFile(text=text, surface=surface, outputs=analysis.outputs, errors=analysis.errors)
        if not self._documents.store_parsed(uri, parsed):
            LOG.debug("Document changed during analysis", extra={"uri": uri})
        return parsed

    async def hover(self, uri: str, line: int, character: int) -> list[MarkedString]:
        """Describe the token at ``line``/``character``; empty when nothing applies."""

        parsed = await self.parse_file(uri)
        offset = position_to_byte_offset(parsed.text, line, character)
        return await self._hover.resolve(parsed, offset)

    async def diagnose(self, uri: str) -> dict[str, list[Diagnostic]]:
        """Return diagnostics for ``uri`` keyed by the file they belong to."""

        parsed = await self.parse_file(uri)
        return {uri: [_diagnostic(parsed.text, error) for error in parsed.errors]}

    async def _catalog_for(self, paths: tuple[str, ...]) -> dict[str, TableMetadata]:
        if not paths:
            return {}
        results = await asyncio.gather(
            *(self._metadata.get_table_metadata(path) for path in paths),
            return_exceptions=True,
        )
        catalog: dict[str, TableMetadata] = {}
        for path, result in zip(paths, results):
            if isinstance(result, MetadataStoreError):
                LOG.debug("Table metadata unavailable", extra={"path": path, "error": str(result)})
                continue
            if isinstance(result, BaseException):
                raise result
            catalog[path] = result
        return catalog


def _diagnostic(text: str, error: StatementError) -> Diagnostic:
    start = end = Position(0, 0)
    if error.location is not None:
        start = byte_offset_to_position(text, error.location.start) or start
        end = byte_offset_to_position(text, error.location.end) or start
    return Diagnostic(message=error.message, severity=DiagnosticSeverity.ERROR, range=Range(start, end))


__all__ = ["SqlIntelService"]
