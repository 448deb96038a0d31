"""Language server wiring the SQL intelligence service to pygls."""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from . import __version__
from .config import ServerConfig, load_config
from .sqlintel import (
    CachingMetadataStore,
    Diagnostic,
    DiagnosticScheduler,
    DiagnosticSeverity,
    MarkedString,
    MetadataStore,
    SqlglotAnalyzer,
    SqlIntelError,
    SqlIntelService,
    StaticMetadataStore,
)
from .sqlintel.bigquery import BigQueryMetadataStore

LOG = logging.getLogger(__name__)

SERVER_NAME = "bqls"

_SEVERITIES = {
    DiagnosticSeverity.ERROR: types.DiagnosticSeverity.Error,
    DiagnosticSeverity.WARNING: types.DiagnosticSeverity.Warning,
    DiagnosticSeverity.INFO: types.DiagnosticSeverity.Information,
}


def create_server(service: SqlIntelService, *, diagnostics_delay: float = 0.0) -> LanguageServer:
    """Return a language server answering hover and publishing diagnostics."""

    server = LanguageServer(SERVER_NAME, __version__, text_document_sync_kind=types.TextDocumentSyncKind.Full)

    def publish(uri: str, diagnostics: Sequence[Diagnostic]) -> None:
        server.text_document_publish_diagnostics(
            types.PublishDiagnosticsParams(uri=uri, diagnostics=[to_lsp_diagnostic(item) for item in diagnostics])
        )

    scheduler = DiagnosticScheduler(service.diagnose, publish, delay=diagnostics_delay)

    @server.feature(types.TEXT_DOCUMENT_DID_OPEN)
    def did_open(params: types.DidOpenTextDocumentParams) -> None:
        document = params.text_document
        service.update_document(document.uri, document.text, document.version)
        scheduler.notify(document.uri)

    @server.feature(types.TEXT_DOCUMENT_DID_CHANGE)
    def did_change(params: types.DidChangeTextDocumentParams) -> None:
        if not params.content_changes:
            return
        uri = params.text_document.uri
        service.update_document(uri, params.content_changes[-1].text, params.text_document.version)
        scheduler.notify(uri)

    @server.feature(types.TEXT_DOCUMENT_DID_CLOSE)
    def did_close(params: types.DidCloseTextDocumentParams) -> None:
        service.delete_document(params.text_document.uri)

    @server.feature(types.TEXT_DOCUMENT_HOVER)
    async def hover(params: types.HoverParams) -> types.Hover | None:
        uri = params.text_document.uri
        try:
            blocks = await service.hover(uri, params.position.line, params.position.character)
        except SqlIntelError as exc:
            LOG.warning("Hover failed", extra={"uri": uri, "error": str(exc)})
            return None
        return to_lsp_hover(blocks)

    return server


def to_lsp_hover(blocks: Sequence[MarkedString]) -> types.Hover | None:
    """Join hover blocks into one markdown document; secondary blocks are fenced."""

    if not blocks:
        return None
    parts: list[str] = []
    for block in blocks:
        if block.language == "markdown":
            parts.append(block.value)
        else:
            parts.append(f"```{block.language}\n{block.value.rstrip()}\n```")
    return types.Hover(
        contents=types.MarkupContent(kind=types.MarkupKind.Markdown, value="\n\n".join(parts)),
    )


def to_lsp_diagnostic(diagnostic: Diagnostic) -> types.Diagnostic:
    start, end = diagnostic.range.start, diagnostic.range.end
    return types.Diagnostic(
        range=types.Range(
            start=types.Position(line=start.line, character=start.character),
            end=types.Position(line=end.line, character=end.character),
        ),
        severity=_SEVERITIES[diagnostic.severity],
        source=SERVER_NAME,
        message=diagnostic.message,
    )


def build_metadata_store(config: ServerConfig) -> MetadataStore:
    """Offline tables from the config file win; otherwise BigQuery is queried."""

    store: MetadataStore
    if config.tables:
        store = StaticMetadataStore(config.table_metadata())
    else:
        store = BigQueryMetadataStore(config.project_id, location=config.location)
    if config.cache_metadata:
        store = CachingMetadataStore(store)
    return store


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Send log records to stderr or ``log_file``; stdout carries the protocol."""

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())


def main() -> None:
    """Entrypoint used by ``python -m bqls`` and the ``bqls`` script."""

    config = load_config()
    configure_logging(config.log_level, config.log_file)
    service = SqlIntelService(
        build_metadata_store(config),
        SqlglotAnalyzer(dialect=config.dialect),
    )
    server = create_server(service, diagnostics_delay=config.diagnostics_delay)
    LOG.info("Starting language server", extra={"version": __version__, "project": config.project_id})
    server.start_io()


__all__ = [
    "build_metadata_store",
    "configure_logging",
    "create_server",
    "main",
    "to_lsp_diagnostic",
    "to_lsp_hover",
]
