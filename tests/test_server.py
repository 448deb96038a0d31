"""Tests for the language-server conversions and wiring."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from lsprotocol import types

from bqls import server as server_module
from bqls.config import ServerConfig, TableConfig
from bqls.server import build_metadata_store, configure_logging, create_server, to_lsp_diagnostic, to_lsp_hover
from bqls.sqlintel import (
    CachingMetadataStore,
    Diagnostic,
    DiagnosticSeverity,
    MarkedString,
    Position,
    Range,
    SqlIntelService,
    StaticMetadataStore,
)


def test_hover_blocks_join_into_markdown() -> None:
    hover = to_lsp_hover([MarkedString("markdown", "## p:d.t"), MarkedString("yaml", "- name: id\n")])

    assert hover is not None
    assert hover.contents.kind == types.MarkupKind.Markdown
    assert hover.contents.value == "## p:d.t\n\n```yaml\n- name: id\n```"


def test_empty_hover_is_none() -> None:
    assert to_lsp_hover([]) is None


def test_diagnostic_conversion() -> None:
    diagnostic = Diagnostic(
        message="Unrecognized name: x",
        severity=DiagnosticSeverity.ERROR,
        range=Range(Position(1, 2), Position(1, 3)),
    )

    result = to_lsp_diagnostic(diagnostic)

    assert result.message == "Unrecognized name: x"
    assert result.severity == types.DiagnosticSeverity.Error
    assert result.range == types.Range(start=types.Position(line=1, character=2), end=types.Position(line=1, character=3))
    assert result.source == "bqls"


def test_offline_tables_use_static_store() -> None:
    config = ServerConfig(tables={"p.d.t": TableConfig()}, cache_metadata=False)

    assert isinstance(build_metadata_store(config), StaticMetadataStore)


def test_metadata_store_is_cached_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[tuple[str | None, str | None]] = []

    class FakeBigQueryStore:
        def __init__(self, project_id: str | None, *, location: str | None = None) -> None:
            created.append((project_id, location))

    monkeypatch.setattr(server_module, "BigQueryMetadataStore", FakeBigQueryStore)

    store = build_metadata_store(ServerConfig(project_id="proj", location="EU"))

    assert isinstance(store, CachingMetadataStore)
    assert created == [("proj", "EU")]


def test_create_server_registers_features() -> None:
    server = create_server(SqlIntelService())

    assert server.name == "bqls"


def test_configure_logging_writes_to_file(tmp_path: Path) -> None:
    log_file = tmp_path / "bqls.log"
    root = logging.getLogger()
    previous = (root.handlers[:], root.level)
    try:
        configure_logging("debug", str(log_file))
        logging.getLogger("bqls.test").debug("hello")
        for handler in root.handlers:
            handler.flush()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = previous[0]
        root.setLevel(previous[1])

    assert "hello" in log_file.read_text()
