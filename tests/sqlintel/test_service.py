"""Unit tests for the SQL intelligence service."""

from __future__ import annotations

import pytest

from bqls.sqlintel import (
    Diagnostic,
    DiagnosticSeverity,
    DocumentNotFoundError,
    InvalidPositionError,
    MetadataStoreError,
    Position,
    Range,
    SchemaField,
    SqlIntelService,
    StaticMetadataStore,
    TableMetadata,
)

URI = "file:///query.sql"

CUSTOMERS = TableMetadata(
    full_id="proj:ds.customers",
    schema=(SchemaField("id", "INTEGER"), SchemaField("email", "STRING")),
)


class CountingStore:
    """Metadata store fake that records every lookup."""

    def __init__(self, tables: dict[str, TableMetadata], *, broken: bool = False) -> None:
        self.calls: list[str] = []
        self._inner = StaticMetadataStore(tables)
        self._broken = broken

    async def get_table_metadata(self, path: str) -> TableMetadata:
        self.calls.append(path)
        if self._broken:
            raise MetadataStoreError("backend unavailable")
        return await self._inner.get_table_metadata(path)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def test_document_lifecycle() -> None:
    service = SqlIntelService()

    service.update_document(URI, "SELECT 1", 1)
    assert service.get_document(URI) == "SELECT 1"

    service.delete_document(URI)
    with pytest.raises(DocumentNotFoundError):
        service.get_document(URI)


@pytest.mark.anyio
async def test_diagnose_clean_document_returns_empty_list() -> None:
    service = SqlIntelService(StaticMetadataStore({"customers": CUSTOMERS}))
    service.update_document(URI, "SELECT id FROM customers")

    assert await service.diagnose(URI) == {URI: []}


@pytest.mark.anyio
async def test_diagnose_reports_each_failed_statement() -> None:
    service = SqlIntelService(StaticMetadataStore({"customers": CUSTOMERS}))
    service.update_document(URI, "SELECT (1;\nSELECT id FROM customers;\nSELECT nope FROM customers")

    diagnostics = (await service.diagnose(URI))[URI]

    assert len(diagnostics) == 2
    assert diagnostics[0].range == Range(Position(0, 0), Position(0, 9))
    assert diagnostics[1] == Diagnostic(
        message="Unrecognized name: nope",
        severity=DiagnosticSeverity.ERROR,
        range=Range(Position(2, 7), Position(2, 11)),
    )


@pytest.mark.anyio
async def test_diagnose_unknown_document_raises() -> None:
    service = SqlIntelService()

    with pytest.raises(DocumentNotFoundError):
        await service.diagnose(URI)


@pytest.mark.anyio
async def test_parse_file_is_cached_until_text_changes() -> None:
    store = CountingStore({"customers": CUSTOMERS})
    service = SqlIntelService(store)
    service.update_document(URI, "SELECT id FROM customers")

    first = await service.parse_file(URI)
    second = await service.parse_file(URI)
    assert first is second
    assert store.calls == ["customers"]

    service.update_document(URI, "SELECT email FROM customers")
    third = await service.parse_file(URI)
    assert third is not first
    assert third.text == "SELECT email FROM customers"


@pytest.mark.anyio
async def test_unreachable_metadata_becomes_statement_error() -> None:
    service = SqlIntelService(CountingStore({}, broken=True))
    service.update_document(URI, "SELECT id FROM customers")

    diagnostics = (await service.diagnose(URI))[URI]

    assert [item.message for item in diagnostics] == ["Table not found: customers"]


@pytest.mark.anyio
async def test_hover_rejects_line_outside_document() -> None:
    service = SqlIntelService(StaticMetadataStore({"customers": CUSTOMERS}))
    service.update_document(URI, "SELECT id FROM customers")

    with pytest.raises(InvalidPositionError):
        await service.hover(URI, 5, 0)


@pytest.mark.anyio
async def test_hover_unknown_document_raises() -> None:
    service = SqlIntelService()

    with pytest.raises(DocumentNotFoundError):
        await service.hover(URI, 0, 0)
