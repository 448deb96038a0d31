"""Tests for the BigQuery-backed metadata store using a fake client."""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from google.api_core.exceptions import Forbidden, NotFound

from bqls.sqlintel import MetadataStoreError, SchemaField, TableNotFoundError
from bqls.sqlintel.bigquery import BigQueryMetadataStore

CREATED = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _field(name: str, field_type: str, *, mode: str = "NULLABLE", description: str | None = None, fields=()):
    return SimpleNamespace(name=name, field_type=field_type, mode=mode, description=description, fields=fields)


class FakeClient:
    def __init__(self, tables: dict[str, object] | None = None, error: Exception | None = None) -> None:
        self.requested: list[str] = []
        self._tables = tables or {}
        self._error = error

    def get_table(self, table_id: str) -> object:
        self.requested.append(table_id)
        if self._error is not None:
            raise self._error
        if table_id not in self._tables:
            raise NotFound(f"Not found: Table {table_id}")
        return self._tables[table_id]


@pytest.mark.anyio
async def test_converts_api_table_to_metadata() -> None:
    table = SimpleNamespace(
        full_table_id="proj:ds.orders",
        project="proj",
        dataset_id="ds",
        table_id="orders",
        description=None,
        created=CREATED,
        modified=CREATED,
        schema=[
            _field("id", "INTEGER", mode="REQUIRED", description="Order id"),
            _field("customer", "RECORD", fields=[_field("name", "STRING")]),
        ],
    )
    client = FakeClient({"proj.ds.orders": table})
    store = BigQueryMetadataStore(client=client)

    metadata = await store.get_table_metadata("`proj.ds.orders`")

    assert client.requested == ["proj.ds.orders"]
    assert metadata.full_id == "proj:ds.orders"
    assert metadata.description == ""
    assert metadata.created == CREATED
    assert metadata.schema[0] == SchemaField("id", "INTEGER", "REQUIRED", "Order id")
    assert metadata.schema[1].fields == (SchemaField("name", "STRING", "NULLABLE"),)


@pytest.mark.anyio
async def test_missing_table_raises_table_not_found() -> None:
    store = BigQueryMetadataStore(client=FakeClient())

    with pytest.raises(TableNotFoundError):
        await store.get_table_metadata("proj.ds.missing")


@pytest.mark.anyio
async def test_api_failure_raises_store_error() -> None:
    store = BigQueryMetadataStore(client=FakeClient(error=Forbidden("denied")))

    with pytest.raises(MetadataStoreError) as excinfo:
        await store.get_table_metadata("proj.ds.orders")

    assert not isinstance(excinfo.value, TableNotFoundError)
