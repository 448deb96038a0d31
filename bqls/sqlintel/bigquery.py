"""Metadata store backed by the BigQuery API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable

from .metadata import MetadataStoreError, TableNotFoundError
from .models import SchemaField, TableMetadata

LOG = logging.getLogger(__name__)


class BigQueryMetadataStore:
    """Fetches table metadata with ``google.cloud.bigquery.Client.get_table``.

    Client calls block, so each one runs in a worker thread. Paths without a
    project are resolved against the client's default project.
    """

    def __init__(
        self,
        project_id: str | None = None,
        *,
        location: str | None = None,
        client: Any | None = None,
    ) -> None:
        if client is None:
            try:
                from google.cloud import bigquery
            except ImportError:
                raise ImportError(
                    "google-cloud-bigquery is not installed. Install it with: pip install google-cloud-bigquery"
                ) from None
            client = bigquery.Client(project=project_id, location=location)
        self._client = client

    async def get_table_metadata(self, path: str) -> TableMetadata:
        table_id = path.replace("`", "")
        try:
            table = await asyncio.to_thread(self._client.get_table, table_id)
        except Exception as exc:
            if _is_not_found(exc):
                raise TableNotFoundError(f"Table '{path}' not found.") from exc
            LOG.warning("BigQuery metadata request failed", extra={"path": path, "error": str(exc)})
            raise MetadataStoreError(f"Failed to fetch metadata for '{path}': {exc}") from exc
        return table_metadata_from_api(table)


def table_metadata_from_api(table: Any) -> TableMetadata:
    """Convert a ``google.cloud.bigquery.Table`` into ``TableMetadata``."""

    return TableMetadata(
        full_id=table.full_table_id or f"{table.project}:{table.dataset_id}.{table.table_id}",
        description=table.description or "",
        created=table.created,
        modified=table.modified,
        schema=_convert_fields(table.schema or ()),
    )


def _convert_fields(fields: Iterable[Any]) -> tuple[SchemaField, ...]:
    return tuple(
        SchemaField(
            name=field.name,
            type=field.field_type,
            mode=field.mode or "",
            description=field.description or "",
            fields=_convert_fields(field.fields or ()),
        )
        for field in fields
    )


def _is_not_found(exc: Exception) -> bool:
    from google.api_core.exceptions import NotFound

    return isinstance(exc, NotFound)


__all__ = ["BigQueryMetadataStore", "table_metadata_from_api"]
