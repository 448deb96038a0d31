"""Schema metadata stores consulted by analysis and hover."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Mapping, Protocol

from .models import SqlIntelError, TableMetadata

LOG = logging.getLogger(__name__)


class MetadataStoreError(SqlIntelError):
    """Raised when table metadata cannot be fetched."""


class TableNotFoundError(MetadataStoreError):
    """Raised when the requested table does not exist."""


class MetadataStore(Protocol):
    """Protocol for services that describe tables by their dotted path."""

    async def get_table_metadata(self, path: str) -> TableMetadata:
        """Return metadata for ``path`` or raise ``MetadataStoreError``."""


class StaticMetadataStore:
    """Simple metadata store backed by an in-memory catalog."""

    def __init__(self, tables: Mapping[str, TableMetadata] | None = None) -> None:
        self._tables: dict[str, TableMetadata] = {}
        self.update(tables or {})

    async def get_table_metadata(self, path: str) -> TableMetadata:
        metadata = self._tables.get(_normalize(path))
        if metadata is None:
            raise TableNotFoundError(f"Table '{path}' not found.")
        return metadata

    def update(self, tables: Mapping[str, TableMetadata]) -> None:
        """Replace the in-memory catalog."""

        self._tables = {_normalize(path): metadata for path, metadata in tables.items()}


class CachingMetadataStore:
    """Remembers successful lookups of another store, keyed by table path.

    Entries are never invalidated. Failures are not cached, and concurrent
    lookups of the same path share one request.
    """

    def __init__(self, inner: MetadataStore) -> None:
        self._inner = inner
        self._entries: dict[str, TableMetadata] = {}
        self._pending: dict[str, asyncio.Task[TableMetadata]] = {}

    async def get_table_metadata(self, path: str) -> TableMetadata:
        key = _normalize(path)
        cached = self._entries.get(key)
        if cached is not None:
            return cached
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._inner.get_table_metadata(path))
            self._pending[key] = task
            task.add_done_callback(partial(self._forget, key))
        metadata = await asyncio.shield(task)
        self._entries[key] = metadata
        LOG.debug("Cached table metadata", extra={"path": path})
        return metadata

    def _forget(self, key: str, task: asyncio.Task[TableMetadata]) -> None:
        self._pending.pop(key, None)
        if not task.cancelled() and task.exception() is not None:
            LOG.debug("Table metadata lookup failed", extra={"key": key})

    def clear(self) -> None:
        self._entries.clear()


def _normalize(path: str) -> str:
    return path.replace("`", "").lower()


__all__ = [
    "CachingMetadataStore",
    "MetadataStore",
    "MetadataStoreError",
    "StaticMetadataStore",
    "TableNotFoundError",
]
