"""Tests for the document cache."""

from __future__ import annotations

import pytest

from bqls.sqlintel import DocumentCache, DocumentNotFoundError
from bqls.sqlintel.analyzer import ParsedFile
from bqls.sqlintel.syntax import ScriptNode


def test_put_replaces_text_and_version_together() -> None:
    cache = DocumentCache()

    cache.put("file:///a.sql", "SELECT 1", 1)
    cache.put("file:///a.sql", "SELECT 2", 2)

    document = cache.get("file:///a.sql")
    assert document is not None
    assert (document.text, document.version) == ("SELECT 2", 2)


def test_text_raises_for_unknown_uri() -> None:
    cache = DocumentCache()

    with pytest.raises(DocumentNotFoundError):
        cache.text("file:///missing.sql")


def test_delete_removes_document() -> None:
    cache = DocumentCache()
    cache.put("file:///a.sql", "SELECT 1")

    cache.delete("file:///a.sql")

    assert "file:///a.sql" not in cache
    assert cache.get("file:///a.sql") is None


def test_parsed_file_is_dropped_when_text_changes() -> None:
    cache = DocumentCache()
    cache.put("file:///a.sql", "SELECT 1")
    parsed = ParsedFile(text="SELECT 1", surface=ScriptNode())

    assert cache.store_parsed("file:///a.sql", parsed) is True
    assert cache.parsed("file:///a.sql") is parsed

    cache.put("file:///a.sql", "SELECT 2")

    assert cache.parsed("file:///a.sql") is None


def test_stale_parsed_file_is_not_stored() -> None:
    cache = DocumentCache()
    cache.put("file:///a.sql", "SELECT 2")

    stored = cache.store_parsed("file:///a.sql", ParsedFile(text="SELECT 1", surface=ScriptNode()))

    assert stored is False
    assert cache.parsed("file:///a.sql") is None
