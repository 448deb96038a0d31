"""In-memory document cache keyed by URI."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .models import SqlIntelError

if TYPE_CHECKING:
    from .analyzer import ParsedFile


class DocumentNotFoundError(SqlIntelError):
    """Raised when a URI is not present in the document cache."""


@dataclass(frozen=True, slots=True)
class Document:
    """Text and version received together from one update."""

    uri: str
    text: str
    version: int | None = None


class DocumentCache:
    """Holds the current text of every open document and its parsed artifacts.

    Documents are replaced wholesale on ``put``; any parsed artifact derived
    from the previous text is dropped at the same time.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: dict[str, Document] = {}
        self._parsed: dict[str, ParsedFile] = {}

    def put(self, uri: str, text: str, version: int | None = None) -> Document:
        document = Document(uri=uri, text=text, version=version)
        with self._lock:
            self._documents[uri] = document
            self._parsed.pop(uri, None)
        return document

    def get(self, uri: str) -> Document | None:
        return self._documents.get(uri)

    def text(self, uri: str) -> str:
        """Return the current text for ``uri`` or raise ``DocumentNotFoundError``."""

        document = self._documents.get(uri)
        if document is None:
            raise DocumentNotFoundError(f"Document '{uri}' is not open.")
        return document.text

    def delete(self, uri: str) -> None:
        with self._lock:
            self._documents.pop(uri, None)
            self._parsed.pop(uri, None)

    def parsed(self, uri: str) -> ParsedFile | None:
        """Return the cached parse of the current text, if still valid."""

        document = self._documents.get(uri)
        parsed = self._parsed.get(uri)
        if document is None or parsed is None or parsed.text != document.text:
            return None
        return parsed

    def store_parsed(self, uri: str, parsed: ParsedFile) -> bool:
        """Cache ``parsed`` unless the document changed while it was computed."""

        with self._lock:
            document = self._documents.get(uri)
            if document is None or document.text != parsed.text:
                return False
            self._parsed[uri] = parsed
            return True

    def uris(self) -> tuple[str, ...]:
        return tuple(self._documents)

    def __contains__(self, uri: object) -> bool:
        return uri in self._documents


__all__ = ["Document", "DocumentCache", "DocumentNotFoundError"]
