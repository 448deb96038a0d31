"""Conversions between editor positions and byte offsets."""

from __future__ import annotations

from .models import Position, SqlIntelError


class InvalidPositionError(SqlIntelError):
    """Raised when a position points past the last line of a document."""


def position_to_byte_offset(text: str, line: int, character: int) -> int:
    """Return the byte offset of ``line``/``character`` within ``text``.

    Every line before the target contributes its UTF-8 length plus one byte
    for the ``\\n`` separator; ``character`` is added as-is.
    """

    lines = text.split("\n")
    if line < 0 or line >= len(lines):
        raise InvalidPositionError(f"Line {line} is outside a document of {len(lines)} line(s).")
    offset = 0
    for current in lines[:line]:
        offset += len(current.encode("utf-8")) + 1
    return offset + character


def byte_offset_to_position(text: str, offset: int) -> Position | None:
    """Return the position of ``offset`` or ``None`` when it is past the text."""

    if offset < 0:
        return None
    for line, current in enumerate(text.split("\n")):
        length = len(current.encode("utf-8"))
        if offset < length + 1:
            return Position(line=line, character=offset)
        offset -= length + 1
    return None


__all__ = ["InvalidPositionError", "byte_offset_to_position", "position_to_byte_offset"]
