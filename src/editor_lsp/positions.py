"""
Conversion between linear document offsets and LSP positions.

Offsets index into the document text; positions are zero-based
``(line, character)`` pairs where ``character`` counts in the same units as
the offset.
"""

from __future__ import annotations

import bisect
import re
from typing import TYPE_CHECKING

from lsprotocol import types as lsp

from editor_lsp.errors import PositionError

if TYPE_CHECKING:
    from pygls.workspace import TextDocument

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class TextSnapshot:
    """An immutable view of a document's text with a line index."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._line_starts = [0] + [m.end() for m in _LINE_BREAK.finditer(text)]

    @classmethod
    def from_document(cls, document: TextDocument) -> TextSnapshot:
        """Snapshot the current source of a pygls text document."""
        return cls(document.source)

    @property
    def text(self) -> str:
        return self._text

    @property
    def length(self) -> int:
        return len(self._text)

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def line_start(self, line: int) -> int:
        """Return the offset of the first character of ``line``."""
        if line < 0 or line >= self.line_count:
            raise PositionError(f"line {line} is outside of document ({self.line_count} lines)")
        return self._line_starts[line]

    def line_text(self, line: int) -> str:
        """Return the text of ``line`` without its line break."""
        start = self.line_start(line)
        if line + 1 < self.line_count:
            end = self._line_starts[line + 1]
            return _LINE_BREAK.sub("", self._text[start:end])
        return self._text[start:]

    def line_at(self, offset: int) -> int:
        """Return the line containing ``offset``."""
        if offset < 0 or offset > self.length:
            raise PositionError(f"offset {offset} is outside of document (length {self.length})")
        return bisect.bisect_right(self._line_starts, offset) - 1


def position_to_offset(snapshot: TextSnapshot, position: lsp.Position) -> int:
    """Resolve ``position`` to an offset in ``snapshot``.

    Raises:
        PositionError: The line is past the last line, or the resulting
            offset is past the end of the document.
    """
    if position.line >= snapshot.line_count:
        raise PositionError("position line is outside of document")

    offset = snapshot.line_start(position.line) + position.character
    if offset > snapshot.length:
        raise PositionError("offset is greater than document length")

    return offset


def offset_to_position(snapshot: TextSnapshot, offset: int) -> lsp.Position:
    """Convert an offset in ``snapshot`` to a line/character position."""
    line = snapshot.line_at(offset)
    return lsp.Position(line=line, character=offset - snapshot.line_start(line))
