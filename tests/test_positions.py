"""Tests for offset and position conversion."""

import pytest
from lsprotocol import types as lsp
from pygls.workspace import TextDocument

from editor_lsp.errors import PositionError
from editor_lsp.positions import TextSnapshot, offset_to_position, position_to_offset

TEXT = "ab\ncd\r\nef"


class TestTextSnapshot:
    """Test the line index."""

    def test_line_count(self):
        assert TextSnapshot(TEXT).line_count == 3
        assert TextSnapshot("").line_count == 1
        assert TextSnapshot("a\n").line_count == 2

    def test_line_start(self):
        snapshot = TextSnapshot(TEXT)
        assert [snapshot.line_start(n) for n in range(3)] == [0, 3, 7]

    def test_line_start_out_of_range(self):
        with pytest.raises(PositionError):
            TextSnapshot(TEXT).line_start(3)

    def test_line_text_strips_breaks(self):
        snapshot = TextSnapshot(TEXT)
        assert snapshot.line_text(0) == "ab"
        assert snapshot.line_text(1) == "cd"
        assert snapshot.line_text(2) == "ef"

    def test_lone_carriage_return(self):
        snapshot = TextSnapshot("a\rb")
        assert snapshot.line_count == 2
        assert snapshot.line_text(1) == "b"

    def test_line_at(self):
        snapshot = TextSnapshot(TEXT)
        assert snapshot.line_at(0) == 0
        assert snapshot.line_at(2) == 0
        assert snapshot.line_at(3) == 1
        assert snapshot.line_at(len(TEXT)) == 2

    def test_line_at_out_of_range(self):
        with pytest.raises(PositionError):
            TextSnapshot(TEXT).line_at(len(TEXT) + 1)

    def test_from_document(self):
        document = TextDocument("file:///test/doc.py", source="x = 1\ny = 2\n")
        snapshot = TextSnapshot.from_document(document)

        assert snapshot.text == "x = 1\ny = 2\n"
        assert snapshot.line_count == 3


class TestPositionToOffset:
    """Test resolving positions to offsets."""

    def test_first_line(self):
        assert position_to_offset(TextSnapshot(TEXT), lsp.Position(line=0, character=1)) == 1

    def test_after_crlf(self):
        assert position_to_offset(TextSnapshot(TEXT), lsp.Position(line=2, character=1)) == 8

    def test_end_of_document(self):
        snapshot = TextSnapshot(TEXT)
        assert position_to_offset(snapshot, lsp.Position(line=2, character=2)) == len(TEXT)

    def test_line_outside_document(self):
        with pytest.raises(PositionError, match="position line is outside of document"):
            position_to_offset(TextSnapshot(TEXT), lsp.Position(line=3, character=0))

    def test_offset_past_end(self):
        with pytest.raises(PositionError, match="offset is greater than document length"):
            position_to_offset(TextSnapshot(TEXT), lsp.Position(line=2, character=5))

    def test_character_past_line_end_spills_over(self):
        # Only the document end is checked, not the line end.
        assert position_to_offset(TextSnapshot(TEXT), lsp.Position(line=0, character=4)) == 4

    def test_position_error_is_value_error(self):
        with pytest.raises(ValueError):
            position_to_offset(TextSnapshot(""), lsp.Position(line=1, character=0))


class TestOffsetToPosition:
    """Test converting offsets to positions."""

    def test_offsets(self):
        snapshot = TextSnapshot(TEXT)
        assert offset_to_position(snapshot, 0) == lsp.Position(line=0, character=0)
        assert offset_to_position(snapshot, 4) == lsp.Position(line=1, character=1)
        assert offset_to_position(snapshot, 7) == lsp.Position(line=2, character=0)

    def test_inverse_of_position_to_offset(self):
        snapshot = TextSnapshot(TEXT)
        for offset in range(len(TEXT) + 1):
            position = offset_to_position(snapshot, offset)
            assert position_to_offset(snapshot, position) == offset

    def test_negative_offset(self):
        with pytest.raises(PositionError):
            offset_to_position(TextSnapshot(TEXT), -1)
